"""
Sales pipeline store: sales, product catalogue (collections, products) and
sale channels.

Channels created locally before the first load finishes are merged into the
loaded state and saved straight away, so they are not lost to the server's
older copy.
"""

from dataclasses import dataclass, replace
from typing import Any

from dashsync.core.http import DashboardApiClient
from dashsync.domain.models import (
    Collection,
    CollectionColor,
    Product,
    Sale,
    SaleChannel,
    SaleSubtask,
    new_id,
)
from dashsync.stores.common import (
    dump_records,
    move_record,
    parse_records,
    remove_record,
    replace_record,
)
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.dashboard import DASHBOARD_COORDINATOR_KEY
from dashsync.sync.entity_store import EntityStore, EntityStoreConfig, StoreState


@dataclass(frozen=True)
class SalesState(StoreState):
    sales: tuple[Sale, ...] = ()
    collections: tuple[Collection, ...] = ()
    products: tuple[Product, ...] = ()
    channels: tuple[SaleChannel, ...] = ()
    # Local channels the last load kept because the server did not know them
    pending_channel_ids: frozenset[str] = frozenset()


def _color_entry(value: str, name: str | None = None) -> CollectionColor | None:
    value = value.strip()
    if not value:
        return None
    if name and name.strip():
        label = name.strip()
    else:
        label = value.upper() if value.startswith("#") else value
    return CollectionColor(value=value, name=label)


def normalize_collection_colors(raw_colors: Any, fallback_color: str) -> list[CollectionColor]:
    """
    Normalize `availableColors` to unique `{value, name}` entries.

    Accepts bare strings or objects; the collection's own colour always leads
    the list.
    """
    normalized: list[CollectionColor] = []
    seen: set[str] = set()

    for entry in raw_colors if isinstance(raw_colors, list) else []:
        if isinstance(entry, str):
            color = _color_entry(entry)
        elif isinstance(entry, dict) and isinstance(entry.get("value"), str):
            name = entry.get("name")
            color = _color_entry(entry["value"], name if isinstance(name, str) else None)
        else:
            color = None
        if color is not None and color.value not in seen:
            normalized.append(color)
            seen.add(color.value)

    fallback = _color_entry(fallback_color or "")
    if fallback is not None and fallback.value not in seen:
        normalized.insert(0, fallback)
    return normalized


def parse_collection(raw: dict[str, Any]) -> Collection:
    collection = Collection.model_validate(raw)
    return collection.model_copy(
        update={
            "available_colors": normalize_collection_colors(
                raw.get("availableColors", raw.get("available_colors")), collection.color
            )
        }
    )


def parse_sales_response(data: dict[str, Any], state: SalesState) -> dict[str, Any]:
    channels = parse_records(SaleChannel, data.get("channels"))
    known = {channel.id for channel in channels}
    pending = tuple(channel for channel in state.channels if channel.id not in known)
    return {
        "sales": parse_records(Sale, data.get("sales")),
        "collections": tuple(parse_collection(raw) for raw in data.get("collections") or ()),
        "products": parse_records(Product, data.get("products")),
        "channels": (*channels, *pending),
        "pending_channel_ids": frozenset(channel.id for channel in pending),
    }


def serialize_sales(state: SalesState) -> dict[str, Any]:
    return {
        "sales": dump_records(state.sales),
        "collections": dump_records(state.collections),
        "products": dump_records(state.products),
        "channels": dump_records(state.channels),
    }


def save_pending_channels(store: "SalesStore") -> None:
    if store.state.pending_channel_ids:
        store.set_state(pending_channel_ids=frozenset())
        store.request_save(immediate=True)


def invalidate_sales_cache(store: "SalesStore") -> None:
    store.coordinator.clear_cache(DASHBOARD_COORDINATOR_KEY)
    store.coordinator.clear_cache(store.coordinator_key)


SALES_CONFIG: EntityStoreConfig[SalesState] = EntityStoreConfig(
    coordinator_key="sales-data",
    endpoint="/api/sales/neon",
    parse_response=parse_sales_response,
    serialize_state=serialize_sales,
    after_server_state=save_pending_channels,
    after_save=invalidate_sales_cache,
)


class SalesStore(EntityStore[SalesState]):
    """Working copy of `/api/sales/neon`."""

    def __init__(
        self,
        *,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        debounce_seconds: float | None = None,
    ):
        config = SALES_CONFIG
        if debounce_seconds is not None:
            config = replace(config, debounce_seconds=debounce_seconds)
        super().__init__(config, SalesState(), api=api, coordinator=coordinator)

    # -- sales ---------------------------------------------------------

    def add_sale(self, name: str, **fields: Any) -> Sale:
        sale = Sale(id=new_id("sale"), name=name, **fields)
        self.commit(sales=(sale, *self.state.sales))
        return sale

    def update_sale(self, sale_id: str, *, immediate: bool = False, **changes: Any) -> None:
        self.commit(
            sales=replace_record(self.state.sales, sale_id, lambda s: s.touch(**changes)),
            immediate=immediate,
        )

    def delete_sale(self, sale_id: str) -> None:
        self.commit(sales=remove_record(self.state.sales, sale_id), immediate=True)

    def reorder_sales(self, active_id: str, over_id: str) -> None:
        sales = move_record(self.state.sales, active_id, over_id)
        if sales is not None:
            self.commit(sales=sales)

    def update_notes(self, sale_id: str, notes: str) -> None:
        self.update_sale(sale_id, notes=notes)

    def _change_subtasks(self, sale_id: str, change) -> None:
        self.commit(
            sales=replace_record(
                self.state.sales,
                sale_id,
                lambda s: s.touch(subtasks=change(tuple(s.subtasks))),
            )
        )

    def add_subtask(self, sale_id: str, text: str) -> None:
        subtask = SaleSubtask(id=new_id(), text=text)
        self._change_subtasks(sale_id, lambda subtasks: (*subtasks, subtask))

    def toggle_subtask(self, sale_id: str, subtask_id: str) -> None:
        self._change_subtasks(
            sale_id,
            lambda subtasks: replace_record(
                subtasks, subtask_id, lambda s: s.updated(completed=not s.completed)
            ),
        )

    def delete_subtask(self, sale_id: str, subtask_id: str) -> None:
        self._change_subtasks(sale_id, lambda subtasks: remove_record(subtasks, subtask_id))

    # -- catalogue -----------------------------------------------------

    def add_collection(self, name: str, color: str) -> Collection:
        collection = Collection(
            id=new_id(),
            name=name,
            color=color,
            available_colors=normalize_collection_colors([], color),
        )
        self.commit(collections=(*self.state.collections, collection))
        return collection

    def update_collection(self, collection_id: str, **changes: Any) -> None:
        self.commit(
            collections=replace_record(
                self.state.collections, collection_id, lambda c: c.updated(**changes)
            )
        )

    def delete_collection(self, collection_id: str) -> None:
        """Delete a collection along with its products."""
        self.commit(
            collections=remove_record(self.state.collections, collection_id),
            products=tuple(p for p in self.state.products if p.collection_id != collection_id),
        )

    def add_collection_color(self, collection_id: str, value: str, name: str | None = None) -> None:
        def add(collection: Collection) -> Collection:
            colors = [c.model_dump() for c in collection.available_colors]
            colors.append({"value": value, "name": name} if name else value)
            return collection.updated(
                available_colors=normalize_collection_colors(colors, collection.color)
            )

        self.commit(collections=replace_record(self.state.collections, collection_id, add))

    def remove_collection_color(self, collection_id: str, value: str) -> None:
        def remove(collection: Collection) -> Collection:
            kept = [c for c in collection.available_colors if c.value != value]
            return collection.updated(available_colors=kept)

        self.commit(collections=replace_record(self.state.collections, collection_id, remove))

    def add_product(self, name: str, revenue: float, collection_id: str) -> Product:
        product = Product(id=new_id(), name=name, revenue=revenue, collection_id=collection_id)
        self.commit(products=(*self.state.products, product))
        return product

    def update_product(self, product_id: str, **changes: Any) -> None:
        self.commit(
            products=replace_record(self.state.products, product_id, lambda p: p.updated(**changes))
        )

    def delete_product(self, product_id: str) -> None:
        self.commit(products=remove_record(self.state.products, product_id))

    def products_in_collection(self, collection_id: str) -> list[Product]:
        return [p for p in self.state.products if p.collection_id == collection_id]

    # -- channels ------------------------------------------------------

    def add_channel(self, name: str, color: str | None = None) -> SaleChannel:
        channel = SaleChannel(id=new_id("channel"), name=name, color=color)
        self.commit(channels=(*self.state.channels, channel), immediate=True)
        return channel

    def update_channel(self, channel_id: str, **changes: Any) -> None:
        self.commit(
            channels=replace_record(self.state.channels, channel_id, lambda c: c.updated(**changes))
        )

    def delete_channel(self, channel_id: str) -> None:
        """Delete a channel and detach it from every sale that used it."""
        sales = tuple(
            s.touch(channel_id=None) if s.channel_id == channel_id else s for s in self.state.sales
        )
        self.commit(
            channels=remove_record(self.state.channels, channel_id),
            sales=sales,
            immediate=True,
        )
