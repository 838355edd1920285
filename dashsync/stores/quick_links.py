"""Quick links store: an ordered list of bookmarks."""

from dataclasses import dataclass, replace
from typing import Any

from dashsync.core.http import DashboardApiClient
from dashsync.domain.models import QuickLink, new_id, utcnow
from dashsync.stores.common import dump_records, move_record, parse_records, replace_record
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.entity_store import EntityStore, EntityStoreConfig, StoreState


@dataclass(frozen=True)
class QuickLinksState(StoreState):
    quick_links: tuple[QuickLink, ...] = ()


def parse_quick_links_response(data: dict[str, Any], state: QuickLinksState) -> dict[str, Any]:
    return {"quick_links": parse_records(QuickLink, data.get("quickLinks"))}


def serialize_quick_links(state: QuickLinksState) -> dict[str, Any]:
    return {"quickLinks": dump_records(state.quick_links)}


QUICK_LINKS_CONFIG: EntityStoreConfig[QuickLinksState] = EntityStoreConfig(
    coordinator_key="quicklinks-data",
    endpoint="/api/quick-links/neon",
    parse_response=parse_quick_links_response,
    serialize_state=serialize_quick_links,
)


def _reindexed(links: tuple[QuickLink, ...], *, stamp: bool = False) -> tuple[QuickLink, ...]:
    now = utcnow()
    return tuple(
        link.model_copy(update={"order_index": index, **({"updated_at": now} if stamp else {})})
        for index, link in enumerate(links)
    )


class QuickLinksStore(EntityStore[QuickLinksState]):
    """Working copy of `/api/quick-links/neon`; `order_index` always matches list position."""

    def __init__(
        self,
        *,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        debounce_seconds: float | None = None,
    ):
        config = QUICK_LINKS_CONFIG
        if debounce_seconds is not None:
            config = replace(config, debounce_seconds=debounce_seconds)
        super().__init__(config, QuickLinksState(), api=api, coordinator=coordinator)

    def add_quick_link(self, name: str, url: str, favicon_url: str | None = None) -> QuickLink:
        next_index = max((link.order_index for link in self.state.quick_links), default=-1) + 1
        link = QuickLink(
            id=new_id("ql"), name=name, url=url, favicon_url=favicon_url, order_index=next_index
        )
        self.commit(quick_links=(*self.state.quick_links, link))
        return link

    def update_quick_link(self, link_id: str, **changes: Any) -> None:
        self.commit(
            quick_links=replace_record(
                self.state.quick_links, link_id, lambda link: link.touch(**changes)
            )
        )

    def delete_quick_link(self, link_id: str) -> None:
        remaining = tuple(link for link in self.state.quick_links if link.id != link_id)
        self.commit(quick_links=_reindexed(remaining), immediate=True)

    def reorder_quick_links(self, active_id: str, over_id: str) -> None:
        links = move_record(self.state.quick_links, active_id, over_id)
        if links is not None:
            self.commit(quick_links=_reindexed(links, stamp=True))
