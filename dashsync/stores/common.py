"""Helpers shared by the domain stores for list-of-record state."""

import random
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from pydantic import BaseModel

from dashsync.domain.models import Record, TagOption

RecordT = TypeVar("RecordT", bound=Record)
ModelT = TypeVar("ModelT", bound=BaseModel)

TAG_COLORS = (
    "#264653",
    "#2A9D8F",
    "#E9C46A",
    "#F4A261",
    "#E76F51",
    "#457B9D",
    "#1D3557",
    "#F1FAEE",
    "#A8DADC",
    "#E63946",
    "#8D5524",
    "#C68B59",
    "#D4A574",
    "#865439",
    "#B08968",
    "#FFC0CB",
)


def parse_records(model: type[ModelT], items: Iterable[Any] | None) -> tuple[ModelT, ...]:
    """Validate raw wire dicts (camelCase) into models; missing lists parse as empty."""
    return tuple(model.model_validate(item) for item in items or ())


def dump_records(records: Iterable[Record]) -> list[dict[str, Any]]:
    return [record.to_wire() for record in records]


def replace_record(
    records: tuple[RecordT, ...], record_id: str, change: Callable[[RecordT], RecordT]
) -> tuple[RecordT, ...]:
    """Apply `change` to the record with `record_id`; other records are kept as-is."""
    return tuple(change(r) if r.id == record_id else r for r in records)


def remove_record(records: tuple[RecordT, ...], record_id: str) -> tuple[RecordT, ...]:
    return tuple(r for r in records if r.id != record_id)


def move_record(
    records: tuple[RecordT, ...], active_id: str, over_id: str
) -> tuple[RecordT, ...] | None:
    """
    Move the `active_id` record to the position of `over_id`.

    Returns None when either id is unknown.
    """
    ids = [r.id for r in records]
    if active_id not in ids or over_id not in ids:
        return None
    items = list(records)
    moved = items.pop(ids.index(active_id))
    items.insert(ids.index(over_id), moved)
    return tuple(items)


def pick_fallback_color(options: Iterable[TagOption]) -> str:
    """First palette colour not used yet, or a random one when all are taken."""
    used = {option.color for option in options}
    for color in TAG_COLORS:
        if color not in used:
            return color
    return random.choice(TAG_COLORS)
