"""
Pydantic models for the records each dashboard store keeps in memory.

Field names are snake_case in Python and camelCase on the wire. Unknown
fields are kept (`extra="allow"`): saves overwrite the whole server
collection, so anything the client does not model must survive the round
trip untouched.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dashsync.domain.enums import (
    DeliveryMethod,
    Priority,
    RecurringPattern,
    SaleStatus,
    TodoStatus,
)


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str | None = None) -> str:
    """Generate a client-side record id, optionally prefixed (e.g. "sale-…")."""
    token = uuid.uuid4().hex[:12]
    return f"{prefix}-{token}" if prefix else token


class Record(BaseModel):
    """Base for every stored record."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)

    def updated(self, **changes: Any) -> "Record":
        """Return a validated copy with `changes` applied."""
        return type(self).model_validate({**self.model_dump(), **changes})


class TimestampedRecord(Record):
    """Record stamped on creation and on every update."""

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self, **changes: Any) -> "TimestampedRecord":
        """Return a validated copy with `changes` applied and `updated_at` refreshed."""
        return self.updated(**changes, updated_at=utcnow())


# ============================================================================
# Todos
# ============================================================================


class Subtask(Record):
    text: str
    completed: bool = False


class TagOption(Record):
    """Category or owner option shown as a coloured tag."""

    name: str
    color: str


class Todo(TimestampedRecord):
    title: str
    category: str = ""
    owner: str = ""
    priority: Priority = Priority.MEDIUM
    status: TodoStatus = TodoStatus.NOT_STARTED
    due_date: datetime | None = None
    completed: bool = False
    subtasks: list[Subtask] = Field(default_factory=list)
    notes: str | None = None


# ============================================================================
# Sales
# ============================================================================


class SaleSubtask(Subtask):
    pass


class Sale(TimestampedRecord):
    name: str
    product_id: str | None = None
    channel_id: str | None = None
    revenue: float | None = None
    placement_date: datetime | None = None
    delivery_method: DeliveryMethod = DeliveryMethod.SHIPPING
    status: SaleStatus = SaleStatus.NOT_STARTED
    subtasks: list[SaleSubtask] = Field(default_factory=list)
    notes: str | None = None


class CollectionColor(BaseModel):
    value: str
    name: str


class Collection(Record):
    name: str
    color: str = ""
    available_colors: list[CollectionColor] = Field(default_factory=list)


class Product(Record):
    name: str
    revenue: float = 0
    collection_id: str | None = None


class SaleChannel(Record):
    name: str
    color: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Calendar
# ============================================================================


class CalendarEvent(TimestampedRecord):
    title: str
    description: str | None = None
    location: str | None = None
    calendar_type_id: str | None = None
    start_time: datetime
    end_time: datetime
    all_day: bool = False
    recurring_pattern: RecurringPattern | None = None
    recurring_end_date: datetime | None = None


class CalendarType(Record):
    name: str
    color: str
    created_at: datetime = Field(default_factory=utcnow)


class EventReminder(Record):
    event_id: str
    minutes_before: int
    created_at: datetime = Field(default_factory=utcnow)


# ============================================================================
# Quick links
# ============================================================================


class QuickLink(TimestampedRecord):
    name: str
    url: str
    favicon_url: str | None = None
    order_index: int = 0


# ============================================================================
# Expenses
# ============================================================================


class Expense(TimestampedRecord):
    paid_by: str = ""
    name: str
    vendor: str = ""
    cost_cents: int = 0
    date: datetime | None = None
    category: str = ""


class ExpenseTagOption(TagOption):
    created_at: datetime = Field(default_factory=utcnow)
