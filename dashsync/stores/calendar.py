"""
Calendar store: events, calendar types and event reminders.

`recurring_pattern` is stored with the event and sent back unchanged; no
recurring instances are expanded here.
"""

from dataclasses import dataclass, replace
from typing import Any

from dashsync.core.http import DashboardApiClient
from dashsync.domain.models import CalendarEvent, CalendarType, EventReminder, new_id
from dashsync.stores.common import dump_records, parse_records, remove_record, replace_record
from dashsync.sync.coordinator import LoadingCoordinator
from dashsync.sync.entity_store import EntityStore, EntityStoreConfig, StoreState

DEFAULT_CALENDAR_TYPES = (
    ("Work", "#4A9B4E"),
    ("Personal", "#01BAD5"),
    ("Events", "#F7901E"),
)


@dataclass(frozen=True)
class CalendarState(StoreState):
    events: tuple[CalendarEvent, ...] = ()
    calendar_types: tuple[CalendarType, ...] = ()
    reminders: tuple[EventReminder, ...] = ()


def parse_calendar_response(data: dict[str, Any], state: CalendarState) -> dict[str, Any]:
    return {
        "events": parse_records(CalendarEvent, data.get("events")),
        "calendar_types": parse_records(CalendarType, data.get("calendarTypes")),
        "reminders": parse_records(EventReminder, data.get("reminders")),
    }


def serialize_calendar(state: CalendarState) -> dict[str, Any]:
    return {
        "events": dump_records(state.events),
        "calendarTypes": dump_records(state.calendar_types),
        "reminders": dump_records(state.reminders),
    }


def create_default_types(store: "CalendarStore") -> None:
    if not store.state.calendar_types:
        for name, color in DEFAULT_CALENDAR_TYPES:
            store.add_calendar_type(name, color)


CALENDAR_CONFIG: EntityStoreConfig[CalendarState] = EntityStoreConfig(
    coordinator_key="calendar-data",
    endpoint="/api/calendar/neon",
    parse_response=parse_calendar_response,
    serialize_state=serialize_calendar,
    after_load=create_default_types,
)


class CalendarStore(EntityStore[CalendarState]):
    """Working copy of `/api/calendar/neon`."""

    def __init__(
        self,
        *,
        api: DashboardApiClient,
        coordinator: LoadingCoordinator,
        debounce_seconds: float | None = None,
    ):
        config = CALENDAR_CONFIG
        if debounce_seconds is not None:
            config = replace(config, debounce_seconds=debounce_seconds)
        super().__init__(config, CalendarState(), api=api, coordinator=coordinator)

    # -- events --------------------------------------------------------

    def add_event(self, title: str, **fields: Any) -> CalendarEvent:
        event = CalendarEvent(id=new_id("event"), title=title, **fields)
        self.commit(events=(*self.state.events, event))
        return event

    def update_event(self, event_id: str, **changes: Any) -> None:
        events = replace_record(self.state.events, event_id, lambda e: e.touch(**changes))
        self.commit(events=events)

    def delete_event(self, event_id: str) -> None:
        """Delete an event together with its reminders."""
        self.commit(
            events=remove_record(self.state.events, event_id),
            reminders=tuple(r for r in self.state.reminders if r.event_id != event_id),
            immediate=True,
        )

    # -- calendar types ------------------------------------------------

    def add_calendar_type(self, name: str, color: str) -> CalendarType:
        calendar_type = CalendarType(id=new_id("type"), name=name, color=color)
        self.commit(calendar_types=(*self.state.calendar_types, calendar_type))
        return calendar_type

    def update_calendar_type(self, type_id: str, name: str, color: str) -> None:
        self.commit(
            calendar_types=replace_record(
                self.state.calendar_types, type_id, lambda t: t.updated(name=name, color=color)
            )
        )

    def delete_calendar_type(self, type_id: str) -> None:
        """Delete a type; events that used it become untyped."""
        events = tuple(
            e.touch(calendar_type_id=None) if e.calendar_type_id == type_id else e
            for e in self.state.events
        )
        self.commit(
            calendar_types=remove_record(self.state.calendar_types, type_id),
            events=events,
        )

    # -- reminders -----------------------------------------------------

    def add_reminder(self, event_id: str, minutes_before: int) -> EventReminder:
        reminder = EventReminder(
            id=new_id("reminder"), event_id=event_id, minutes_before=minutes_before
        )
        self.commit(reminders=(*self.state.reminders, reminder))
        return reminder

    def update_reminder(self, reminder_id: str, minutes_before: int) -> None:
        self.commit(
            reminders=replace_record(
                self.state.reminders,
                reminder_id,
                lambda r: r.updated(minutes_before=minutes_before),
            )
        )

    def delete_reminder(self, reminder_id: str) -> None:
        self.commit(reminders=remove_record(self.state.reminders, reminder_id))

    def reminders_for(self, event_id: str) -> list[EventReminder]:
        return [r for r in self.state.reminders if r.event_id == event_id]
