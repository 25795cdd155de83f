"""Event administration.

Two validation policies apply to events:

* creating an event goes through `validate_new_event` (every rule checked,
  duration derived from the times, seats_available starts at total_seats);
* editing an event goes through `apply_event_edit`, which writes whatever the
  administrator sends, including seats_available, status and duration.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import delete as sqla_delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.calendar_grid import DISPLAY_TZ
from angostura.errors import EventNotFound, FieldValidationError, Forbidden, StorageError
from angostura.forms import FormErrors
from angostura.models import Event, EventRegistration, UserProfile, EVENT_STATUSES, STATUS_AVAILABLE
from angostura.redis_tools import drop_seats, sync_seats
from angostura.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 15
MIN_TOTAL_SEATS = 1
MAX_TOTAL_SEATS = 1000
UNKNOWN_EVENT_TITLE = "Unknown Event"

EDITABLE_FIELDS = (
    "title",
    "description",
    "start_time",
    "end_time",
    "duration",
    "difficulty",
    "seats_available",
    "total_seats",
    "status",
    "event_start_location",
)
REQUIRED_ON_EDIT = tuple(name for name in EDITABLE_FIELDS if name != "event_start_location")


@dataclass
class EventDraft:
    title: str
    description: str
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    difficulty: str = "Beginner"
    total_seats: int = 10
    event_start_location: Optional[str] = None


@dataclass
class EventFormErrors(FormErrors):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    total_seats: Optional[str] = None


@dataclass
class EventEditErrors(EventFormErrors):
    duration: Optional[str] = None
    difficulty: Optional[str] = None
    seats_available: Optional[str] = None
    status: Optional[str] = None


def duration_minutes(start: datetime, end: datetime) -> int:
    return max(0, int((as_utc(end) - as_utc(start)).total_seconds() // 60))


def validate_new_event(draft: EventDraft, now: Optional[datetime] = None) -> EventFormErrors:
    errors = EventFormErrors()
    now = as_utc(now) if now else utcnow()

    if not draft.title.strip():
        errors.title = "Event title is required"
    if not draft.description.strip():
        errors.description = "Event description is required"
    if draft.start_time is None:
        errors.start_time = "Start time is required"
    if draft.end_time is None:
        errors.end_time = "End time is required"

    if draft.start_time is not None and draft.end_time is not None:
        start = as_utc(draft.start_time)
        end = as_utc(draft.end_time)
        if start <= now:
            errors.start_time = "Start time must be in the future"
        if end <= start:
            errors.end_time = "End time must be after start time"
        if duration_minutes(start, end) < MIN_DURATION_MINUTES:
            errors.end_time = f"Event must be at least {MIN_DURATION_MINUTES} minutes long"

    if not MIN_TOTAL_SEATS <= draft.total_seats <= MAX_TOTAL_SEATS:
        errors.total_seats = f"Total seats must be between {MIN_TOTAL_SEATS} and {MAX_TOTAL_SEATS}"
    return errors


def apply_event_edit(event: Event, changes: Mapping[str, Any]) -> Event:
    """Write the administrator's values as given. No cross-field rules.

    Only an explicit null for a column that cannot be empty is refused.
    """
    errors = EventEditErrors()
    for name in REQUIRED_ON_EDIT:
        if name in changes and changes[name] is None:
            setattr(errors, name, "This field cannot be empty")
    if not errors.is_valid():
        raise FieldValidationError(errors)

    for name, value in changes.items():
        if name not in EDITABLE_FIELDS:
            continue
        if name in ("start_time", "end_time"):
            value = as_utc(value)
        setattr(event, name, value)
    return event


async def list_events(session: AsyncSession) -> List[Event]:
    res = await session.execute(select(Event).order_by(Event.start_time, Event.id))
    return list(res.scalars().all())


async def get_event(session: AsyncSession, event_id: int) -> Event:
    res = await session.execute(select(Event).where(Event.id == event_id))
    event = res.scalars().first()
    if not event:
        raise EventNotFound(event_id)
    return event


async def _commit(session: AsyncSession, action: str) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.exception("Error %s", action)
        raise StorageError() from exc


async def create_event(session: AsyncSession, draft: EventDraft, owner_id: Optional[int] = None,
                       now: Optional[datetime] = None) -> Event:
    errors = validate_new_event(draft, now=now)
    if not errors.is_valid():
        raise FieldValidationError(errors)

    event = Event(
        title=draft.title.strip(),
        description=draft.description.strip(),
        start_time=as_utc(draft.start_time),
        end_time=as_utc(draft.end_time),
        duration=duration_minutes(draft.start_time, draft.end_time),
        difficulty=draft.difficulty,
        total_seats=draft.total_seats,
        seats_available=draft.total_seats,
        status=STATUS_AVAILABLE,
        event_start_location=draft.event_start_location,
        event_owner_id=owner_id,
    )
    session.add(event)
    await _commit(session, "creating event")
    await session.refresh(event)
    await sync_seats(event.id, event.seats_available)
    logger.info("Created event %s (%s seats, owner %s)", event.id, event.total_seats, owner_id)
    return event


async def update_event(session: AsyncSession, event_id: int, changes: Mapping[str, Any]) -> Event:
    event = await get_event(session, event_id)
    apply_event_edit(event, changes)
    await _commit(session, f"updating event {event_id}")
    await session.refresh(event)
    await sync_seats(event.id, event.seats_available)
    return event


def ensure_owner(event: Event, provider: UserProfile) -> None:
    if not provider.is_provider or event.event_owner_id != provider.id:
        raise Forbidden("You can only manage your own events")


async def set_event_status(session: AsyncSession, event_id: int, status: str,
                           provider: Optional[UserProfile] = None) -> Event:
    """Any status may follow any other. Providers are limited to their own events."""
    if status not in EVENT_STATUSES:
        raise ValueError(f"unknown event status {status!r}")
    event = await get_event(session, event_id)
    if provider is not None:
        ensure_owner(event, provider)
    event.status = status
    await _commit(session, f"updating status of event {event_id}")
    await session.refresh(event)
    return event


async def delete_event(session: AsyncSession, event_id: int, provider: UserProfile) -> None:
    event = await get_event(session, event_id)
    ensure_owner(event, provider)
    # registrations go with the event through the FK cascade
    await session.execute(sqla_delete(Event).where(Event.id == event_id))
    await _commit(session, f"deleting event {event_id}")
    await drop_seats(event_id)
    logger.info("Provider %s deleted event %s", provider.id, event_id)


@dataclass
class EventFilter:
    """kind is one of all, date, month, year. month is 1-12."""

    kind: str = "all"
    day: Optional[date] = None
    month: Optional[int] = None
    year: Optional[int] = None

    def matches(self, event: Event, tz=DISPLAY_TZ) -> bool:
        start = as_utc(event.start_time).astimezone(tz)
        if self.kind == "date":
            return self.day is None or start.date() == self.day
        if self.kind == "month":
            return start.month == self.month and start.year == self.year
        if self.kind == "year":
            return start.year == self.year
        return True


def filter_events(events: Sequence[Event], event_filter: Optional[EventFilter] = None, tz=DISPLAY_TZ) -> List[Event]:
    if event_filter is None or event_filter.kind == "all":
        return list(events)
    return [event for event in events if event_filter.matches(event, tz)]


@dataclass
class RegistrationView:
    id: int
    user_id: int
    event_id: int
    event_title: str
    seats_requested: int
    registration_date: datetime
    user: Optional[UserProfile] = None


def describe_registrations(registrations: Iterable[EventRegistration], events: Iterable[Event],
                           users: Iterable[UserProfile] = ()) -> List[RegistrationView]:
    """Join registrations with the loaded events and users. Missing events show as Unknown Event."""
    titles = {event.id: event.title for event in events}
    users_map = {user.id: user for user in users}
    return [
        RegistrationView(
            id=reg.id,
            user_id=reg.user_id,
            event_id=reg.event_id,
            event_title=titles.get(reg.event_id, UNKNOWN_EVENT_TITLE),
            seats_requested=reg.seats_requested,
            registration_date=reg.registration_date,
            user=users_map.get(reg.user_id),
        )
        for reg in registrations
    ]


def booked_seats(registrations: Iterable[EventRegistration], event_id: int) -> int:
    return sum(reg.seats_requested for reg in registrations if reg.event_id == event_id)


def event_stats(events: Sequence[Event], filtered: Sequence[Event], users: Sequence[UserProfile],
                registrations: Sequence[EventRegistration]) -> Dict[str, int]:
    return {
        "total_events": len(events),
        "available_filtered": sum(1 for event in filtered if event.status == STATUS_AVAILABLE),
        "available_events": sum(1 for event in events if event.status == STATUS_AVAILABLE),
        "registered_users": sum(1 for user in users if not user.is_admin),
        "total_registrations": len(registrations),
        "showing": len(filtered),
    }
