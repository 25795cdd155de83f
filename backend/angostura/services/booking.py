# booking.py
import logging
from typing import Iterable, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.db import is_unique_violation
from angostura.errors import (
    AlreadyRegistered,
    EventNotBookable,
    EventNotFound,
    InsufficientSeats,
    InvalidSeatCount,
    NotAuthenticated,
    StorageError,
)
from angostura.models import Event, EventRegistration, UserProfile, STATUS_AVAILABLE, STATUS_FULLY_BOOKED
from angostura.redis_tools import USE_REDIS_TOKEN_BUCKET, try_acquire_seats, refund_seats

logger = logging.getLogger(__name__)

MIN_SEATS_PER_BOOKING = 1
MAX_SEATS_PER_BOOKING = 4


def check_booking(event: Event, requester: Optional[UserProfile], seats_requested: int,
                  existing_registrations: Iterable[EventRegistration]) -> None:
    """Raise the first failing booking precondition, in the order users see them."""
    if requester is None:
        raise NotAuthenticated("Please log in to register for events")
    if any(reg.user_id == requester.id and reg.event_id == event.id for reg in existing_registrations):
        raise AlreadyRegistered()
    if not MIN_SEATS_PER_BOOKING <= seats_requested <= MAX_SEATS_PER_BOOKING:
        raise InvalidSeatCount()
    if seats_requested > event.seats_available:
        raise InsufficientSeats()


def plan_booking(event: Event, seats_requested: int) -> Tuple[int, str]:
    """Seats left and status of `event` once `seats_requested` are taken."""
    new_available = max(0, event.seats_available - seats_requested)
    status = STATUS_FULLY_BOOKED if new_available == 0 else event.status
    return new_available, status


def ensure_bookable(event: Event) -> None:
    if event.status != STATUS_AVAILABLE:
        raise EventNotBookable(event.status)


async def load_event(session: AsyncSession, event_id: int, *, fresh: bool = False) -> Event:
    q = select(Event).where(Event.id == event_id)
    if fresh:
        q = q.execution_options(populate_existing=True)
    res = await session.execute(q)
    event = res.scalars().first()
    if not event:
        raise EventNotFound(event_id)
    return event


async def user_registrations(session: AsyncSession, user_id: int) -> list[EventRegistration]:
    res = await session.execute(
        select(EventRegistration)
        .where(EventRegistration.user_id == user_id)
        .order_by(EventRegistration.registration_date.desc(), EventRegistration.id.desc())
    )
    return list(res.scalars().all())


async def create_booking(session: AsyncSession, event: Event, requester: Optional[UserProfile],
                         seats_requested: int,
                         use_redis_token_bucket: bool = USE_REDIS_TOKEN_BUCKET) -> EventRegistration:
    existing = await user_registrations(session, requester.id) if requester is not None else []
    check_booking(event, requester, seats_requested, existing)

    event_id = event.id
    user_id = requester.id
    expected_available, expected_status = plan_booking(event, seats_requested)

    # Redis fast path. None -> missing key or error; the database decides.
    reserved_in_redis = False
    if use_redis_token_bucket:
        redis_result = await try_acquire_seats(event_id, seats_requested)
        if redis_result is False:
            raise InsufficientSeats()
        reserved_in_redis = redis_result is True

    async def undo() -> None:
        await session.rollback()
        if reserved_in_redis:
            await refund_seats(event_id, seats_requested)

    try:
        # decrement only while enough seats remain; the store evaluates the guard
        res = await session.execute(
            update(Event)
            .where(Event.id == event_id, Event.seats_available >= seats_requested)
            .values(seats_available=Event.seats_available - seats_requested)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            await undo()
            raise InsufficientSeats()

        registration = EventRegistration(user_id=user_id, event_id=event_id, seats_requested=seats_requested)
        session.add(registration)
        await session.flush()

        await session.execute(
            update(Event)
            .where(Event.id == event_id, Event.seats_available == 0)
            .values(status=STATUS_FULLY_BOOKED)
            .execution_options(synchronize_session=False)
        )
        await session.commit()
    except IntegrityError as exc:
        await undo()
        if is_unique_violation(exc):
            raise AlreadyRegistered() from exc
        logger.exception("Booking insert failed for event %s user %s", event_id, user_id)
        raise StorageError() from exc
    except SQLAlchemyError as exc:
        await undo()
        logger.exception("Booking failed for event %s user %s", event_id, user_id)
        raise StorageError() from exc

    await session.refresh(registration)
    logger.info(
        "Booked %s seat(s) on event %s for user %s (expected %s left, status %s)",
        seats_requested, event_id, user_id, expected_available, expected_status,
    )
    return registration
