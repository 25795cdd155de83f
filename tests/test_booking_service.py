import pytest
from sqlalchemy import func, select, update

from angostura.errors import AlreadyRegistered, InsufficientSeats, NotAuthenticated
from angostura.models import Event, EventRegistration
from angostura.services import booking as booking_service
from angostura.services.booking import create_booking, load_event, user_registrations


async def registration_count(session, event_id):
    res = await session.execute(
        select(func.count()).select_from(EventRegistration).where(EventRegistration.event_id == event_id)
    )
    return res.scalar_one()


async def test_booking_last_seats_marks_event_fully_booked(session, make_user, make_event):
    hiker = await make_user("alice")
    event = await make_event(total_seats=2)

    registration = await create_booking(session, event, hiker, 2)

    assert registration.id is not None
    assert registration.seats_requested == 2
    assert registration.registration_date is not None
    stored = await load_event(session, event.id, fresh=True)
    assert stored.seats_available == 0
    assert stored.status == "fully-booked"


async def test_partial_booking_keeps_event_available(session, make_user, make_event):
    hiker = await make_user("alice")
    event = await make_event(total_seats=5)

    await create_booking(session, event, hiker, 3)

    stored = await load_event(session, event.id, fresh=True)
    assert stored.seats_available == 2
    assert stored.status == "available"
    regs = await user_registrations(session, hiker.id)
    assert [(r.event_id, r.seats_requested) for r in regs] == [(event.id, 3)]


async def test_anonymous_booking_is_refused(session, make_event):
    event = await make_event()
    with pytest.raises(NotAuthenticated):
        await create_booking(session, event, None, 1)
    assert await registration_count(session, event.id) == 0


async def test_second_booking_by_same_user_is_refused(session, make_user, make_event):
    hiker = await make_user("alice")
    event = await make_event(total_seats=10)
    await create_booking(session, event, hiker, 1)

    event = await load_event(session, event.id, fresh=True)
    with pytest.raises(AlreadyRegistered):
        await create_booking(session, event, hiker, 1)

    stored = await load_event(session, event.id, fresh=True)
    assert stored.seats_available == 9


async def test_duplicate_caught_by_unique_constraint_leaves_seats_untouched(session, make_user, make_event,
                                                                           monkeypatch):
    hiker = await make_user("alice")
    event = await make_event(total_seats=10)
    await create_booking(session, event, hiker, 2)
    event_id = event.id

    async def stale_registrations(session, user_id):
        return []

    # a second tab that loaded the registrations before the first booking landed
    monkeypatch.setattr(booking_service, "user_registrations", stale_registrations)
    event = await load_event(session, event_id, fresh=True)
    with pytest.raises(AlreadyRegistered):
        await create_booking(session, event, hiker, 1)

    # the failed transaction was rolled back; loaded objects are expired
    stored = await load_event(session, event_id, fresh=True)
    assert stored.seats_available == 8
    assert await registration_count(session, event_id) == 1


async def test_concurrent_decrement_is_refused_by_the_store(session, session_factory, make_user, make_event):
    hiker = await make_user("alice")
    event = await make_event(total_seats=3)
    event_id = event.id

    # somebody else takes two seats after this session loaded the event
    async with session_factory() as other:
        await other.execute(update(Event).where(Event.id == event.id).values(seats_available=1))
        await other.commit()

    assert event.seats_available == 3
    with pytest.raises(InsufficientSeats):
        await create_booking(session, event, hiker, 2)

    stored = await load_event(session, event_id, fresh=True)
    assert stored.seats_available == 1
    assert stored.status == "available"
    assert await registration_count(session, event_id) == 0


async def test_insufficient_seats_in_token_bucket(session, make_user, make_event, monkeypatch):
    hiker = await make_user("alice")
    event = await make_event(total_seats=3)

    async def no_tokens(event_id, seats):
        return False

    monkeypatch.setattr(booking_service, "try_acquire_seats", no_tokens)
    with pytest.raises(InsufficientSeats):
        await create_booking(session, event, hiker, 1, use_redis_token_bucket=True)

    stored = await load_event(session, event.id, fresh=True)
    assert stored.seats_available == 3


async def test_tokens_are_refunded_when_the_store_refuses(session, session_factory, make_user, make_event,
                                                          monkeypatch):
    hiker = await make_user("alice")
    event = await make_event(total_seats=3)
    refunds = []
    event_id = event.id

    async def take_tokens(event_id, seats):
        return True

    async def refund(event_id, seats):
        refunds.append((event_id, seats))

    monkeypatch.setattr(booking_service, "try_acquire_seats", take_tokens)
    monkeypatch.setattr(booking_service, "refund_seats", refund)

    async with session_factory() as other:
        await other.execute(update(Event).where(Event.id == event.id).values(seats_available=0))
        await other.commit()

    with pytest.raises(InsufficientSeats):
        await create_booking(session, event, hiker, 2, use_redis_token_bucket=True)
    assert refunds == [(event_id, 2)]


async def test_missing_token_key_falls_back_to_the_store(session, make_user, make_event, monkeypatch):
    hiker = await make_user("alice")
    event = await make_event(total_seats=3)

    async def no_key(event_id, seats):
        return None

    monkeypatch.setattr(booking_service, "try_acquire_seats", no_key)
    await create_booking(session, event, hiker, 3, use_redis_token_bucket=True)

    stored = await load_event(session, event.id, fresh=True)
    assert stored.seats_available == 0
    assert stored.status == "fully-booked"


async def test_request_above_remaining_seats_leaves_event_unchanged(session, make_user, make_event):
    hiker = await make_user("alice")
    event = await make_event(total_seats=4, seats_available=1)

    with pytest.raises(InsufficientSeats):
        await create_booking(session, event, hiker, 2)

    stored = await load_event(session, event.id, fresh=True)
    assert stored.seats_available == 1
    assert stored.status == "available"
    assert await registration_count(session, event.id) == 0
