from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.calendar_grid import DISPLAY_TZ
from angostura.db import get_session
from angostura.models import EventRegistration, UserProfile
from angostura.routes.auth import ProfileOut
from angostura.routes.booking import MyRegistrationOut
from angostura.routes.deps import require_admin
from angostura.routes.events import EventOut
from angostura.services.events import (
    EventDraft,
    EventFilter,
    booked_seats,
    create_event,
    describe_registrations,
    event_stats,
    filter_events,
    get_event,
    list_events,
    set_event_status,
    update_event,
)
from angostura.timeutils import utcnow

EventStatus = Literal["available", "fully-booked", "cancelled"]
Difficulty = Literal["Beginner", "Intermediate", "Advanced"]

admin_router = APIRouter(prefix="/admin")


class EventCreate(BaseModel):
    title: str = ""
    description: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    difficulty: Difficulty = "Beginner"
    total_seats: int = 10
    event_start_location: Optional[str] = None

    def to_draft(self) -> EventDraft:
        return EventDraft(**self.model_dump())


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=0)
    difficulty: Optional[Difficulty] = None
    seats_available: Optional[int] = Field(None, ge=0)
    total_seats: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatus] = None
    event_start_location: Optional[str] = None


class StatusUpdate(BaseModel):
    status: EventStatus


class AdminEventsOut(BaseModel):
    events: List[EventOut]
    stats: Dict[str, int]


class AttendeeOut(BaseModel):
    registration_id: int
    user_id: int
    username: str
    full_name: str
    email: str
    phone: str
    seats_requested: int
    registration_date: datetime


class EventRegistrationsOut(BaseModel):
    event: EventOut
    total_seats_booked: int
    registrations: List[AttendeeOut]


async def _all_users(session: AsyncSession) -> List[UserProfile]:
    res = await session.execute(select(UserProfile).order_by(UserProfile.created_at.desc(), UserProfile.id.desc()))
    return list(res.scalars().all())


async def _all_registrations(session: AsyncSession) -> List[EventRegistration]:
    res = await session.execute(select(EventRegistration).order_by(EventRegistration.registration_date.desc()))
    return list(res.scalars().all())


@admin_router.get("/events", response_model=AdminEventsOut)
async def admin_list_events(kind: Literal["all", "date", "month", "year"] = Query("all", alias="filter"),
                            day: Optional[date] = Query(None, alias="date"),
                            month: Optional[int] = Query(None, ge=1, le=12),
                            year: Optional[int] = Query(None),
                            session: AsyncSession = Depends(get_session),
                            _=Depends(require_admin)):
    """
    Events filtered by exact date, by month and year, or by year. The filter
    runs over the loaded collection; filter=all returns everything.
    """
    today = utcnow().astimezone(DISPLAY_TZ)
    month = month or today.month
    year = year or today.year

    events = await list_events(session)
    filtered = filter_events(events, EventFilter(kind=kind, day=day, month=month, year=year))
    users = await _all_users(session)
    registrations = await _all_registrations(session)
    return AdminEventsOut(
        events=[EventOut.model_validate(e) for e in filtered],
        stats=event_stats(events, filtered, users, registrations),
    )


@admin_router.post("/events", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def admin_create_event(payload: EventCreate, session: AsyncSession = Depends(get_session),
                             _=Depends(require_admin)):
    return await create_event(session, payload.to_draft())


@admin_router.put("/events/{event_id}", response_model=EventOut)
async def admin_update_event(event_id: int, payload: EventUpdate, session: AsyncSession = Depends(get_session),
                             _=Depends(require_admin)):
    return await update_event(session, event_id, payload.model_dump(exclude_unset=True))


@admin_router.patch("/events/{event_id}/status", response_model=EventOut)
async def admin_set_status(event_id: int, payload: StatusUpdate, session: AsyncSession = Depends(get_session),
                           _=Depends(require_admin)):
    return await set_event_status(session, event_id, payload.status)


@admin_router.get("/users", response_model=List[ProfileOut])
async def admin_list_users(session: AsyncSession = Depends(get_session), _=Depends(require_admin)):
    return await _all_users(session)


@admin_router.get("/registrations", response_model=List[MyRegistrationOut])
async def admin_list_registrations(session: AsyncSession = Depends(get_session), _=Depends(require_admin)):
    registrations = await _all_registrations(session)
    events = await list_events(session)
    return [
        MyRegistrationOut(
            id=view.id,
            user_id=view.user_id,
            event_id=view.event_id,
            seats_requested=view.seats_requested,
            registration_date=view.registration_date,
            event_title=view.event_title,
        )
        for view in describe_registrations(registrations, events)
    ]


@admin_router.get("/events/{event_id}/registrations", response_model=EventRegistrationsOut)
async def admin_event_registrations(event_id: int, session: AsyncSession = Depends(get_session),
                                    _=Depends(require_admin)):
    event = await get_event(session, event_id)
    res = await session.execute(
        select(EventRegistration)
        .where(EventRegistration.event_id == event_id)
        .order_by(EventRegistration.registration_date.desc())
    )
    registrations = list(res.scalars().all())
    users = await _all_users(session)

    out: list[AttendeeOut] = []
    for view in describe_registrations(registrations, [event], users):
        if view.user is None:
            continue
        out.append(
            AttendeeOut(
                registration_id=view.id,
                user_id=view.user_id,
                username=view.user.username,
                full_name=view.user.full_name,
                email=view.user.email,
                phone=view.user.phone,
                seats_requested=view.seats_requested,
                registration_date=view.registration_date,
            )
        )
    return EventRegistrationsOut(
        event=EventOut.model_validate(event),
        total_seats_booked=booked_seats(registrations, event_id),
        registrations=out,
    )
