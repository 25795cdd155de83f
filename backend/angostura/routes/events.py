from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.calendar_grid import DISPLAY_TZ, compute_grid, shift_month
from angostura.db import get_session
from angostura.services.events import get_event, list_events
from angostura.timeutils import utcnow


router = APIRouter()


class EventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    start_time: datetime
    end_time: datetime
    duration: int
    difficulty: str
    seats_available: int
    total_seats: int
    status: str
    event_start_location: Optional[str] = None
    event_owner_id: Optional[int] = None


class MonthRef(BaseModel):
    year: int
    month: int


class CalendarDayOut(BaseModel):
    day: date
    in_month: bool
    events: List[EventOut]


class CalendarOut(BaseModel):
    year: int
    month: int
    previous: MonthRef
    next: MonthRef
    days: List[CalendarDayOut]


@router.get("/events", response_model=List[EventOut])
async def get_events(session: AsyncSession = Depends(get_session)):
    return await list_events(session)


@router.get("/events/{event_id}", response_model=EventOut)
async def get_one_event(event_id: int, session: AsyncSession = Depends(get_session)):
    return await get_event(session, event_id)


@router.get("/calendar", response_model=CalendarOut)
async def get_calendar(year: Optional[int] = Query(None, ge=1, le=9999),
                       month: Optional[int] = Query(None, ge=1, le=12),
                       session: AsyncSession = Depends(get_session)):
    today = utcnow().astimezone(DISPLAY_TZ)
    year = year or today.year
    month = month or today.month

    events = await list_events(session)
    try:
        grid = compute_grid(year, month, events)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    prev_year, prev_month = shift_month(year, month, -1)
    next_year, next_month = shift_month(year, month, 1)
    return CalendarOut(
        year=year,
        month=month,
        previous=MonthRef(year=prev_year, month=prev_month),
        next=MonthRef(year=next_year, month=next_month),
        days=[
            CalendarDayOut(
                day=day,
                in_month=grid.in_month(day),
                events=[EventOut.model_validate(event) for event in grid.events_on(day)],
            )
            for day in grid.days
        ],
    )
