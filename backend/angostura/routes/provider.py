from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.db import get_session
from angostura.models import Event, EventRegistration, UserProfile
from angostura.routes.admin import EventCreate, StatusUpdate
from angostura.routes.deps import require_provider
from angostura.routes.events import EventOut
from angostura.services.events import booked_seats, create_event, delete_event, set_event_status

provider_router = APIRouter(prefix="/provider")


class ProviderEventOut(EventOut):
    registrations_count: int
    seats_booked: int


@provider_router.get("/events", response_model=List[ProviderEventOut])
async def provider_events(session: AsyncSession = Depends(get_session),
                          provider: UserProfile = Depends(require_provider)):
    """Own events with booking totals. Attendee contact details are not exposed here."""
    res = await session.execute(
        select(Event).where(Event.event_owner_id == provider.id).order_by(Event.start_time)
    )
    events = res.scalars().all()
    event_ids = [e.id for e in events]
    registrations: list[EventRegistration] = []
    if event_ids:
        res_r = await session.execute(select(EventRegistration).where(EventRegistration.event_id.in_(event_ids)))
        registrations = list(res_r.scalars().all())

    out: list[ProviderEventOut] = []
    for e in events:
        base = EventOut.model_validate(e).model_dump()
        out.append(
            ProviderEventOut(
                **base,
                registrations_count=sum(1 for r in registrations if r.event_id == e.id),
                seats_booked=booked_seats(registrations, e.id),
            )
        )
    return out


@provider_router.post("/events", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def provider_create_event(payload: EventCreate, session: AsyncSession = Depends(get_session),
                                provider: UserProfile = Depends(require_provider)):
    return await create_event(session, payload.to_draft(), owner_id=provider.id)


@provider_router.patch("/events/{event_id}/status", response_model=EventOut)
async def provider_set_status(event_id: int, payload: StatusUpdate, session: AsyncSession = Depends(get_session),
                              provider: UserProfile = Depends(require_provider)):
    return await set_event_status(session, event_id, payload.status, provider=provider)


@provider_router.delete("/events/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def provider_delete_event(event_id: int, session: AsyncSession = Depends(get_session),
                                provider: UserProfile = Depends(require_provider)):
    await delete_event(session, event_id, provider)
    return None
