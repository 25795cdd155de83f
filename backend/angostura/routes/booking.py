import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.db import get_session
from angostura.errors import NotificationError
from angostura.models import UserProfile
from angostura.notifications import ConfirmationMailer, get_mailer
from angostura.routes.deps import get_current_user, get_optional_user
from angostura.routes.events import EventOut
from angostura.services.booking import create_booking, ensure_bookable, load_event, user_registrations
from angostura.services.events import describe_registrations, list_events

logger = logging.getLogger(__name__)

router = APIRouter()


class BookingRequest(BaseModel):
    event_id: int
    seats_requested: int = 1


class RegistrationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    event_id: int
    seats_requested: int
    registration_date: datetime


class MyRegistrationOut(RegistrationOut):
    event_title: str


class BookingOut(BaseModel):
    message: str
    registration: RegistrationOut
    event: EventOut
    registrations: List[RegistrationOut]
    notification: str
    notification_message: Optional[str] = None


@router.post("/bookings", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def post_booking(req: BookingRequest,
                       session: AsyncSession = Depends(get_session),
                       user: Optional[UserProfile] = Depends(get_optional_user),
                       mailer: ConfirmationMailer = Depends(get_mailer)):
    event = await load_event(session, req.event_id)
    ensure_bookable(event)

    registration = await create_booking(session, event, user, req.seats_requested)

    # reload from storage; the decrement happened in SQL
    event = await load_event(session, req.event_id, fresh=True)
    registrations = await user_registrations(session, user.id)

    notification = "sent"
    notification_message = None
    try:
        await mailer.send_booking_confirmation(event, user, req.seats_requested)
    except NotificationError as exc:
        logger.warning("Booking %s confirmed but email failed: %s", registration.id, exc.detail)
        notification = "failed"
        notification_message = exc.message

    return BookingOut(
        message=f"Successfully registered for {req.seats_requested} seat(s)!",
        registration=RegistrationOut.model_validate(registration),
        event=EventOut.model_validate(event),
        registrations=[RegistrationOut.model_validate(r) for r in registrations],
        notification=notification,
        notification_message=notification_message,
    )


@router.get("/users/me/registrations", response_model=List[MyRegistrationOut])
async def my_registrations(session: AsyncSession = Depends(get_session),
                           user: UserProfile = Depends(get_current_user)):
    registrations = await user_registrations(session, user.id)
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
