# backend/angostura/notifications.py
"""Booking confirmation emails through the Resend API."""
import html
import logging
import os
from datetime import datetime
from typing import Optional

import httpx

from angostura.calendar_grid import DISPLAY_TZ
from angostura.errors import NotificationError
from angostura.models import Event, UserProfile
from angostura.timeutils import as_utc

logger = logging.getLogger(__name__)

RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
FROM_EMAIL = os.getenv("FROM_EMAIL", "noreply@expedicionesangostura.com")
TIMEOUT_SECONDS = float(os.getenv("RESEND_TIMEOUT_SECONDS", 10))


def format_duration(minutes: int) -> str:
    return f"{minutes // 60}h {minutes % 60}m"


def _local(value: datetime) -> datetime:
    return as_utc(value).astimezone(DISPLAY_TZ)


def render_confirmation(event: Event, user: UserProfile, seats_requested: int) -> tuple[str, str]:
    """Return (subject, html body)."""
    start = _local(event.start_time)
    end = _local(event.end_time)
    seats = f"{seats_requested} seat{'s' if seats_requested > 1 else ''}"
    location = ""
    if event.event_start_location:
        location = (
            '<div class="location"><span class="label">Event Location:</span> '
            f"{html.escape(event.event_start_location)}</div>"
        )

    subject = f"Event Registration Confirmation - {event.title}"
    body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Event Registration Confirmation</title></head>
<body>
  <h1>Registration Confirmed!</h1>
  <p>Dear {html.escape(user.full_name)},</p>
  <p>We're excited to confirm your registration for the following event:</p>
  <div class="event-details">
    <h2>{html.escape(event.title)}</h2>
    <div><span class="label">Date:</span> {start:%A, %B} {start.day}, {start.year}</div>
    <div><span class="label">Time:</span> {start:%I:%M %p} - {end:%I:%M %p}</div>
    <div><span class="label">Duration:</span> {format_duration(event.duration)}</div>
    <div><span class="label">Difficulty:</span> {html.escape(event.difficulty)}</div>
    <div><span class="label">Seats Reserved:</span> {seats}</div>
    {location}
    <h3>Event Description:</h3>
    <p>{html.escape(event.description)}</p>
  </div>
  <p>We look forward to seeing you at the event!</p>
  <p>Best regards,<br><strong>Expediciones Angostura Team</strong></p>
  <p class="footer">This is an automated confirmation email. Please do not reply to this message.</p>
</body>
</html>"""
    return subject, body


class ConfirmationMailer:
    """Sends confirmation emails. Failures raise NotificationError; they never touch the booking."""

    def __init__(self, api_key: Optional[str] = RESEND_API_KEY, api_url: str = RESEND_API_URL,
                 from_email: str = FROM_EMAIL, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.from_email = from_email
        self._transport = transport

    async def send_booking_confirmation(self, event: Event, user: UserProfile, seats_requested: int) -> str:
        if not self.api_key:
            logger.error("RESEND_API_KEY not configured")
            raise NotificationError("Email service not configured")

        subject, body = render_confirmation(event, user, seats_requested)
        payload = {"from": self.from_email, "to": [user.email], "subject": subject, "html": body}
        try:
            async with httpx.AsyncClient(timeout=TIMEOUT_SECONDS, transport=self._transport) as client:
                r = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            logger.exception("Failed to reach email service")
            raise NotificationError(str(exc)) from exc

        if r.status_code >= 400:
            logger.error("Failed to send email: %s %s", r.status_code, r.text)
            raise NotificationError(r.text)

        try:
            email_id = r.json().get("id", "")
        except ValueError:
            email_id = ""
        logger.info("Confirmation email %s sent to user %s for event %s", email_id, user.id, event.id)
        return email_id


def get_mailer() -> ConfirmationMailer:
    return ConfirmationMailer()
