# backend/scripts/seed_demo.py
"""
Usage:
  # ensure DATABASE_URL (and REDIS_URL when USE_REDIS_TOKEN_BUCKET=1) are set
  python backend/scripts/seed_demo.py
This script will:
 - create an admin, a provider and two regular users (password: demo1234)
 - create a handful of upcoming events owned by the provider
 - initialize Redis seat counters for each event
Running it twice is safe; existing accounts and events are left alone.
"""
import asyncio
import os
import sys
from datetime import datetime, time, timedelta

# The script is in backend/scripts/; the angostura package is one level up
BACKEND_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from sqlalchemy import select

from angostura import auth
from angostura.calendar_grid import DISPLAY_TZ
from angostura.db import AsyncSessionLocal
from angostura.models import Event
from angostura.services.events import EventDraft, create_event
from angostura.services.profiles import SignUpForm, get_profile, sign_up
from angostura.timeutils import utcnow

DEMO_PASSWORD = "demo1234"

DEMO_USERS = [
    {"username": "admin", "full_name": "Angostura Admin", "email": "admin@example.com", "role": "admin"},
    {"username": "guide", "full_name": "Carol Guide", "email": "guide@example.com", "role": "provider"},
    {"username": "alice", "full_name": "Alice Walker", "email": "alice@example.com", "role": None},
    {"username": "bob", "full_name": "Bob Rivers", "email": "bob@example.com", "role": None},
]

# (title, days from today, start hour, length in hours, difficulty, seats)
DEMO_EVENTS = [
    ("Canyon Sunrise Hike", 3, 6, 4, "Beginner", 5),
    ("River Kayak Tour", 7, 9, 3, "Intermediate", 12),
    ("Two-Day Summit Trek", 14, 7, 33, "Advanced", 8),
    ("Birdwatching Walk", 20, 8, 2, "Beginner", 20),
]


async def ensure_user(session, spec):
    identity = await auth.find_identity(session, spec["email"])
    if identity is not None:
        return await get_profile(session, identity.id), False

    profile = await sign_up(session, SignUpForm(
        username=spec["username"],
        full_name=spec["full_name"],
        email=spec["email"],
        phone="+58 285 555 0100",
        age=30,
        password=DEMO_PASSWORD,
        confirm_password=DEMO_PASSWORD,
        country_of_residence="Venezuela",
        city_town_name="Ciudad Bolivar",
    ))
    profile.is_admin = spec["role"] == "admin"
    profile.is_provider = spec["role"] == "provider"
    await session.commit()
    return profile, True


async def seed():
    async with AsyncSessionLocal() as session:
        created_users = []
        provider = None
        for spec in DEMO_USERS:
            profile, created = await ensure_user(session, spec)
            if created:
                created_users.append(spec["email"])
            if spec["role"] == "provider":
                provider = profile

        today = utcnow().astimezone(DISPLAY_TZ).date()
        created_events = []
        for title, days, hour, hours, difficulty, seats in DEMO_EVENTS:
            res = await session.execute(select(Event).where(Event.title == title))
            if res.scalars().first():
                continue
            start = datetime.combine(today + timedelta(days=days), time(hour), tzinfo=DISPLAY_TZ)
            draft = EventDraft(
                title=title,
                description=f"{title} with a local guide. Bring water and comfortable shoes.",
                start_time=start,
                end_time=start + timedelta(hours=hours),
                difficulty=difficulty,
                total_seats=seats,
                event_start_location="Paseo Orinoco, Ciudad Bolivar",
            )
            # create_event also initializes the Redis seat counter
            event = await create_event(session, draft, owner_id=provider.id if provider else None)
            created_events.append(event.title)

    print("Seed complete.")
    print("Users created:", created_users)
    print("Events created:", created_events)


if __name__ == "__main__":
    asyncio.run(seed())
