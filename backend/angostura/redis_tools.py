# backend/angostura/redis_tools.py
"""
Redis seat counters, one per event, mirroring events.seats_available.

They only let the booking path turn away requests that cannot fit before
the database is touched. The database stays authoritative: every helper is
best-effort and a missing counter or a Redis outage means "ask the database".
"""
import os
import logging

import redis.asyncio as redis_client

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
USE_REDIS_TOKEN_BUCKET = os.getenv("USE_REDIS_TOKEN_BUCKET", "1").lower() in ("1", "true", "yes")

redis = redis_client.from_url(REDIS_URL, encoding="utf-8", decode_responses=True)

# 1 taken, 0 not enough seats, -1 no counter for this event
TAKE_SEATS_LUA = """
local left = tonumber(redis.call("GET", KEYS[1]) or "-1")
local wanted = tonumber(ARGV[1])
if left == -1 then
  return -1
end
if left < wanted then
  return 0
end
redis.call("DECRBY", KEYS[1], wanted)
return 1
"""
take_seats = redis.register_script(TAKE_SEATS_LUA)


def seat_key(event_id: int) -> str:
    return f"event:{event_id}:seats"


async def try_acquire_seats(event_id: int, seats: int = 1) -> bool | None:
    """True when the seats were taken, False when fewer are left, None when Redis can't tell."""
    try:
        outcome = int(await take_seats(keys=[seat_key(event_id)], args=[seats]))
    except Exception as exc:
        logging.exception("Redis error taking %s seat(s) for event %s: %s", seats, event_id, exc)
        return None
    if outcome == -1:
        return None
    return outcome == 1


async def refund_seats(event_id: int, seats: int = 1) -> None:
    try:
        await redis.incrby(seat_key(event_id), int(seats))
    except Exception as exc:
        logging.exception("Redis error refunding seats for event %s: %s", event_id, exc)


async def sync_seats(event_id: int, seats_available: int) -> None:
    """Overwrite the counter after event creation or an admin edit."""
    if not USE_REDIS_TOKEN_BUCKET:
        return
    try:
        await redis.set(seat_key(event_id), int(seats_available))
    except Exception as exc:
        logging.exception("Redis error syncing seats for event %s: %s", event_id, exc)


async def drop_seats(event_id: int) -> None:
    if not USE_REDIS_TOKEN_BUCKET:
        return
    try:
        await redis.delete(seat_key(event_id))
    except Exception as exc:
        logging.exception("Redis error dropping seats for event %s: %s", event_id, exc)
