"""Email/password identities, bearer sessions and the sign-in/sign-out channel."""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional, Union

from sqlalchemy import delete as sqla_delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from angostura.models import AuthSession, AuthUser, UserProfile
from angostura.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

PBKDF2_SCHEME = "pbkdf2_sha256"
PBKDF2_ROUNDS = int(os.getenv("AUTH_PBKDF2_ROUNDS", 600_000))
PBKDF2_SALT_BYTES = 16
SESSION_TTL = timedelta(hours=int(os.getenv("AUTH_SESSION_TTL_HOURS", 24)))


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(PBKDF2_SALT_BYTES)
    hash_bytes = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ROUNDS)
    encoded_salt = base64.b64encode(salt).decode("ascii")
    encoded_hash = base64.b64encode(hash_bytes).decode("ascii")
    return f"{PBKDF2_SCHEME}${PBKDF2_ROUNDS}${encoded_salt}${encoded_hash}"


def verify_password(password: str, hashed: str) -> bool:
    try:
        scheme, rounds_text, salt_b64, hash_b64 = hashed.split("$", 3)
        rounds = int(rounds_text)
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(hash_b64)
    except (ValueError, TypeError, binascii.Error):
        return False
    if scheme != PBKDF2_SCHEME:
        return False

    calculated = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(expected, calculated)


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class SignedIn:
    profile: UserProfile


@dataclass(frozen=True)
class SignedOut:
    user_id: int


AuthEvent = Union[SignedIn, SignedOut]
Listener = Callable[[AuthEvent], None]


class Subscription:
    """Handle returned by AuthEvents.subscribe; delivery stops after unsubscribe()."""

    def __init__(self, channel: "AuthEvents", listener: Listener) -> None:
        self._channel = channel
        self._listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._channel._remove(self._listener)
            self._active = False


class AuthEvents:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def publish(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # a broken listener must not undo a sign-in
                logger.exception("Auth event listener %r failed", listener)


auth_events = AuthEvents()


def log_auth_event(event: AuthEvent) -> None:
    if isinstance(event, SignedIn):
        logger.info("User %s (%s) signed in", event.profile.id, event.profile.username)
    else:
        logger.info("User %s signed out", event.user_id)


async def create_identity(session: AsyncSession, email: str, password: str) -> AuthUser:
    """Add the identity and flush; the caller commits together with the profile."""
    user = AuthUser(email=normalize_email(email), password_hash=hash_password(password))
    session.add(user)
    await session.flush()
    return user


async def find_identity(session: AsyncSession, email: str) -> Optional[AuthUser]:
    res = await session.execute(select(AuthUser).where(AuthUser.email == normalize_email(email)))
    return res.scalars().first()


async def authenticate(session: AsyncSession, email: str, password: str) -> Optional[AuthUser]:
    user = await find_identity(session, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


async def open_session(session: AsyncSession, user_id: int) -> str:
    token = secrets.token_urlsafe(32)
    session.add(AuthSession(token=token, user_id=user_id, expires_at=utcnow() + SESSION_TTL))
    await session.commit()
    return token


async def resolve_session(session: AsyncSession, token: str) -> Optional[int]:
    res = await session.execute(select(AuthSession).where(AuthSession.token == token))
    record = res.scalars().first()
    if record is None:
        return None
    if as_utc(record.expires_at) <= utcnow():
        await session.execute(sqla_delete(AuthSession).where(AuthSession.token == token))
        await session.commit()
        return None
    return record.user_id


async def close_session(session: AsyncSession, token: str) -> None:
    await session.execute(sqla_delete(AuthSession).where(AuthSession.token == token))
    await session.commit()


async def set_password(session: AsyncSession, user_id: int, new_password: str) -> None:
    user = await session.get(AuthUser, user_id)
    if user is None:
        raise LookupError(f"no identity for user {user_id}")
    user.password_hash = hash_password(new_password)
    await session.commit()
