from datetime import timedelta

from sqlalchemy import select, update

from angostura import auth
from angostura.models import AuthSession, UserProfile
from angostura.timeutils import utcnow


def test_hash_and_verify_password():
    hashed = auth.hash_password("supersecurepassword")
    assert hashed.startswith("pbkdf2_sha256$")
    assert auth.verify_password("supersecurepassword", hashed)
    assert not auth.verify_password("wrong-password", hashed)


def test_hashes_are_salted():
    assert auth.hash_password("same") != auth.hash_password("same")


def test_malformed_hash_never_verifies():
    assert not auth.verify_password("anything", "not-a-hash")
    assert not auth.verify_password("anything", "md5$1$abc$def")
    assert not auth.verify_password("anything", "pbkdf2_sha256$many$abc$def")


def test_normalize_email():
    assert auth.normalize_email("  Alice@Example.COM ") == "alice@example.com"


def test_listeners_receive_events_until_unsubscribed():
    channel = auth.AuthEvents()
    received = []
    subscription = channel.subscribe(received.append)

    channel.publish(auth.SignedOut(1))
    subscription.unsubscribe()
    channel.publish(auth.SignedOut(2))

    assert received == [auth.SignedOut(1)]
    assert not subscription.active
    subscription.unsubscribe()  # second call is a no-op


def test_failing_listener_does_not_stop_delivery():
    channel = auth.AuthEvents()
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    channel.subscribe(broken)
    channel.subscribe(received.append)
    channel.publish(auth.SignedIn(UserProfile(id=3, username="carol")))

    assert [e.profile.id for e in received] == [3]


async def test_authenticate_ignores_email_case(session, make_user):
    await make_user("alice")

    identity = await auth.authenticate(session, "ALICE@example.com", "secret-pass")
    assert identity is not None
    assert await auth.authenticate(session, "alice@example.com", "wrong") is None
    assert await auth.authenticate(session, "nobody@example.com", "secret-pass") is None


async def test_session_round_trip(session, make_user):
    alice = await make_user("alice")

    token = await auth.open_session(session, alice.id)
    assert await auth.resolve_session(session, token) == alice.id

    await auth.close_session(session, token)
    assert await auth.resolve_session(session, token) is None


async def test_expired_session_is_dropped(session, make_user):
    alice = await make_user("alice")
    token = await auth.open_session(session, alice.id)
    await session.execute(
        update(AuthSession).where(AuthSession.token == token).values(expires_at=utcnow() - timedelta(minutes=1))
    )
    await session.commit()

    assert await auth.resolve_session(session, token) is None
    res = await session.execute(select(AuthSession).where(AuthSession.token == token))
    assert res.scalars().first() is None


async def test_set_password(session, make_user):
    alice = await make_user("alice")
    await auth.set_password(session, alice.id, "brand-new-pass")

    assert await auth.authenticate(session, "alice@example.com", "brand-new-pass") is not None
    assert await auth.authenticate(session, "alice@example.com", "secret-pass") is None
