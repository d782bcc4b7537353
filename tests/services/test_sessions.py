"""Tests for the in-memory session store."""

from datetime import timedelta

from camrelay.services.sessions import ROLE_ADMIN, ROLE_USER, SessionStore


def test_create_and_get(session_store: SessionStore) -> None:
    session = session_store.create("admin", ROLE_ADMIN)

    assert session.expires_at - session.created_at == timedelta(hours=24)
    assert session_store.get(session.token) == session
    assert session.is_admin


def test_tokens_are_unique(session_store: SessionStore) -> None:
    tokens = {session_store.create("user", ROLE_USER).token for _ in range(50)}
    assert len(tokens) == 50


def test_session_expires_after_ttl(session_store: SessionStore, clock) -> None:
    session = session_store.create("user", ROLE_USER)

    clock.advance(24 * 60 * 60 - 1)
    assert session_store.get(session.token) is not None

    clock.advance(1)
    assert session_store.get(session.token) is None
    assert len(session_store) == 0


def test_destroy(session_store: SessionStore) -> None:
    session = session_store.create("user", ROLE_USER)
    assert session_store.destroy(session.token) is True
    assert session_store.get(session.token) is None
    assert session_store.destroy(session.token) is False


def test_purge_expired(session_store: SessionStore, clock) -> None:
    session_store.create("user", ROLE_USER)
    clock.advance(12 * 60 * 60)
    fresh = session_store.create("admin", ROLE_ADMIN)
    clock.advance(12 * 60 * 60)

    assert session_store.purge_expired() == 1
    assert session_store.get(fresh.token) == fresh
