"""
Unit tests for the guest session identity.
"""
import re
from datetime import datetime, timedelta, timezone

import pytest

from storefront.services.guest_session_service import GuestSessionStore, STORAGE_KEY, EXPIRY_KEY


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class BrokenStorage(dict):
    """Mapping whose every access fails, like a blocked cookie jar."""

    def get(self, *args, **kwargs):
        raise OSError('storage blocked')

    def __setitem__(self, key, value):
        raise OSError('storage blocked')

    def pop(self, *args, **kwargs):
        raise OSError('storage blocked')


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


class TestGetOrCreate:
    """Tests for minting and reusing the session id."""

    def test_first_call_mints_and_persists_id(self, clock):
        storage = {}
        store = GuestSessionStore(storage=storage, clock=clock)

        session_id = store.get_or_create_session_id()

        assert re.match(r'^guest_\d+_[a-z0-9]{9}$', session_id)
        assert storage[STORAGE_KEY] == session_id
        assert storage[EXPIRY_KEY] == (clock() + timedelta(days=7)).isoformat()

    def test_second_call_returns_same_id(self, clock):
        store = GuestSessionStore(storage={}, clock=clock)

        first = store.get_or_create_session_id()
        clock.advance(days=3)

        assert store.get_or_create_session_id() == first

    def test_ids_are_unique(self, clock):
        ids = {GuestSessionStore(storage={}, clock=clock).get_or_create_session_id() for _ in range(50)}
        assert len(ids) == 50

    def test_expired_session_is_regenerated(self, clock):
        """After the 7-day window the old id is discarded and a new one issued."""
        storage = {}
        store = GuestSessionStore(storage=storage, expiry_days=7, clock=clock)
        old_id = store.get_or_create_session_id()

        clock.advance(days=7, seconds=1)
        new_id = store.get_or_create_session_id()

        assert new_id != old_id
        assert storage[STORAGE_KEY] == new_id
        assert storage[EXPIRY_KEY] == (clock() + timedelta(days=7)).isoformat()

    def test_unreadable_expiry_counts_as_expired(self, clock):
        storage = {STORAGE_KEY: 'guest_1_abc', EXPIRY_KEY: 'not-a-date'}
        store = GuestSessionStore(storage=storage, clock=clock)

        assert store.get_or_create_session_id() != 'guest_1_abc'


class TestReadsAndClear:
    """Tests for non-mutating reads and clearing."""

    def test_peek_does_not_mint(self, clock):
        storage = {}
        store = GuestSessionStore(storage=storage, clock=clock)

        assert store.peek_session_id() is None
        assert store.has_active_session() is False
        assert storage == {}

    def test_peek_after_create(self, clock):
        store = GuestSessionStore(storage={}, clock=clock)
        session_id = store.get_or_create_session_id()

        assert store.peek_session_id() == session_id
        assert store.has_active_session() is True

    def test_clear_removes_id_and_expiry(self, clock):
        storage = {}
        store = GuestSessionStore(storage=storage, clock=clock)
        store.get_or_create_session_id()

        store.clear_session()

        assert STORAGE_KEY not in storage
        assert EXPIRY_KEY not in storage
        assert store.has_active_session() is False


class TestUnavailableStorage:
    """Storage failures degrade to None / no-op."""

    def test_operations_never_raise(self, clock):
        store = GuestSessionStore(storage=BrokenStorage(), clock=clock)

        assert store.get_or_create_session_id() is None
        assert store.peek_session_id() is None
        assert store.has_active_session() is False
        store.clear_session()

    def test_flask_session_outside_request_is_unavailable(self, clock):
        """Default storage is the Flask session; without a request there is none."""
        store = GuestSessionStore(clock=clock)

        assert store.get_or_create_session_id() is None
        assert store.peek_session_id() is None
