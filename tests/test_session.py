"""Tests for the SessionStore state machine and its persistence."""

from datetime import datetime, timedelta, timezone

import pytest

from whawty_console.session import (
    KEY_ADMIN,
    KEY_LASTCHANGED,
    KEY_SESSION,
    KEY_USERNAME,
    SESSION_KEYS,
    SessionState,
    SessionStore,
)
from whawty_console.storage import FileStorage, MemoryStorage

TS = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _persisted(**overrides):
    data = {
        KEY_USERNAME: "alice",
        KEY_ADMIN: "true",
        KEY_LASTCHANGED: "2024-01-01T00:00:00+00:00",
        KEY_SESSION: "tok1",
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


class TestLoginRestore:
    def test_restore_after_login_reproduces_session(self):
        storage = MemoryStorage()
        session = SessionStore(storage).login("alice", True, TS, "tok1")
        restored = SessionStore(storage).restore()
        assert restored == session
        assert restored.token == "tok1"

    @pytest.mark.parametrize("is_admin", [True, False])
    def test_roundtrip_roles(self, is_admin):
        storage = MemoryStorage()
        SessionStore(storage).login("bob", is_admin, TS, "t")
        restored = SessionStore(storage).restore()
        assert restored.is_admin is is_admin

    def test_roundtrip_through_file(self, tmp_path):
        path = tmp_path / "session.json"
        session = SessionStore(FileStorage(path)).login("alice", False, TS, "tok1")
        assert SessionStore(FileStorage(path)).restore() == session

    def test_login_persists_all_four_fields(self):
        storage = MemoryStorage()
        SessionStore(storage).login("alice", True, TS, "tok1")
        assert storage.snapshot() == {
            KEY_USERNAME: "alice",
            KEY_ADMIN: "true",
            KEY_LASTCHANGED: TS.isoformat(),
            KEY_SESSION: "tok1",
        }

    def test_state_and_role(self):
        store = SessionStore(MemoryStorage())
        assert store.state is SessionState.LOGGED_OUT
        assert store.role is None
        store.login("alice", True, TS, "tok1")
        assert store.state is SessionState.LOGGED_IN
        assert store.role == "admin"


class TestRestoreFailSafe:
    @pytest.mark.parametrize("missing", SESSION_KEYS)
    def test_any_missing_field_means_logged_out(self, missing):
        storage = MemoryStorage(_persisted(**{missing: None}))
        store = SessionStore(storage)
        assert store.restore() is None
        assert store.session is None
        assert store.state is SessionState.LOGGED_OUT

    @pytest.mark.parametrize("key,value", [
        (KEY_USERNAME, ""),
        (KEY_SESSION, ""),
        (KEY_ADMIN, "yes"),
        (KEY_ADMIN, ""),
        (KEY_LASTCHANGED, "not a date"),
        (KEY_LASTCHANGED, ""),
    ])
    def test_malformed_field_means_logged_out(self, key, value):
        store = SessionStore(MemoryStorage(_persisted(**{key: value})))
        assert store.restore() is None

    def test_empty_storage(self):
        assert SessionStore(MemoryStorage()).restore() is None

    def test_restore_does_not_write(self):
        storage = MemoryStorage(_persisted(**{KEY_SESSION: None}))
        before = storage.snapshot()
        SessionStore(storage).restore()
        assert storage.snapshot() == before


class TestLoginValidation:
    @pytest.mark.parametrize("args", [
        ("", True, TS, "tok"),
        ("alice", "true", TS, "tok"),
        ("alice", True, "2024-01-01", "tok"),
        ("alice", True, TS, ""),
        (None, True, TS, "tok"),
    ])
    def test_rejects_partial_sessions(self, args):
        storage = MemoryStorage()
        store = SessionStore(storage)
        with pytest.raises(ValueError):
            store.login(*args)
        assert store.session is None
        assert storage.snapshot() == {}


class TestLogout:
    def test_logout_clears_memory_and_storage(self):
        storage = MemoryStorage()
        store = SessionStore(storage)
        store.login("alice", True, TS, "tok1")
        store.logout()
        assert store.session is None
        assert storage.snapshot() == {}

    def test_logout_is_idempotent(self):
        storage = MemoryStorage()
        store = SessionStore(storage)
        store.login("alice", True, TS, "tok1")
        store.logout()
        first = storage.snapshot()
        store.logout()
        assert storage.snapshot() == first == {}

    def test_logout_when_never_logged_in(self):
        store = SessionStore(MemoryStorage())
        store.logout()
        assert store.state is SessionState.LOGGED_OUT

    def test_logout_clears_partial_leftovers(self):
        storage = MemoryStorage(_persisted(**{KEY_SESSION: None}))
        store = SessionStore(storage)
        assert store.restore() is None
        store.logout()
        assert storage.snapshot() == {}

    def test_other_keys_untouched(self):
        storage = MemoryStorage({"theme": "dark"})
        store = SessionStore(storage)
        store.login("alice", True, TS, "tok1")
        store.logout()
        assert storage.snapshot() == {"theme": "dark"}


class TestListeners:
    def test_notified_on_each_transition(self):
        store = SessionStore(MemoryStorage())
        seen = []
        store.subscribe(lambda s: seen.append(s.role))
        store.login("alice", False, TS, "tok1")
        store.logout()
        store.logout()
        assert seen == ["user", None]

    def test_restore_notifies(self):
        storage = MemoryStorage(_persisted())
        store = SessionStore(storage)
        seen = []
        store.subscribe(lambda s: seen.append(s.role))
        store.restore()
        assert seen == ["admin"]

    def test_unsubscribe(self):
        store = SessionStore(MemoryStorage())
        seen = []
        unsubscribe = store.subscribe(lambda s: seen.append(s.state))
        unsubscribe()
        store.login("alice", False, TS, "tok1")
        assert seen == []


class TestTimezones:
    def test_naive_last_changed_taken_as_utc(self):
        storage = MemoryStorage()
        session = SessionStore(storage).login("alice", True, datetime(2024, 1, 1, 12), "tok1")
        assert session.last_changed == datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        assert SessionStore(storage).restore() == session

    def test_offset_preserved(self):
        storage = MemoryStorage()
        ts = datetime(2024, 1, 1, 12, tzinfo=timezone(timedelta(hours=2)))
        session = SessionStore(storage).login("alice", False, ts, "tok1")
        assert SessionStore(storage).restore() == session


class _CountingStorage(MemoryStorage):
    def __init__(self, initial=None):
        super().__init__(initial)
        self.reads = 0

    def get(self, key):
        self.reads += 1
        return super().get(key)

    def snapshot(self):
        self.reads += 1
        return super().snapshot()


def test_restore_reads_storage_once():
    storage = _CountingStorage(_persisted())
    assert SessionStore(storage).restore() is not None
    assert storage.reads == 1
