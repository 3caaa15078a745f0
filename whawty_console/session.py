"""SessionStore owns the authentication state and its persistence.

States: LOGGED_OUT and LOGGED_IN(role). The only transitions are login()
(LOGGED_OUT -> LOGGED_IN) and logout() (LOGGED_IN -> LOGGED_OUT); a 401 on an
authenticated call ends in logout() via the dispatcher.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from whawty_console.audit_log import AuditLog
from whawty_console.models import Role, Session, parse_timestamp
from whawty_console.storage import SessionStorage

KEY_USERNAME = "auth_username"
KEY_ADMIN = "auth_admin"
KEY_LASTCHANGED = "auth_lastchanged"
KEY_SESSION = "auth_session"

SESSION_KEYS: tuple[str, ...] = (KEY_USERNAME, KEY_ADMIN, KEY_LASTCHANGED, KEY_SESSION)

Listener = Callable[["SessionStore"], None]


class SessionState(Enum):
    LOGGED_OUT = "logged_out"
    LOGGED_IN = "logged_in"


class SessionStore:
    def __init__(self, storage: SessionStorage, audit_log: Optional[AuditLog] = None):
        self._storage = storage
        self._audit = audit_log or AuditLog()
        self._session: Optional[Session] = None
        self._listeners: list[Listener] = []

    # ── Read side ─────────────────────────────────────────────────────────

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def state(self) -> SessionState:
        return SessionState.LOGGED_IN if self._session else SessionState.LOGGED_OUT

    @property
    def role(self) -> Optional[Role]:
        return self._session.role if self._session else None

    @property
    def identity(self) -> Optional[str]:
        return self._session.identity if self._session else None

    @property
    def token(self) -> Optional[str]:
        return self._session.token if self._session else None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener after every login/logout transition. Returns an unsubscribe hook."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    # ── Transitions ───────────────────────────────────────────────────────

    def restore(self) -> Optional[Session]:
        """Rebuild the session from storage, or None if anything is missing or malformed."""
        # one read, so all four fields come from the same write
        stored = self._storage.snapshot()
        username = stored.get(KEY_USERNAME)
        admin = stored.get(KEY_ADMIN)
        lastchanged = stored.get(KEY_LASTCHANGED)
        token = stored.get(KEY_SESSION)

        if not username or not token or admin not in ("true", "false") or not lastchanged:
            self._audit.log("session_restore", detail="no stored session")
            return None
        try:
            last_changed = parse_timestamp(lastchanged)
        except ValueError:
            self._audit.log("session_restore", detail="malformed lastchanged")
            return None

        self._session = Session(
            identity=username,
            is_admin=admin == "true",
            last_changed=last_changed,
            token=token,
        )
        self._audit.log("session_restore", username=username, detail=self._session.role)
        self._notify()
        return self._session

    def login(self, identity: str, is_admin: bool, last_changed: datetime, token: str) -> Session:
        if not isinstance(identity, str) or not identity:
            raise ValueError("identity must be a non-empty string")
        if not isinstance(is_admin, bool):
            raise ValueError("is_admin must be a bool")
        if not isinstance(last_changed, datetime):
            raise ValueError("last_changed must be a datetime")
        if last_changed.tzinfo is None:
            last_changed = last_changed.replace(tzinfo=timezone.utc)
        if not isinstance(token, str) or not token:
            raise ValueError("token must be a non-empty string")

        session = Session(identity=identity, is_admin=is_admin, last_changed=last_changed, token=token)
        self._storage.set_many({
            KEY_USERNAME: identity,
            KEY_ADMIN: "true" if is_admin else "false",
            KEY_LASTCHANGED: last_changed.isoformat(),
            KEY_SESSION: token,
        })
        self._session = session
        self._audit.log("login", username=identity, detail=session.role)
        self._notify()
        return session

    def logout(self) -> None:
        """Drop the session and every persisted field. Safe to call repeatedly."""
        if self._session is None:
            # leftovers from a partial write by another console
            stored = self._storage.snapshot()
            if any(k in stored for k in SESSION_KEYS):
                self._storage.remove_many(SESSION_KEYS)
            return
        identity = self._session.identity
        self._storage.remove_many(SESSION_KEYS)
        self._session = None
        self._audit.log("logout", username=identity)
        self._notify()
