"""Endpoint ABC with __init_subclass__ auto-registration.

One subclass per remote endpoint. Each knows its path, whether it needs the
session token, which request fields it requires, and how to decode a success
body into a typed response. Decoders never assume a field exists: a missing
or mistyped field raises ApiFailure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from whawty_console.errors import ApiFailure
from whawty_console.models import (
    AuthResponse,
    NameListResponse,
    UserListResponse,
    UsernameResponse,
    UserRecord,
    parse_timestamp,
)


class Endpoint(ABC):
    """Base class for all service endpoints.

    Subclasses auto-register by defining ``name`` as a class variable.
    """

    _registry: ClassVar[dict[str, type["Endpoint"]]] = {}

    name: ClassVar[str]
    requires_session: ClassVar[bool] = True
    request_fields: ClassVar[tuple[str, ...]] = ()

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if getattr(cls, "name", None):
            Endpoint._registry[cls.name] = cls

    @classmethod
    def get_registry(cls) -> dict[str, type["Endpoint"]]:
        return dict(cls._registry)

    @classmethod
    def get(cls, name: str) -> "Endpoint":
        if name not in cls._registry:
            raise ValueError(f"Unknown endpoint: {name}. Available: {sorted(cls._registry)}")
        return cls._registry[name]()

    @property
    def path(self) -> str:
        return f"/api/{self.name}"

    def check_payload(self, payload: dict) -> None:
        missing = [f for f in self.request_fields if f not in payload]
        if missing:
            raise ValueError(f"{self.name}: missing request field(s) {', '.join(missing)}")

    @abstractmethod
    def decode(self, data: Any, payload: dict) -> Any:
        """Turn a 2xx JSON body into this endpoint's response type."""
        ...

    def _fail(self, detail: str, status_code: int = 0) -> ApiFailure:
        return ApiFailure(f"malformed {self.name} response: {detail}", status_code)

    def _require(self, data: Any, key: str, kind: type | tuple[type, ...]) -> Any:
        if not isinstance(data, dict):
            raise self._fail("body is not an object")
        if key not in data:
            raise self._fail(f"missing '{key}'")
        value = data[key]
        # bool is an int subclass; never accept it where something else was asked for
        if not isinstance(value, kind) or (isinstance(value, bool) and bool not in _as_tuple(kind)):
            raise self._fail(f"'{key}' has type {type(value).__name__}")
        return value


def _as_tuple(kind: type | tuple[type, ...]) -> tuple[type, ...]:
    return kind if isinstance(kind, tuple) else (kind,)


class _UsernameEndpoint(Endpoint):
    """Mutations that echo back the affected username."""

    def decode(self, data: Any, payload: dict) -> UsernameResponse:
        if isinstance(data, dict) and isinstance(data.get("username"), str) and data["username"]:
            return UsernameResponse(username=data["username"])
        if data is None or isinstance(data, dict):
            # The service may answer with an empty object; the request names the user
            return UsernameResponse(username=str(payload.get("username", "")))
        raise self._fail("body is not an object")


class AuthenticateEndpoint(Endpoint):
    name = "authenticate"
    requires_session = False
    request_fields = ("username", "password")

    def decode(self, data: Any, payload: dict) -> AuthResponse:
        session = self._require(data, "session", str)
        if not session:
            raise self._fail("empty 'session'")
        username = self._require(data, "username", str)
        admin = self._require(data, "admin", bool)
        raw_ts = self._require(data, "lastchanged", str)
        try:
            lastchanged = parse_timestamp(raw_ts)
        except ValueError:
            raise self._fail(f"'lastchanged' is not a timestamp: {raw_ts!r}")
        return AuthResponse(session=session, username=username, admin=admin, lastchanged=lastchanged)


class ListFullEndpoint(Endpoint):
    name = "list-full"

    def decode(self, data: Any, payload: dict) -> UserListResponse:
        entries = self._require(data, "list", dict)
        users = []
        for name, entry in entries.items():
            if not isinstance(entry, dict):
                raise self._fail(f"entry for {name!r} is not an object")
            raw_ts = entry.get("lastchanged")
            try:
                last_changed = parse_timestamp(raw_ts) if raw_ts else None
            except ValueError:
                raise self._fail(f"'lastchanged' for {name!r} is not a timestamp")
            users.append(UserRecord(
                name=str(name),
                is_admin=entry.get("admin") is True,
                last_changed=last_changed,
                is_valid=entry.get("valid") is True,
                is_supported=entry.get("supported") is True,
                format_id=str(entry.get("formatid") or ""),
                format_params=str(entry.get("formatparams") or ""),
            ))
        users.sort(key=lambda u: u.name)
        return UserListResponse(users=tuple(users))


class ListEndpoint(Endpoint):
    name = "list"

    def decode(self, data: Any, payload: dict) -> NameListResponse:
        entries = self._require(data, "list", (list, dict))
        names = [str(n) for n in entries]
        return NameListResponse(names=tuple(sorted(names)))


class AddEndpoint(_UsernameEndpoint):
    name = "add"
    request_fields = ("username", "password", "admin")


class UpdateEndpoint(_UsernameEndpoint):
    name = "update"
    request_fields = ("username", "newpassword")


class RemoveEndpoint(_UsernameEndpoint):
    name = "remove"
    request_fields = ("username",)


class SetAdminEndpoint(_UsernameEndpoint):
    name = "set-admin"
    request_fields = ("username", "admin")
