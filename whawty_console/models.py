"""Data models for the console: session, user records, verdicts, advisories.

- Literal aliases for roles, panels and levels so a type-checker catches typos
- frozen dataclasses for every value that crosses a component boundary
- to_dict() with a fixed field order for stable JSON output
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Literal, Optional

Role = Literal["admin", "user"]
Panel = Literal["login", "main", "modal"]
Level = Literal["danger", "warning", "info", "success"]

PANELS: frozenset[str] = frozenset(Panel.__args__)  # type: ignore[attr-defined]
LEVELS: frozenset[str] = frozenset(Level.__args__)  # type: ignore[attr-defined]


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp as sent by the service.

    Accepts a trailing ``Z`` and more than six fractional digits, both of
    which the service emits. Naive values are taken as UTC.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    if "." in text:
        head, _, rest = text.partition(".")
        digits = ""
        while rest and rest[0].isdigit():
            digits, rest = digits + rest[0], rest[1:]
        text = f"{head}.{digits[:6].ljust(6, '0')}{rest}" if digits else head + rest
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> str:
    """Render a timestamp as ``dd.mm.yyyy HH:MM:SS`` in local time."""
    if value is None:
        return "—"
    return value.astimezone().strftime("%d.%m.%Y %H:%M:%S")


@dataclass(frozen=True)
class Session:
    """An authenticated session. Either fully populated or absent (None)."""

    identity: str
    is_admin: bool
    last_changed: datetime
    token: str = field(repr=False)

    @property
    def role(self) -> Role:
        return "admin" if self.is_admin else "user"

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "role": self.role,
            "last_changed": self.last_changed.isoformat(),
        }


@dataclass(frozen=True)
class UserRecord:
    """Read-only snapshot of one account as returned by list-full."""

    name: str
    is_admin: bool
    last_changed: Optional[datetime]
    is_valid: bool
    is_supported: bool
    format_id: str = ""
    format_params: str = ""

    @property
    def role(self) -> Role:
        return "admin" if self.is_admin else "user"

    @property
    def format_descriptor(self) -> str:
        return f"{self.format_id} ({self.format_params})"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "admin": self.is_admin,
            "lastchanged": self.last_changed.isoformat() if self.last_changed else None,
            "valid": self.is_valid,
            "supported": self.is_supported,
            "formatid": self.format_id,
            "formatparams": self.format_params,
        }


class Purpose(Enum):
    """What a password dialog is collecting a password for."""

    SELF_CHANGE = "self_change"
    ADMIN_CHANGE = "admin_change"
    ADMIN_CREATE = "admin_create"

    @property
    def submit_label(self) -> str:
        return "Add" if self is Purpose.ADMIN_CREATE else "Change"

    @property
    def is_admin_action(self) -> bool:
        return self is not Purpose.SELF_CHANGE


@dataclass(frozen=True)
class PasswordVerdict:
    score: int
    warning: str = ""
    suggestions: tuple[str, ...] = ()
    crack_time: str = ""


@dataclass(frozen=True)
class Advisory:
    """A message banner scoped to one panel of the console."""

    panel: Panel
    level: Level
    heading: str
    message: str

    def to_dict(self) -> dict:
        return {
            "panel": self.panel,
            "level": self.level,
            "heading": self.heading,
            "message": self.message,
        }


# ── Typed endpoint responses ───────────────────────────────────────────────


@dataclass(frozen=True)
class AuthResponse:
    session: str = field(repr=False)
    username: str
    admin: bool
    lastchanged: datetime


@dataclass(frozen=True)
class UserListResponse:
    users: tuple[UserRecord, ...]


@dataclass(frozen=True)
class NameListResponse:
    names: tuple[str, ...]


@dataclass(frozen=True)
class UsernameResponse:
    username: str
