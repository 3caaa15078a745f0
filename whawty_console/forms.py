"""Form state for the login box and the password dialog.

Front ends (CLI prompts, TUI inputs) write into these objects and read the
derived state back; no widget toolkit is involved here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from whawty_console.models import Level

FieldState = Literal["neutral", "has-error", "has-success"]


def passwords_match(primary: str, retype: str) -> bool:
    """The submit gate: both fields non-empty and exactly equal."""
    return primary != "" and primary == retype


@dataclass
class LoginForm:
    username: str = ""
    password: str = ""

    def clear(self) -> None:
        self.username = ""
        self.password = ""

    def prefill(self, username: Optional[str]) -> None:
        """Keep the username for the next attempt, drop the password."""
        self.username = username or ""
        self.password = ""


@dataclass
class PasswordForm:
    """The two password fields, the submit gate, and the strength read-out."""

    password: str = ""
    retype: str = ""
    submit_enabled: bool = False
    retype_state: FieldState = "neutral"
    crack_time: str = ""
    stars: str = ""
    tips: list[tuple[Level, str]] = field(default_factory=list)

    def reset(self) -> None:
        self.password = ""
        self.retype = ""
        self.submit_enabled = False
        self.retype_state = "neutral"
        self.crack_time = ""
        self.stars = ""
        self.tips = []

    def compare(self) -> bool:
        self.submit_enabled = passwords_match(self.password, self.retype)
        self.retype_state = "has-success" if self.submit_enabled else "has-error"
        return self.submit_enabled
