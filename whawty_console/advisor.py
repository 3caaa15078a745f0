"""PasswordAdvisor: strength read-out for a candidate password.

Scoring is delegated to zxcvbn. The username and the product name are passed
as user inputs so a password that merely resembles them scores low. The
verdict is advisory only: submission is gated on the confirmation match, not
on the score.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from zxcvbn import zxcvbn

from whawty_console.models import Level, PasswordVerdict

STRENGTH_LABELS: tuple[str, ...] = ("very weak", "weak", "so-so", "strong", "very strong")
STRENGTH_LEVELS: tuple[Level, ...] = ("danger", "danger", "warning", "success", "success")

CRACK_TIME_KEY = "offline_slow_hashing_1e4_per_second"

Scorer = Callable[..., dict[str, Any]]


class PasswordAdvisor:
    def __init__(self, product_name: str = "whawty", scorer: Optional[Scorer] = None):
        self.product_name = product_name
        self._scorer = scorer or zxcvbn

    def context_for(self, username: str) -> list[str]:
        return [s for s in (username, self.product_name) if s]

    def advise(self, password: str, context: Iterable[str] = ()) -> PasswordVerdict:
        if not password:
            return PasswordVerdict(score=0)
        res = self._scorer(password, user_inputs=list(context))
        feedback = res.get("feedback") or {}
        score = int(res.get("score", 0))
        return PasswordVerdict(
            score=min(max(score, 0), 4),
            warning=feedback.get("warning") or "",
            suggestions=tuple(feedback.get("suggestions") or ()),
            crack_time=str((res.get("crack_times_display") or {}).get(CRACK_TIME_KEY, "")),
        )


def strength_label(score: int) -> str:
    return STRENGTH_LABELS[score]


def strength_level(score: int) -> Level:
    return STRENGTH_LEVELS[score]


def stars(score: int, slots: int = 4) -> str:
    return "★" * min(score, slots) + "☆" * (slots - min(score, slots))


def tips(password: str, verdict: PasswordVerdict) -> list[tuple[Level, str]]:
    """Ordered advisory lines shown under the password field."""
    if not password:
        out: list[tuple[Level, str]] = [("info", "Please type in a password")]
    elif verdict.warning:
        out = [("danger", verdict.warning)]
    else:
        out = [(strength_level(verdict.score), f"This is a {strength_label(verdict.score)} password")]
    out.extend(("info", s) for s in verdict.suggestions)
    return out
