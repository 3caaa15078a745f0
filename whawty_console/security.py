"""Security utilities: token redaction, file permission checks, logging suppression.

Nothing that reaches a terminal, log line or audit entry may contain a raw
session token or password.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path

# Payload fields that must never be logged
SECRET_FIELDS: frozenset[str] = frozenset({"session", "password", "newpassword"})


def suppress_credential_logging() -> None:
    """Prevent httpx/httpcore from logging request bodies at DEBUG level."""
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)


def is_symlink_or_hardlink_attack(path: Path) -> bool:
    """Detect symlink/hardlink tricks on the session file path."""
    if path.is_symlink():
        return True
    if path.exists():
        try:
            if path.stat().st_nlink > 1:
                return True
        except OSError:
            return True
    return False


def is_private_file(path: Path) -> bool:
    """True if the file is readable by its owner only."""
    mode = os.stat(path).st_mode
    return not (mode & (stat.S_IRGRP | stat.S_IROTH))


def redact_token(token: str) -> str:
    if not token:
        return ""
    if len(token) <= 8:
        return "*" * len(token)
    return f"{token[:4]}...{token[-4:]}"


def scrub_payload(payload: dict) -> dict:
    """Copy of a request payload safe for logging."""
    return {k: ("[REDACTED]" if k in SECRET_FIELDS else v) for k, v in payload.items()}
