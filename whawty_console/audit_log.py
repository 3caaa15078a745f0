"""Structured audit trail of session and API events.

Entries are buffered in memory and appended to a JSON-lines file on flush().
Usernames are recorded; passwords and session tokens never are.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from whawty_console.security import is_symlink_or_hardlink_attack

logger = logging.getLogger(__name__)


class AuditLog:
    """Buffered JSON-lines audit log, rotated once it grows past MAX_SIZE."""

    MAX_SIZE = 5 * 1024 * 1024
    BACKUPS = 2

    def __init__(self, path: Optional[Path] = None):
        # no path: entries stay in memory
        self.path = path
        self._entries: list[dict] = []

    def log(
        self,
        event: str,
        endpoint: str = "",
        username: str = "",
        status: int = 0,
        latency_ms: float = 0.0,
        detail: str = "",
    ) -> None:
        entry: dict = {"ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"), "event": event}
        optional = {
            "endpoint": endpoint,
            "username": username,
            "status": status,
            "latency_ms": round(latency_ms, 1) if latency_ms else 0,
            "detail": detail,
        }
        entry.update({k: v for k, v in optional.items() if v})
        self._entries.append(entry)
        logger.debug("audit %s", entry)

    def _rotate(self) -> None:
        assert self.path is not None
        for n in range(self.BACKUPS, 0, -1):
            older = self.path.with_name(f"{self.path.name}.{n}")
            newer = self.path.with_name(f"{self.path.name}.{n - 1}") if n > 1 else self.path
            if newer.exists():
                os.replace(newer, older)

    def flush(self) -> None:
        """Append buffered entries to the file and empty the buffer."""
        if self.path is None or not self._entries:
            return
        if is_symlink_or_hardlink_attack(self.path):
            logger.warning("audit log %s is a link, dropping %d entries", self.path, len(self._entries))
            self._entries.clear()
            return
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        if self.path.exists() and self.path.stat().st_size > self.MAX_SIZE:
            self._rotate()
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.writelines(json.dumps(e, ensure_ascii=False) + "\n" for e in self._entries)
        self._entries.clear()

    @property
    def entries(self) -> list[dict]:
        """Entries not yet flushed."""
        return list(self._entries)

    @property
    def entry_count(self) -> int:
        return len(self._entries)
