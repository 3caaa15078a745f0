"""Session-scoped key-value storage for the persisted session fields.

Two backends share one small interface: ``get`` reads a single key,
``set_many`` and ``remove_many`` change several keys in one write so the
session fields are always written and cleared together.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Mapping, Optional

from whawty_console.security import is_private_file, is_symlink_or_hardlink_attack

logger = logging.getLogger(__name__)


class SessionStorage(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_many(self, items: Mapping[str, str]) -> None:
        ...

    @abstractmethod
    def remove_many(self, keys: Iterable[str]) -> None:
        ...

    @abstractmethod
    def snapshot(self) -> dict[str, str]:
        """Copy of everything currently stored."""


class MemoryStorage(SessionStorage):
    """In-process storage; lives as long as the object does."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        self._data.update(items)

    def remove_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class FileStorage(SessionStorage):
    """JSON file storage, owner-readable only, replaced atomically on write.

    Concurrent consoles sharing the file get last-writer-wins semantics.
    """

    def __init__(self, path: Path):
        self.path = path

    def _read(self) -> dict[str, str]:
        if is_symlink_or_hardlink_attack(self.path):
            logger.warning("refusing to read session file through link: %s", self.path)
            return {}
        try:
            if not is_private_file(self.path):
                logger.warning("session file %s is readable by other users", self.path)
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable session file %s: %s", self.path, exc)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        if is_symlink_or_hardlink_attack(self.path):
            raise PermissionError(f"refusing to write session file through link: {self.path}")
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".session-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, sort_keys=True)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_many(self, items: Mapping[str, str]) -> None:
        data = self._read()
        data.update(items)
        self._write(data)

    def remove_many(self, keys: Iterable[str]) -> None:
        data = self._read()
        changed = False
        for key in keys:
            if key in data:
                del data[key]
                changed = True
        if changed:
            self._write(data)

    def snapshot(self) -> dict[str, str]:
        return self._read()
