"""Console configuration from WHAWTY_* environment variables and an optional .env file.

Precedence, lowest first: defaults, .env file, process environment, explicit
overrides (CLI flags).
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values

ENV_PREFIX = "WHAWTY_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def default_storage_path() -> Path:
    """Session file under the per-login runtime dir, so it dies with the login session."""
    runtime = os.environ.get("XDG_RUNTIME_DIR")
    base = Path(runtime) if runtime else Path(tempfile.gettempdir()) / f"whawty-console-{os.getuid()}"
    return base / "whawty-console" / "session.json"


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name}: expected a boolean, got {raw!r}")


def _parse_float(name: str, raw: str) -> float:
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name}: expected a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name}: must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class ConsoleConfig:
    base_url: str = "http://127.0.0.1:8000"
    timeout: float = 30.0
    verify_tls: bool = True
    product_name: str = "whawty"
    storage_path: Optional[Path] = None
    audit_log_path: Optional[Path] = None

    @property
    def session_file(self) -> Path:
        return self.storage_path or default_storage_path()

    @property
    def audit_file(self) -> Path:
        return self.audit_log_path or self.session_file.parent / "audit.log"

    @classmethod
    def from_mapping(cls, values: Mapping[str, Optional[str]]) -> "ConsoleConfig":
        """Build from WHAWTY_* keys; unknown keys are ignored."""
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            name = ENV_PREFIX + f.name.upper()
            raw = values.get(name)
            if raw is None or raw == "":
                continue
            if f.name == "timeout":
                kwargs[f.name] = _parse_float(name, raw)
            elif f.name == "verify_tls":
                kwargs[f.name] = _parse_bool(name, raw)
            elif f.name in ("storage_path", "audit_log_path"):
                kwargs[f.name] = Path(raw).expanduser()
            else:
                kwargs[f.name] = raw.strip()
        if "base_url" in kwargs:
            kwargs["base_url"] = kwargs["base_url"].rstrip("/")
        return cls(**kwargs)

    @classmethod
    def load(cls, env_file: Optional[Path] = None, **overrides: Any) -> "ConsoleConfig":
        merged: dict[str, Optional[str]] = {}
        if env_file is not None:
            merged.update(dotenv_values(env_file))
        merged.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})
        config = cls.from_mapping(merged)
        clean = {k: v for k, v in overrides.items() if v is not None}
        if "base_url" in clean:
            clean["base_url"] = str(clean["base_url"]).rstrip("/")
        return replace(config, **clean) if clean else config
