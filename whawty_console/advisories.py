"""Advisory banners, one slot per panel.

A new advisory replaces the previous one on the same panel. Every post is
also written to the module logger so CLI runs leave a trace.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from whawty_console.models import Advisory, Level, Panel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "danger": logging.ERROR,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "success": logging.INFO,
}


class AdvisoryBoard:
    def __init__(self) -> None:
        self._current: dict[str, Advisory] = {}
        self._listeners: list[Callable[[Advisory], None]] = []

    def post(self, panel: Panel, level: Level, heading: str, message: str) -> Advisory:
        advisory = Advisory(panel=panel, level=level, heading=heading, message=message)
        self._current[panel] = advisory
        logger.log(_LOG_LEVELS[level], "[%s] %s: %s", panel, heading, message)
        for listener in list(self._listeners):
            listener(advisory)
        return advisory

    def error(self, panel: Panel, heading: str, message: str) -> Advisory:
        return self.post(panel, "danger", heading, message)

    def success(self, panel: Panel, heading: str, message: str) -> Advisory:
        return self.post(panel, "success", heading, message)

    def get(self, panel: Panel) -> Optional[Advisory]:
        return self._current.get(panel)

    def clear(self, panel: Optional[Panel] = None) -> None:
        if panel is None:
            self._current.clear()
        else:
            self._current.pop(panel, None)

    def subscribe(self, listener: Callable[[Advisory], None]) -> None:
        self._listeners.append(listener)
