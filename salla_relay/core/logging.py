"""
Logging utilities for the webhook receiver.

Provides a consistent logging format plus a bounded in-memory buffer of recent
events that the development endpoints expose.
"""

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

PACKAGE_LOGGER = "salla_relay"


class RecentEventsHandler(logging.Handler):
    """Keep the most recent log records as plain dictionaries."""

    def __init__(self, capacity: int = 100, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self._entries: deque[Dict[str, Any]] = deque(maxlen=capacity)
        self._entries_lock = Lock()
        self._total = 0

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:  # pragma: no cover - malformed format args
            self.handleError(record)
            return
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": message,
        }
        with self._entries_lock:
            self._entries.append(entry)
            self._total += 1

    def snapshot(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return buffered entries, oldest first, optionally only the last ``limit``."""
        with self._entries_lock:
            entries = list(self._entries)
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    @property
    def total(self) -> int:
        """Number of records seen since the handler was created."""
        return self._total

    def __len__(self) -> int:
        return len(self._entries)


def configure_logging(
    level: str = "INFO", recent_events: Optional[RecentEventsHandler] = None
) -> None:
    """Configure root logging with a sensible default format."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        stream=sys.stdout,
    )
    if recent_events is not None:
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        if recent_events not in package_logger.handlers:
            package_logger.addHandler(recent_events)


__all__ = ["PACKAGE_LOGGER", "RecentEventsHandler", "configure_logging"]
