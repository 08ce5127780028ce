"""Activity log collaborator.

The sync core only writes into the log: a status line per item and any
number of detail lines.  ``ActivityLog`` keeps the items in memory for
display and mirrors every line to the ``logging`` module.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class ActivityItem:
    """Status and detail lines for one feed or operation."""

    def __init__(self, name: str):
        self.name = name
        self.status = ""
        self.details: List[str] = []
        self._lock = threading.Lock()

    def set_status(self, status: str) -> None:
        with self._lock:
            self.status = status
        logger.info(f"[{self.name}] {status}")

    def append_details(self, line: str) -> None:
        stamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        with self._lock:
            self.details.append(f"{stamp} {line}")
        logger.debug(f"[{self.name}] {line}")

    def clear_details(self) -> None:
        with self._lock:
            self.details = []

    def __repr__(self) -> str:
        return f"ActivityItem({self.name!r}, status={self.status!r})"


class ActivityLog:
    """Collection of activity items keyed by name."""

    def __init__(self) -> None:
        self._items: Dict[str, ActivityItem] = {}
        self._lock = threading.Lock()

    def item_for(self, name: str) -> ActivityItem:
        """Return the item for ``name``, creating it on first use."""
        with self._lock:
            item = self._items.get(name)
            if item is None:
                item = ActivityItem(name)
                self._items[name] = item
            return item

    def get(self, name: str) -> Optional[ActivityItem]:
        with self._lock:
            return self._items.get(name)

    def items(self) -> List[ActivityItem]:
        with self._lock:
            return list(self._items.values())
