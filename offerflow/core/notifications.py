"""User-facing notifications raised by coordinator operations.

Every coordinator operation reports its outcome through a
:class:`NotificationCenter` instead of raising. The HTTP layer drains the
center so the client can render the messages as toasts.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

logger = logging.getLogger(__name__)

# oldest entries are dropped once an undrained center reaches this size
MAX_NOTIFICATIONS = 200


@dataclass(slots=True)
class Notification:
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"


class NotificationCenter:
    """In-memory queue of notifications."""

    def __init__(self, *, limit: int = MAX_NOTIFICATIONS) -> None:
        self._items: deque[Notification] = deque(maxlen=limit)

    def success(self, description: str, *, title: str = "Success") -> Notification:
        notification = Notification(title=title, description=description)
        self._items.append(notification)
        logger.info("%s: %s", title, description)
        return notification

    def error(self, description: str, *, title: str = "Error") -> Notification:
        notification = Notification(title=title, description=description, variant="destructive")
        self._items.append(notification)
        logger.warning("%s: %s", title, description)
        return notification

    def items(self) -> list[Notification]:
        return list(self._items)

    def errors(self) -> list[Notification]:
        return [item for item in self._items if item.is_error]

    def drain(self) -> list[Notification]:
        drained = list(self._items)
        self._items.clear()
        return drained

    def clear(self) -> None:
        self._items.clear()
