"""Notification sink contract and the in-process implementation.

A sink receives three kinds of calls:
  publish(notification) — raise or refresh a notification under its key
  clear(key)            — explicit absence signal; recorded as (key, None)
  update(path, value)   — derived data values (e.g. current anchor radius);
                          a None value removes the path

Clearing is never modelled as a lower-severity notification. Transports that
forward these events must map a clear to a null value on the same key.
"""
from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from helmwatch.models.base import NotificationMethodEnum, NotificationStateEnum

logger = logging.getLogger(__name__)

# Notification keys
ANCHOR_DRAG_KEY = "anchor.drag"
ANCHOR_WATCH_KEY = "anchor.watch"
ANCHOR_MODE_CHANGE_KEY = "anchor.modeChange"
COLLISION_KEY_PREFIX = "collision."

# Data value paths
ANCHOR_POSITION_PATH = "navigation.anchor.position"
ANCHOR_MAX_RADIUS_PATH = "navigation.anchor.maxRadius"
ANCHOR_RODE_LENGTH_PATH = "navigation.anchor.rodeLength"
ANCHOR_CURRENT_RADIUS_PATH = "navigation.anchor.currentRadius"

_HISTORY_LIMIT = 500


@dataclass(frozen=True)
class Notification:
    key: str
    message: str
    state: NotificationStateEnum
    method: tuple[NotificationMethodEnum, ...] = (NotificationMethodEnum.VISUAL,)


class NotificationSink(Protocol):
    def publish(self, notification: Notification) -> None:
        ...

    def clear(self, key: str) -> None:
        ...

    def update(self, path: str, value: Any) -> None:
        ...


class MemoryNotificationSink:
    """Thread-safe in-memory sink that also logs every event.

    Keeps the currently active notifications, the latest data values and a
    bounded history of (key, notification-or-None) events.
    """

    def __init__(self, history_limit: int = _HISTORY_LIMIT) -> None:
        self._lock = threading.Lock()
        self._active: dict[str, Notification] = {}
        self._values: dict[str, Any] = {}
        self._history: deque[tuple[str, Optional[Notification]]] = deque(maxlen=history_limit)

    def publish(self, notification: Notification) -> None:
        with self._lock:
            self._active[notification.key] = notification
            self._history.append((notification.key, notification))
        if notification.state == NotificationStateEnum.EMERGENCY:
            logger.warning("[%s] %s", notification.key, notification.message)
        else:
            logger.info("[%s] %s", notification.key, notification.message)

    def clear(self, key: str) -> None:
        with self._lock:
            self._active.pop(key, None)
            self._history.append((key, None))
        logger.debug("[%s] cleared", key)

    def update(self, path: str, value: Any) -> None:
        with self._lock:
            if value is None:
                self._values.pop(path, None)
            else:
                self._values[path] = value

    def active(self) -> dict[str, Notification]:
        with self._lock:
            return dict(self._active)

    def values(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def history(self) -> list[tuple[str, Optional[Notification]]]:
        with self._lock:
            return list(self._history)

    def cleared_keys(self) -> list[str]:
        return [key for key, n in self.history() if n is None]
