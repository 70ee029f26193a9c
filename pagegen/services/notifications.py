from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from pagegen.config import settings

logger = logging.getLogger(__name__)

NotificationType = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True)
class Notification:
    id: str
    message: str
    type: NotificationType


NotificationListener = Callable[[tuple[Notification, ...]], None]


class NotificationService:
    """
    Holds user-facing notifications and pushes snapshots to subscribers.

    One instance is created when the application starts and closed at shutdown.
    Consumers receive it explicitly instead of importing module state. Timed
    expiry needs a running event loop; without one, notifications stay until
    removed.
    """

    def __init__(self, *, default_duration_seconds: float | None = None) -> None:
        if default_duration_seconds is None:
            default_duration_seconds = settings.NOTIFICATION_DURATION_SECONDS
        self._default_duration = default_duration_seconds
        self._counter = itertools.count(1)
        self._items: list[Notification] = []
        self._listeners: list[NotificationListener] = []
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._closed = False

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return tuple(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def add(
        self,
        message: str,
        type: NotificationType = "info",
        duration_seconds: float | None = None,
    ) -> str:
        if self._closed:
            raise RuntimeError("NotificationService is closed")
        notification = Notification(id=str(next(self._counter)), message=message, type=type)
        self._items = [*self._items, notification]
        self._emit()

        duration = self._default_duration if duration_seconds is None else duration_seconds
        if duration > 0:
            self._schedule_expiry(notification.id, duration)
        return notification.id

    def remove(self, notification_id: str) -> None:
        timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()
        remaining = [item for item in self._items if item.id != notification_id]
        if len(remaining) == len(self._items):
            return
        self._items = remaining
        self._emit()

    def remove_oldest(self) -> None:
        if not self._items:
            return
        self.remove(self._items[0].id)

    def clear(self) -> None:
        self._cancel_timers()
        self._items = []
        self._emit()

    def subscribe(self, listener: NotificationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: NotificationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def close(self) -> None:
        if self._closed:
            return
        self._cancel_timers()
        self._items = []
        self._listeners = []
        self._closed = True
        logger.debug("notifications.closed")

    def _schedule_expiry(self, notification_id: str, duration: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timers[notification_id] = loop.call_later(duration, self.remove, notification_id)

    def _cancel_timers(self) -> None:
        for timer in self._timers.values():
            timer.cancel()
        self._timers = {}

    def _emit(self) -> None:
        snapshot = tuple(self._items)
        for listener in list(self._listeners):
            listener(snapshot)
