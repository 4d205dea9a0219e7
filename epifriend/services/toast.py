"""
In-process notification queue with timed expiry.

Nothing here is persisted; toasts live as long as the notifier. The queue is
an explicit object handed to whoever needs to show messages.
"""

import threading
from collections.abc import Callable
from itertools import count
from typing import Any

import structlog

from epifriend.domain.models import Toast, ToastType

logger = structlog.get_logger(__name__)

# (delay_seconds, callback) -> handle
Scheduler = Callable[[float, Callable[[], None]], Any]


def timer_scheduler(delay_seconds: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay_seconds, callback)
    timer.daemon = True
    timer.start()
    return timer


class ToastNotifier:
    """
    Queue of short-lived UI messages.

    Each toast schedules its own removal. Timers are never cancelled: a toast
    removed early is simply not found when its timer fires.
    """

    def __init__(self, default_duration_ms: int = 3000, scheduler: Scheduler = timer_scheduler) -> None:
        self.default_duration_ms = default_duration_ms
        self.scheduler = scheduler
        self._toasts: list[Toast] = []
        self._ids = count()
        self._lock = threading.Lock()
        self.logger = logger.bind(component="toast_notifier")

    @property
    def toasts(self) -> tuple[Toast, ...]:
        with self._lock:
            return tuple(self._toasts)

    def show(
        self,
        type: ToastType | str = ToastType.SUCCESS,
        message: str = "",
        duration_ms: int | None = None,
    ) -> Toast:
        toast = Toast(id=next(self._ids), type=ToastType(type), message=message)
        with self._lock:
            self._toasts.append(toast)

        duration = self.default_duration_ms if duration_ms is None else duration_ms
        self.scheduler(duration / 1000, lambda: self.remove(toast.id))
        self.logger.debug("toast_shown", toast_id=toast.id, type=toast.type.value)
        return toast

    def success(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(ToastType.SUCCESS, message, duration_ms)

    def error(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(ToastType.ERROR, message, duration_ms)

    def info(self, message: str, duration_ms: int | None = None) -> Toast:
        return self.show(ToastType.INFO, message, duration_ms)

    def remove(self, toast_id: int) -> bool:
        with self._lock:
            for index, toast in enumerate(self._toasts):
                if toast.id == toast_id:
                    del self._toasts[index]
                    return True
        return False
