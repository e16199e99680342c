from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

logger = logging.getLogger("debounce")

__all__ = ["DebouncedSaver", "Scheduler", "ThreadingTimerScheduler"]


class Scheduler(Protocol):
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class ThreadingTimerScheduler:
    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(max(0, int(delay_ms)) / 1000.0, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: Any) -> None:
        if isinstance(handle, threading.Timer):
            handle.cancel()


class DebouncedSaver:
    """Coalesce bursts of edits into one outbound save.

    Every ``schedule`` supersedes the pending timer, so only the latest
    payload is written once ``delay_ms`` passes without another edit.
    Failures are logged and dropped; the next edit saves the newer state.
    """

    def __init__(
        self,
        save: Callable[[Any], None],
        *,
        delay_ms: int = 700,
        scheduler: Scheduler | None = None,
        name: str = "document",
    ) -> None:
        self._save = save
        self.delay_ms = max(0, int(delay_ms))
        self._scheduler = scheduler or ThreadingTimerScheduler()
        self.name = name
        self._lock = threading.Lock()
        self._handle: Any = None
        self._payload: Any = None
        self._generation = 0
        self.last_error = ""

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._handle is not None

    def schedule(self, payload: Any) -> None:
        with self._lock:
            if self._handle is not None:
                self._scheduler.cancel(self._handle)
            self._generation += 1
            generation = self._generation
            self._payload = payload
            self._handle = self._scheduler.call_later(self.delay_ms, lambda: self._fire(generation))

    def cancel(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._scheduler.cancel(self._handle)
            self._handle = None
            self._payload = None
            self._generation += 1

    def flush(self) -> bool:
        with self._lock:
            if self._handle is None:
                return False
            self._scheduler.cancel(self._handle)
            generation = self._generation
        self._fire(generation)
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._handle is None:
                return
            payload = self._payload
            self._handle = None
            self._payload = None
        try:
            self._save(payload)
            self.last_error = ""
        except Exception as exc:
            self.last_error = str(exc)
            logger.exception("Debounced %s save failed: %s", self.name, exc)
