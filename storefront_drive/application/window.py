"""In-process model of the browser windows taking part in the OAuth handshake.

Each :class:`BrowserWindow` behaves like a single-threaded event loop: event
handlers run one at a time under the window's lock, ``post_message`` clones
the payload before delivery, and a closed window silently drops anything
posted to it. There is no acknowledgement at this layer.
"""

from __future__ import annotations

import copy
import heapq
import itertools
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, DefaultDict, List, Optional, Protocol, Tuple

from storefront_drive.domain.local_storage import LocalStorage
from storefront_drive.infrastructure.local_storage import InMemoryLocalStorage
from storefront_drive.infrastructure.log_utils import log_message

MESSAGE_EVENT = "message"
UNLOAD_EVENT = "unload"


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class ThreadingScheduler:
    """Runs callbacks on daemon timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return timer


class _ManualTimer:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock for synchronous hosts (the CLI) and tests.

    Nothing runs until :meth:`advance` or :meth:`run_all` is called; due
    callbacks then run in deadline order, including ones scheduled by
    callbacks that are themselves due.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: List[Tuple[float, int, _ManualTimer, Callable[[], None]]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = _ManualTimer()
        heapq.heappush(self._queue, (self.now + max(0.0, delay), next(self._counter), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def advance(self, seconds: float) -> None:
        deadline = self.now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, when)
            if not handle.cancelled:
                callback()
        self.now = deadline

    def run_all(self, *, limit: int = 10_000) -> None:
        for _ in range(limit):
            if not self._queue:
                return
            when, _, handle, callback = heapq.heappop(self._queue)
            self.now = max(self.now, when)
            if not handle.cancelled:
                callback()
        raise RuntimeError("ManualScheduler.run_all exceeded its callback limit")


@dataclass(frozen=True)
class MessageEvent:
    data: Any
    source: Optional["BrowserWindow"] = None
    origin: Optional[str] = None


@dataclass(frozen=True)
class WindowEvent:
    type: str
    detail: Any = None


Handler = Callable[[Any], None]


class BrowserWindow:
    """A window with listeners, timers, an optional opener and local storage."""

    def __init__(
        self,
        *,
        name: str = "main",
        origin: str = "http://localhost",
        local_storage: Optional[LocalStorage] = None,
        opener: Optional["BrowserWindow"] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.name = name
        self.origin = origin
        self.local_storage: LocalStorage = local_storage if local_storage is not None else InMemoryLocalStorage()
        self.opener = opener
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()
        self._listeners: DefaultDict[str, List[Handler]] = defaultdict(list)
        self._closed = False
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"BrowserWindow(name={self.name!r}, origin={self.origin!r}, {state})"

    @property
    def closed(self) -> bool:
        return self._closed

    def add_event_listener(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            if handler not in self._listeners[event_type]:
                self._listeners[event_type].append(handler)

    def remove_event_listener(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._listeners.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def listener_count(self, event_type: str) -> int:
        return len(self._listeners.get(event_type, []))

    def dispatch_event(self, event_type: str, detail: Any = None) -> int:
        """Run every handler for ``event_type``; returns how many ran.

        A failing handler is logged and does not stop the others.
        """
        if self._closed:
            return 0
        event = detail if isinstance(detail, MessageEvent) else WindowEvent(type=event_type, detail=detail)
        with self._lock:
            handlers = list(self._listeners.get(event_type, []))
            for handler in handlers:
                try:
                    handler(event)
                except Exception as exc:
                    log_message(
                        f"Unhandled error in {event_type!r} handler on {self.name}: {exc}",
                        "ERROR",
                        exc_info=True,
                    )
        return len(handlers)

    def post_message(self, data: Any, *, source: Optional["BrowserWindow"] = None) -> bool:
        """Deliver a cloned ``data`` to this window's message listeners.

        Returns ``False`` when the window is closed and the message is lost.
        """
        if self._closed:
            log_message(f"Dropped message posted to closed window {self.name}.", "DEBUG")
            return False
        event = MessageEvent(
            data=copy.deepcopy(data),
            source=source,
            origin=source.origin if source is not None else None,
        )
        self.dispatch_event(MESSAGE_EVENT, event)
        return True

    def set_timeout(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Schedule ``callback``; it is skipped if the window has closed by then."""

        def _run() -> None:
            if self._closed:
                return
            with self._lock:
                callback()

        return self.scheduler.call_later(delay, _run)

    def open_popup(self, name: str = "popup", *, origin: Optional[str] = None) -> "BrowserWindow":
        """Open a child window whose ``opener`` is this window.

        A same-origin popup shares this window's local storage.
        """
        popup_origin = origin or self.origin
        storage = self.local_storage if popup_origin == self.origin else None
        return BrowserWindow(
            name=name,
            origin=popup_origin,
            local_storage=storage,
            opener=self,
            scheduler=self.scheduler,
        )

    def close(self) -> None:
        if self._closed:
            return
        self.dispatch_event(UNLOAD_EVENT)
        with self._lock:
            self._closed = True
            self._listeners.clear()
        log_message(f"Window {self.name} closed.", "DEBUG")


__all__ = [
    "BrowserWindow",
    "MESSAGE_EVENT",
    "ManualScheduler",
    "MessageEvent",
    "Scheduler",
    "ThreadingScheduler",
    "TimerHandle",
    "UNLOAD_EVENT",
    "WindowEvent",
]
