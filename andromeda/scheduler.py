from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, List, Optional


_logger = logging.getLogger(__name__)

POLL_MIN_MS = 100
POLL_MAX_MS = 5000
POLL_DEFAULT_MS = 750


def clamp_poll_interval(ms: Any) -> int:
    """Coerce a poll interval to [100, 5000] ms; unusable input gives the default."""
    try:
        v = int(float(ms))
    except (TypeError, ValueError):
        return POLL_DEFAULT_MS
    if v == 0:
        return POLL_DEFAULT_MS
    return max(POLL_MIN_MS, min(POLL_MAX_MS, v))


class Subscription:
    """Handle for a registered listener; release() is idempotent."""

    def __init__(self, release: Callable[[], None]) -> None:
        self._release: Optional[Callable[[], None]] = release

    @property
    def active(self) -> bool:
        return self._release is not None

    def release(self) -> None:
        fn, self._release = self._release, None
        if fn is not None:
            fn()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *_exc) -> None:
        self.release()


class Signal:
    def __init__(self) -> None:
        self._listeners: List[Callable[..., None]] = []

    def subscribe(self, listener: Callable[..., None]) -> Subscription:
        self._listeners.append(listener)

        def _release() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return Subscription(_release)

    def emit(self, *args: Any) -> None:
        for listener in list(self._listeners):
            listener(*args)

    def __len__(self) -> int:
        return len(self._listeners)


class ActivityGate:
    """Explicit "should background work run" predicate: focused and not paused."""

    def __init__(self, focused: bool = True, paused: bool = False) -> None:
        self.focused = bool(focused)
        self.paused = bool(paused)
        self.changed = Signal()

    @property
    def active(self) -> bool:
        return self.focused and not self.paused

    def set_focused(self, focused: bool) -> None:
        self._set(focused=bool(focused), paused=self.paused)

    def set_paused(self, paused: bool) -> None:
        self._set(focused=self.focused, paused=bool(paused))

    def toggle_paused(self) -> bool:
        self.set_paused(not self.paused)
        return self.paused

    def _set(self, focused: bool, paused: bool) -> None:
        before = self.active
        self.focused, self.paused = focused, paused
        if self.active != before:
            self.changed.emit(self.active)


class PeriodicTask:
    """Re-arming task on the running asyncio loop.

    - start()/stop() bound the lifetime; stop() always cancels the task.
    - Runs only while the optional gate is active; the callback fires
      immediately on (re)activation, then every interval_s seconds.
    - Callback errors are logged and do not stop the schedule.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        interval_s: float,
        gate: Optional[ActivityGate] = None,
        name: str = "periodic",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.callback = callback
        self.interval_s = float(interval_s)
        self.gate = gate
        self.name = name
        self.runs = 0
        self._started = False
        self._task: Optional[asyncio.Task] = None
        self._gate_sub: Optional[Subscription] = None

    @property
    def active(self) -> bool:
        return self._started and (self.gate is None or self.gate.active)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        if self.gate is not None:
            self._gate_sub = self.gate.changed.subscribe(lambda _active: self.refresh())
        self.refresh()

    def stop(self) -> None:
        self._started = False
        if self._gate_sub is not None:
            self._gate_sub.release()
            self._gate_sub = None
        self._cancel()

    def set_interval(self, interval_s: float) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.interval_s = float(interval_s)
        # Re-arm with the new cadence
        self._cancel()
        self.refresh()

    def refresh(self) -> None:
        if self.active and not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run(), name=self.name)
        elif not self.active:
            self._cancel()

    def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run(self) -> None:
        while True:
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception:
                _logger.exception("%s: callback failed", self.name)
            self.runs += 1
            await asyncio.sleep(self.interval_s)

    async def __aenter__(self) -> "PeriodicTask":
        self.start()
        return self

    async def __aexit__(self, *_exc) -> None:
        self.stop()
