from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from andromeda.scheduler import ActivityGate, PeriodicTask, Subscription


_logger = logging.getLogger(__name__)

DEFAULT_HOLD_MS = 500.0
DEFAULT_FALL_PER_SECOND = 1.0
DEFAULT_FPS = 24.0
# Timers may wake a hair early; do not drop a frame for that
_TIMER_SLACK_MS = 0.5


@dataclass(frozen=True)
class PeakState:
    peak_value: float
    last_rise_ms: float


class PeakMeter:
    """Running maximum with hold time and linear falloff.

    observe() feeds the instantaneous value; tick() applies decay at most
    once per 1000/fps ms. The peak never drops below the live value.
    With fps <= 0 there is no frame limit and decay runs on every observe().
    """

    def __init__(
        self,
        hold_ms: float = DEFAULT_HOLD_MS,
        fall_per_second: float = DEFAULT_FALL_PER_SECOND,
        fps: float = DEFAULT_FPS,
        initial: float = 0.0,
        now_ms: float = 0.0,
    ) -> None:
        self.hold_ms = max(0.0, float(hold_ms))
        self.fall_per_second = float(fall_per_second)
        self.fps = max(0.0, float(fps))
        self.value = float(initial)
        self.state = PeakState(peak_value=float(initial), last_rise_ms=float(now_ms))
        self.suspended = False
        self._last_tick_ms: Optional[float] = None

    @property
    def peak(self) -> float:
        return self.state.peak_value

    @property
    def min_interval_ms(self) -> float:
        return 1000.0 / self.fps if self.fps > 0 else 0.0

    def observe(self, value: float, now_ms: float) -> float:
        self.value = float(value)
        if self.value >= self.state.peak_value:
            self.state = PeakState(peak_value=self.value, last_rise_ms=float(now_ms))
        elif self.fps <= 0:
            self.tick(now_ms)
        return self.state.peak_value

    def tick(self, now_ms: float) -> bool:
        """Apply one decay step if due; returns True when the peak moved."""
        if self.suspended:
            return False
        now_ms = float(now_ms)
        last = self._last_tick_ms
        if last is not None and self.fps > 0 and (now_ms - last) + _TIMER_SLACK_MS < self.min_interval_ms:
            return False
        self._last_tick_ms = now_ms
        peak, live = self.state.peak_value, self.value
        if live >= peak:
            return False
        if now_ms - self.state.last_rise_ms < self.hold_ms:
            return False
        if self.fall_per_second <= 0:
            new_peak = live
        else:
            elapsed_s = max(0.0, now_ms - last) / 1000.0 if last is not None else 0.0
            new_peak = max(live, peak - self.fall_per_second * elapsed_s)
        if new_peak == peak:
            return False
        self.state = PeakState(peak_value=new_peak, last_rise_ms=self.state.last_rise_ms)
        return True

    def suspend(self) -> None:
        self.suspended = True

    def resume(self, now_ms: float) -> None:
        # Restart the frame clock so the hidden interval is not replayed as one big step
        self.suspended = False
        self._last_tick_ms = float(now_ms)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class PeakMeterLoop:
    """Drives a PeakMeter from a PeriodicTask while the meter is visible."""

    def __init__(
        self,
        meter: PeakMeter,
        visibility: Optional[ActivityGate] = None,
        clock: Callable[[], float] = _monotonic_ms,
        on_update: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.meter = meter
        self.visibility = visibility or ActivityGate()
        self.clock = clock
        self.on_update = on_update
        self._task: Optional[PeriodicTask] = None
        if meter.fps > 0:
            self._task = PeriodicTask(self._tick, 1.0 / meter.fps, gate=self.visibility, name="peak-meter")
        self._visibility_sub: Optional[Subscription] = None

    @property
    def running(self) -> bool:
        return self._task is not None and self._task.running

    def start(self) -> None:
        if self._visibility_sub is not None:
            return
        # Subscribe before the task so resume() runs ahead of the first tick
        self._visibility_sub = self.visibility.changed.subscribe(self._on_visibility)
        if not self.visibility.active:
            self.meter.suspend()
        if self._task is not None:
            self._task.start()

    def stop(self) -> None:
        if self._task is not None:
            self._task.stop()
        if self._visibility_sub is not None:
            self._visibility_sub.release()
            self._visibility_sub = None

    def push(self, value: float) -> float:
        before = self.meter.peak
        peak = self.meter.observe(value, self.clock())
        if peak != before:
            self._notify(peak)
        return peak

    def _tick(self) -> None:
        if self.meter.tick(self.clock()):
            self._notify(self.meter.peak)

    def _notify(self, peak: float) -> None:
        if self.on_update is not None:
            self.on_update(peak)

    def _on_visibility(self, visible: bool) -> None:
        if visible:
            self.meter.resume(self.clock())
        else:
            self.meter.suspend()
        _logger.debug("peak meter %s", "resumed" if visible else "suspended")

    async def __aenter__(self) -> "PeakMeterLoop":
        self.start()
        return self

    async def __aexit__(self, *_exc) -> None:
        self.stop()
