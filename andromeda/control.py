from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from andromeda.numeric import NumericRange, display_value, format_value, knob_angle, normalize, clamp


_logger = logging.getLogger(__name__)

# A full-range knob sweep takes this many units of pointer travel
DRAG_SENSITIVITY = 150.0
PAGE_MULTIPLIER = 10

ValueCallback = Callable[[float], None]


class ValueOwnership:
    """Who holds the authoritative value of a control.

    Resolved once at construction: `External` when the caller supplied a
    value, `Internal` otherwise. Never flips afterwards.
    """

    external = False

    def current(self, fallback: float) -> float:  # pragma: no cover - interface
        raise NotImplementedError

    def accept(self, value: float) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class External(ValueOwnership):
    external = True

    def __init__(self, value: Optional[float]) -> None:
        self.latest = value

    def current(self, fallback: float) -> float:
        return fallback if self.latest is None else self.latest

    def accept(self, value: float) -> None:
        # Caller owns transitions; emitted values come back through sync()
        return


class Internal(ValueOwnership):
    def __init__(self, seed: float) -> None:
        self.seed = seed
        self.cell = seed

    def current(self, fallback: float) -> float:
        return self.cell

    def accept(self, value: float) -> None:
        self.cell = value


@dataclass
class DragState:
    start_position: float
    start_value: float


class ContinuousControl:
    """Bounded drag/keyboard driven parameter (knob or slider).

    - Every emitted value is clamped to the range and snapped to its step.
    - Relative drags are computed against the value captured at drag start.
    - A disabled control ignores all gestures and key presses.
    """

    def __init__(
        self,
        rng: Optional[NumericRange] = None,
        value: Optional[float] = None,
        default_value: Optional[float] = None,
        on_change: Optional[ValueCallback] = None,
        on_change_end: Optional[ValueCallback] = None,
        disabled: bool = False,
        sensitivity: float = DRAG_SENSITIVITY,
    ) -> None:
        self.range = rng or NumericRange()
        self.on_change = on_change
        self.on_change_end = on_change_end
        self.disabled = bool(disabled)
        self.sensitivity = float(sensitivity) if sensitivity > 0 else DRAG_SENSITIVITY
        self.ownership: ValueOwnership
        if value is not None:
            self.ownership = External(value)
        else:
            seed = default_value if default_value is not None else self.range.min
            self.ownership = Internal(float(seed))
        self._drag: Optional[DragState] = None

    # --- Views ---
    @property
    def controlled(self) -> bool:
        return self.ownership.external

    @property
    def value(self) -> float:
        """Current raw value (unclamped), as owned by caller or control."""
        return self.ownership.current(self.range.min)

    @property
    def display_value(self) -> float:
        return display_value(self.value, self.range)

    @property
    def display_text(self) -> str:
        return format_value(self.value, self.range)

    @property
    def normalized(self) -> float:
        return normalize(self.value, self.range.min, self.range.max)

    @property
    def angle(self) -> float:
        return knob_angle(self.value, self.range)

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    # --- External value ---
    def sync(self, value: Optional[float]) -> None:
        """Supply the caller-owned value (controlled controls only)."""
        if isinstance(self.ownership, External):
            self.ownership.latest = value
        else:
            _logger.debug("ignoring external value %r on self-owned control", value)

    # --- Gestures ---
    def drag_start(self, position: float) -> None:
        if self.disabled:
            return
        self._drag = DragState(start_position=float(position), start_value=self.value)

    def drag_move(self, position: float) -> Optional[float]:
        """Relative (knob) drag: moving toward smaller positions raises the value."""
        if self.disabled or self._drag is None:
            return None
        delta = self._drag.start_position - float(position)
        step_per_unit = max(self.range.span, 0.0) / self.sensitivity
        return self._update(self._drag.start_value + delta * step_per_unit)

    def drag_to_ratio(self, ratio: float) -> Optional[float]:
        """Absolute (slider) drag: ratio 0..1 along the track."""
        if self.disabled:
            return None
        if self._drag is None:
            self._drag = DragState(start_position=float(ratio), start_value=self.value)
        return self._update(self.range.min + clamp(float(ratio), 0.0, 1.0) * self.range.span)

    def drag_end(self) -> Optional[float]:
        if self.disabled or self._drag is None:
            return None
        self._drag = None
        current = self.value
        if self.on_change_end is not None:
            self.on_change_end(current)
        return current

    # --- Discrete steps ---
    def nudge(self, direction: int, page: bool = False) -> Optional[float]:
        if self.disabled or direction == 0:
            return None
        amount = self.range.step * (PAGE_MULTIPLIER if page else 1)
        sign = 1 if direction > 0 else -1
        return self._update(self.value + sign * amount)

    def home(self) -> Optional[float]:
        if self.disabled:
            return None
        return self._update(self.range.min)

    def end(self) -> Optional[float]:
        if self.disabled:
            return None
        return self._update(self.range.max)

    def handle_key(self, key: str) -> bool:
        """Apply a keyboard key; returns True when the key was consumed."""
        if self.disabled:
            return False
        if key in ("ArrowUp", "ArrowRight"):
            self.nudge(+1)
        elif key in ("ArrowDown", "ArrowLeft"):
            self.nudge(-1)
        elif key == "PageUp":
            self.nudge(+1, page=True)
        elif key == "PageDown":
            self.nudge(-1, page=True)
        elif key == "Home":
            self.home()
        elif key == "End":
            self.end()
        else:
            return False
        return True

    # --- Internals ---
    def _update(self, raw: float) -> float:
        nxt = display_value(raw, self.range)
        self.ownership.accept(nxt)
        if self.on_change is not None:
            self.on_change(nxt)
        return nxt
