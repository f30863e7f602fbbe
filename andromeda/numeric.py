from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional


MAX_PRECISION = 6
# Digits kept after snapping to a step; hides float drift like 0.30000000000000004
SNAP_DIGITS = 8
EPSILON = 2.220446049250313e-16


def clamp(value: float, lo: float, hi: float) -> float:
    """Bound value to [lo, hi]; NaN coerces to lo."""
    if value != value:
        return lo
    if value < lo:
        return lo
    if value > hi:
        return hi
    return value


def quantize(value: float, step: float, origin: float) -> float:
    """Snap value onto the grid origin + k*step.

    A non-positive step disables snapping. Halves round up (toward +inf),
    matching the panel widgets, so the result is idempotent.
    """
    if step <= 0:
        return value
    k = math.floor((value - origin) / step + 0.5)
    return round(k * step + origin, SNAP_DIGITS)


def derive_precision(step: float) -> int:
    """Number of fractional digits in step's shortest decimal form, capped at 6."""
    if not step or not math.isfinite(step):
        return 0
    try:
        exp = Decimal(repr(float(step))).normalize().as_tuple().exponent
    except InvalidOperation:
        return 0
    if not isinstance(exp, int) or exp >= 0:
        return 0
    return min(MAX_PRECISION, -exp)


def normalize(value: float, lo: float, hi: float) -> float:
    """Position of value inside [lo, hi] as 0..1 (degenerate ranges stay finite)."""
    span = max(hi - lo, EPSILON)
    return clamp((value - lo) / span, 0.0, 1.0)


@dataclass(frozen=True)
class NumericRange:
    min: float = 0.0
    max: float = 1.0
    step: float = 0.01
    precision: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.max > self.min:
            raise ValueError(f"range max ({self.max}) must be greater than min ({self.min})")
        if self.step < 0:
            raise ValueError(f"step must be >= 0, got {self.step}")
        if self.precision is not None and self.precision < 0:
            raise ValueError(f"precision must be >= 0, got {self.precision}")

    @property
    def span(self) -> float:
        return self.max - self.min

    @property
    def effective_precision(self) -> int:
        if self.precision is not None:
            return int(self.precision)
        return derive_precision(self.step)


def display_value(raw: float, rng: NumericRange) -> float:
    """Clamp then quantize; every control shows and emits this."""
    return quantize(clamp(raw, rng.min, rng.max), rng.step, rng.min)


def format_value(raw: float, rng: NumericRange) -> str:
    return f"{display_value(raw, rng):.{rng.effective_precision}f}"


def knob_angle(value: float, rng: NumericRange) -> float:
    """Indicator rotation in degrees: -135 at min, +135 at max."""
    return -135.0 + normalize(value, rng.min, rng.max) * 270.0
