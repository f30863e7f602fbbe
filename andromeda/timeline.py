from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional, Sequence, Tuple, TypeVar

from andromeda.params import AUTOMATION_PATHS, default_value_for


CURVE_STEP = "step"
CURVE_LINEAR = "linear"
CURVES = (CURVE_STEP, CURVE_LINEAR)

DEFAULT_DURATION_MS = 3000
NEW_KEYFRAME_TIME_MS = 1000

_MISSING = object()
T = TypeVar("T")


@dataclass(frozen=True)
class Keyframe:
    time_ms: int
    value: Any
    curve: Optional[str] = None


@dataclass(frozen=True)
class AutomationTrack:
    path: str
    keyframes: Tuple[Keyframe, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "keyframes", tuple(self.keyframes))


@dataclass(frozen=True)
class Timeline:
    """Tracks of keyframes plus an overall duration.

    Values are immutable; every edit below returns a new Timeline and
    shares no mutable structure with its input.
    """

    duration_ms: int
    tracks: Tuple[AutomationTrack, ...] = ()

    def __post_init__(self) -> None:
        if int(self.duration_ms) <= 0:
            raise ValueError(f"duration_ms must be positive, got {self.duration_ms}")
        object.__setattr__(self, "duration_ms", int(self.duration_ms))
        object.__setattr__(self, "tracks", tuple(self.tracks))

    @property
    def paths(self) -> Tuple[str, ...]:
        return tuple(t.path for t in self.tracks)


@dataclass(frozen=True)
class DurationBounds:
    """Caller policy for editable durations (the panel allows 500..20000 ms)."""

    min_ms: int = 500
    max_ms: int = 20000

    def clamp(self, ms: int) -> int:
        return max(self.min_ms, min(self.max_ms, int(ms)))


def coerce_time(time_ms: Any, duration_ms: Optional[int] = None) -> int:
    """Whole, non-negative milliseconds; capped at duration_ms when given."""
    try:
        t = float(time_ms)
    except (TypeError, ValueError):
        t = 0.0
    if math.isnan(t):
        t = 0.0
    if duration_ms is not None:
        t = min(float(duration_ms), t)
    elif math.isinf(t):
        t = 0.0
    t = max(0.0, t)
    return int(math.floor(t + 0.5))


def clamp_time(time_ms: Any, duration_ms: int) -> int:
    """Coerce a keyframe time into [0, duration_ms] whole milliseconds."""
    return coerce_time(time_ms, duration_ms)


def new_timeline(duration_ms: int = DEFAULT_DURATION_MS, path: str = AUTOMATION_PATHS[0]) -> Timeline:
    """Blank timeline with its one default (empty) track."""
    return Timeline(duration_ms=duration_ms, tracks=(AutomationTrack(path=path),))


def default_timeline() -> Timeline:
    """Cutoff sweep 400 Hz -> 12 kHz over three seconds."""
    return Timeline(
        duration_ms=DEFAULT_DURATION_MS,
        tracks=(
            AutomationTrack(
                path="filter.cutoff",
                keyframes=(
                    Keyframe(time_ms=0, value=400, curve=CURVE_LINEAR),
                    Keyframe(time_ms=3000, value=12000, curve=CURVE_LINEAR),
                ),
            ),
        ),
    )


def _check_index(items: Sequence[Any], index: int, what: str) -> int:
    if not isinstance(index, int) or isinstance(index, bool) or not (0 <= index < len(items)):
        raise IndexError(f"{what} index {index!r} out of range (have {len(items)})")
    return index


def _replaced(items: Sequence[T], index: int, item: T) -> Tuple[T, ...]:
    return tuple(item if i == index else x for i, x in enumerate(items))


def _without(items: Sequence[T], index: int) -> Tuple[T, ...]:
    return tuple(x for i, x in enumerate(items) if i != index)


def _with_track(timeline: Timeline, index: int, track: AutomationTrack) -> Timeline:
    return replace(timeline, tracks=_replaced(timeline.tracks, index, track))


def _with_keyframe(timeline: Timeline, track_index: int, key_index: int, **changes: Any) -> Timeline:
    _check_index(timeline.tracks, track_index, "track")
    track = timeline.tracks[track_index]
    _check_index(track.keyframes, key_index, "keyframe")
    kf = replace(track.keyframes[key_index], **changes)
    return _with_track(timeline, track_index, replace(track, keyframes=_replaced(track.keyframes, key_index, kf)))


# --- Track edits ---
def add_track(timeline: Timeline, path: str = AUTOMATION_PATHS[0]) -> Timeline:
    # Paths are not de-duplicated here; keeping them unique is the caller's job
    return replace(timeline, tracks=timeline.tracks + (AutomationTrack(path=str(path)),))


def remove_track(timeline: Timeline, index: int) -> Timeline:
    _check_index(timeline.tracks, index, "track")
    return replace(timeline, tracks=_without(timeline.tracks, index))


def set_track_path(timeline: Timeline, index: int, new_path: str) -> Timeline:
    """Retarget a track; every keyframe value resets to the new path's default."""
    _check_index(timeline.tracks, index, "track")
    track = timeline.tracks[index]
    fresh = default_value_for(new_path)
    keyframes = tuple(replace(kf, value=fresh) for kf in track.keyframes)
    return _with_track(timeline, index, AutomationTrack(path=str(new_path), keyframes=keyframes))


# --- Keyframe edits ---
def add_keyframe(
    timeline: Timeline,
    track_index: int,
    time_ms: Optional[int] = None,
    value: Any = _MISSING,
    curve: Optional[str] = CURVE_LINEAR,
) -> Timeline:
    _check_index(timeline.tracks, track_index, "track")
    track = timeline.tracks[track_index]
    if time_ms is None:
        time_ms = min(timeline.duration_ms, NEW_KEYFRAME_TIME_MS)
    if value is _MISSING:
        value = default_value_for(track.path)
    if curve is not None and curve not in CURVES:
        raise ValueError(f"unknown curve {curve!r}; expected one of {CURVES}")
    kf = Keyframe(time_ms=clamp_time(time_ms, timeline.duration_ms), value=value, curve=curve)
    return _with_track(timeline, track_index, replace(track, keyframes=track.keyframes + (kf,)))


def remove_keyframe(timeline: Timeline, track_index: int, key_index: int) -> Timeline:
    _check_index(timeline.tracks, track_index, "track")
    track = timeline.tracks[track_index]
    _check_index(track.keyframes, key_index, "keyframe")
    return _with_track(timeline, track_index, replace(track, keyframes=_without(track.keyframes, key_index)))


def set_keyframe_time(timeline: Timeline, track_index: int, key_index: int, time_ms: Any) -> Timeline:
    return _with_keyframe(timeline, track_index, key_index, time_ms=clamp_time(time_ms, timeline.duration_ms))


def set_keyframe_value(timeline: Timeline, track_index: int, key_index: int, value: Any) -> Timeline:
    return _with_keyframe(timeline, track_index, key_index, value=value)


def set_keyframe_curve(timeline: Timeline, track_index: int, key_index: int, curve: Optional[str]) -> Timeline:
    if curve is not None and curve not in CURVES:
        raise ValueError(f"unknown curve {curve!r}; expected one of {CURVES}")
    return _with_keyframe(timeline, track_index, key_index, curve=curve)


# --- Duration ---
def set_duration(
    timeline: Timeline,
    duration_ms: Any,
    bounds: DurationBounds = DurationBounds(),
    clamp_keyframes: bool = True,
) -> Timeline:
    """Change the duration within `bounds`.

    With clamp_keyframes=False keyframes beyond a shrunk duration are kept
    as-is until edited again, and flattening will emit them past the end.
    """
    try:
        ms = float(duration_ms)
    except (TypeError, ValueError):
        ms = 0.0
    if not ms or math.isnan(ms):
        ms = DEFAULT_DURATION_MS
    ms = max(float(bounds.min_ms), min(float(bounds.max_ms), ms))
    new_ms = bounds.clamp(math.floor(ms + 0.5))
    out = replace(timeline, duration_ms=new_ms)
    if not clamp_keyframes:
        return out
    tracks: Iterable[AutomationTrack] = (
        replace(t, keyframes=tuple(replace(kf, time_ms=clamp_time(kf.time_ms, new_ms)) for kf in t.keyframes))
        for t in out.tracks
    )
    return replace(out, tracks=tuple(tracks))
