from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

from andromeda.timeline import CURVE_STEP, AutomationTrack, Keyframe, Timeline


@dataclass(frozen=True)
class AutomationEvent:
    time_ms: int
    path: str
    value: Any
    curve: str = CURVE_STEP

    def to_dict(self) -> Dict[str, Any]:
        return {"time_ms": self.time_ms, "path": self.path, "value": self.value, "curve": self.curve}

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> "AutomationEvent":
        return cls(
            time_ms=int(obj["time_ms"]),
            path=str(obj["path"]),
            value=obj.get("value"),
            curve=str(obj.get("curve") or CURVE_STEP),
        )


def flatten_timeline(timeline: Timeline) -> List[AutomationEvent]:
    """Project a timeline onto one time-ordered event list.

    Events are enumerated track by track, keyframe by keyframe, then
    stable-sorted by time: equal times keep enumeration order. Keyframes
    without a curve are emitted as "step".
    """
    events = [
        AutomationEvent(time_ms=kf.time_ms, path=track.path, value=kf.value, curve=kf.curve or CURVE_STEP)
        for track in timeline.tracks
        for kf in track.keyframes
    ]
    # list.sort is stable
    events.sort(key=lambda e: e.time_ms)
    return events


def events_to_json(events: List[AutomationEvent]) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in events]


def timeline_from_events(events: Iterable[AutomationEvent], duration_ms: int) -> Timeline:
    """Group an event stream back into one track per path (first-seen order).

    Flattening the result yields the same events in time order; equal times
    on different paths come out grouped by track.
    """
    by_path: Dict[str, List[Keyframe]] = {}
    for ev in sorted(events, key=lambda e: e.time_ms):
        by_path.setdefault(ev.path, []).append(Keyframe(time_ms=ev.time_ms, value=ev.value, curve=ev.curve))
    tracks = tuple(AutomationTrack(path=p, keyframes=tuple(kfs)) for p, kfs in by_path.items())
    return Timeline(duration_ms=duration_ms, tracks=tracks)
