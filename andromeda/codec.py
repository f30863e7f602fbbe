from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

from andromeda.flatten import AutomationEvent
from andromeda.numeric import clamp
from andromeda.params import param_spec
from andromeda.timeline import CURVE_STEP, AutomationTrack, Keyframe, Timeline, coerce_time
from andromeda.validator import validate_events, validate_timeline


_logger = logging.getLogger(__name__)


class InvalidTimelineDocument(ValueError):
    """A timeline document could not be imported; nothing was applied."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        summary = self.errors[0] if self.errors else "invalid timeline document"
        more = f" (+{len(self.errors) - 1} more)" if len(self.errors) > 1 else ""
        super().__init__(f"invalid timeline document: {summary}{more}")


def encode_timeline(timeline: Timeline) -> Dict[str, Any]:
    """Timeline -> JSON-ready dict; a missing curve stays missing."""
    tracks = []
    for track in timeline.tracks:
        keyframes = []
        for kf in track.keyframes:
            item: Dict[str, Any] = {"time_ms": kf.time_ms, "value": kf.value}
            if kf.curve is not None:
                item["curve"] = kf.curve
            keyframes.append(item)
        tracks.append({"path": track.path, "keyframes": keyframes})
    return {"duration_ms": timeline.duration_ms, "tracks": tracks}


def decode_timeline(obj: Any, clamp_to_duration: bool = False) -> Timeline:
    """JSON-derived dict -> Timeline, all or nothing.

    Times are rounded to whole non-negative milliseconds. Times past the
    duration are kept (a timeline may legitimately carry them, see
    set_duration) unless clamp_to_duration is set.
    Raises InvalidTimelineDocument listing every problem found.
    """
    errors = validate_timeline(obj)
    if errors:
        raise InvalidTimelineDocument(errors)
    duration = int(obj["duration_ms"])
    limit = duration if clamp_to_duration else None
    tracks = []
    for tr in obj["tracks"]:
        keyframes = tuple(
            Keyframe(
                time_ms=coerce_time(kf["time_ms"], limit),
                value=kf["value"],
                curve=kf.get("curve"),
            )
            for kf in tr["keyframes"]
        )
        tracks.append(AutomationTrack(path=tr["path"], keyframes=keyframes))
    return Timeline(duration_ms=duration, tracks=tuple(tracks))


def dumps_timeline(timeline: Timeline) -> str:
    return json.dumps(encode_timeline(timeline), ensure_ascii=False, indent=2)


def loads_timeline(payload: str, clamp_to_duration: bool = False) -> Timeline:
    try:
        obj = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise InvalidTimelineDocument([f"/: not valid JSON ({e})"]) from e
    return decode_timeline(obj, clamp_to_duration=clamp_to_duration)


def save_timeline(path: str, timeline: Timeline) -> None:
    """Write atomically: readers never observe a half-written file."""
    data = dumps_timeline(timeline) + "\n"
    d = os.path.dirname(os.path.abspath(path)) or "."
    os.makedirs(d, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_timeline_", dir=d, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)
    _logger.debug("saved timeline to %s", path)


def load_timeline(path: str) -> Timeline:
    """Read and decode a timeline file.

    OSError propagates for unreadable files; bad content raises
    InvalidTimelineDocument.
    """
    with open(path, "r", encoding="utf-8") as f:
        payload = f.read()
    return loads_timeline(payload)


def try_load_timeline(path: str) -> Optional[Timeline]:
    """Like load_timeline but logs and returns None on any failure."""
    try:
        return load_timeline(path)
    except InvalidTimelineDocument as e:
        _logger.warning("rejected %s: %s", path, "; ".join(e.errors))
    except OSError as e:
        _logger.warning("could not read %s: %s", path, e)
    return None


def decode_events(obj: Any, duration_ms: Optional[int] = None) -> List[AutomationEvent]:
    """JSON-derived event array -> time-ordered AutomationEvents, all or nothing.

    Times are rounded (and capped at duration_ms when given). Numbers on
    ranged parameters are clamped into the range. Equal times keep their
    document order.
    """
    errors = validate_events(obj)
    if errors:
        raise InvalidTimelineDocument(errors)
    events = []
    for ev in obj:
        value = ev["value"]
        spec = param_spec(ev["path"])
        if spec is not None and spec.range is not None and not isinstance(value, bool):
            value = clamp(value, spec.range.min, spec.range.max)
        events.append(
            AutomationEvent(
                time_ms=coerce_time(ev["time_ms"], duration_ms),
                path=ev["path"],
                value=value,
                curve=ev.get("curve") or CURVE_STEP,
            )
        )
    events.sort(key=lambda e: e.time_ms)
    return events


def loads_events(payload: str, duration_ms: Optional[int] = None) -> List[AutomationEvent]:
    try:
        obj = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise InvalidTimelineDocument([f"/: not valid JSON ({e})"]) from e
    return decode_events(obj, duration_ms=duration_ms)
