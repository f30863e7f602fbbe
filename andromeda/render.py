from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import mido

from andromeda.flatten import AutomationEvent, flatten_timeline
from andromeda.numeric import clamp, normalize
from andromeda.params import WAVEFORMS, param_spec
from andromeda.timeline import CURVE_LINEAR, Timeline


_logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 44100
TICKS_PER_BEAT = 480
TEMPO_US_PER_BEAT = 500000  # 120 BPM; only used to map ms onto ticks
DEFAULT_RAMP_RESOLUTION_MS = 50


class RenderError(RuntimeError):
    """The renderer could not produce output."""


@dataclass(frozen=True)
class RenderRequest:
    duration_ms: int
    events: Tuple[AutomationEvent, ...] = ()
    sample_rate: int = DEFAULT_SAMPLE_RATE

    def __post_init__(self) -> None:
        object.__setattr__(self, "events", tuple(self.events))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_ms": self.duration_ms,
            "sample_rate": self.sample_rate,
            "events": [e.to_dict() for e in self.events],
        }


class Renderer:
    """External renderer interface: consume a request, return an output locator."""

    def render(self, request: RenderRequest) -> str:  # pragma: no cover - interface
        raise NotImplementedError


def render_timeline(timeline: Timeline, renderer: Renderer, sample_rate: int = DEFAULT_SAMPLE_RATE) -> str:
    """Flatten and hand the timeline to renderer.

    Any renderer failure surfaces as a single RenderError; nothing is retried.
    """
    request = RenderRequest(
        duration_ms=timeline.duration_ms,
        events=tuple(flatten_timeline(timeline)),
        sample_rate=sample_rate,
    )
    try:
        locator = renderer.render(request)
    except RenderError as e:
        _logger.warning("render failed: %s", e)
        raise
    except Exception as e:
        _logger.warning("render failed: %s", e)
        raise RenderError(f"render failed: {e}") from e
    if not isinstance(locator, str) or not locator:
        _logger.warning("render failed: renderer returned no output locator")
        raise RenderError("renderer returned no output locator")
    return locator


def resolve_cc(path: str) -> Optional[int]:
    """CC number for a parameter path; raw 'cc:<num>' paths are accepted too."""
    spec = param_spec(path)
    if spec is not None:
        return spec.cc
    if path.startswith("cc:"):
        try:
            num = int(path.split(":", 1)[1])
        except ValueError:
            return None
        return num if 0 <= num <= 127 else None
    return None


def scale_to_cc(path: str, value: Any) -> Optional[int]:
    """Map an automation value onto 0..127 (None when it cannot be expressed)."""
    if isinstance(value, bool):
        return 127 if value else 0
    if isinstance(value, str):
        if value not in WAVEFORMS:
            return None
        return int(round(WAVEFORMS.index(value) * 127 / (len(WAVEFORMS) - 1)))
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    spec = param_spec(path)
    if spec is not None and spec.range is not None:
        return int(round(normalize(float(value), spec.range.min, spec.range.max) * 127))
    return int(clamp(round(float(value)), 0, 127))


def _is_numeric(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


@dataclass
class MidiFileRenderer(Renderer):
    """Writes automation as control changes into a Standard MIDI File.

    - Each event becomes a CC on its path's controller.
    - A numeric "linear" event ramps toward the next event on the same path,
      one CC every ramp_resolution_ms; "step" events hold.
    - Unchanged values are not re-sent.
    """

    out_dir: str = "renders"
    channel: int = 0
    ramp_resolution_ms: int = DEFAULT_RAMP_RESOLUTION_MS
    prefix: str = "andromeda-render"
    skipped_paths: List[str] = field(default_factory=list)

    def render(self, request: RenderRequest) -> str:
        if request.duration_ms <= 0:
            raise RenderError("duration_ms must be positive")
        if request.sample_rate <= 0:
            raise RenderError("sample_rate must be positive")
        points = self.control_points(request.events)
        mid = self.build_midi(points, request.duration_ms)
        path = self._next_path()
        mid.save(path)
        _logger.info("rendered %d control changes to %s", len(points), path)
        return path

    # --- Building blocks ---
    def control_points(self, events: Sequence[AutomationEvent]) -> List[Tuple[int, int, int]]:
        """(time_ms, control, value) triples in time order."""
        by_path: Dict[str, List[AutomationEvent]] = {}
        for ev in events:
            by_path.setdefault(ev.path, []).append(ev)
        self.skipped_paths = []
        raw: List[Tuple[int, int, int, int]] = []  # (time_ms, seq, control, value)
        seq = 0
        for path, evs in by_path.items():
            control = resolve_cc(path)
            if control is None:
                self.skipped_paths.append(path)
                _logger.debug("no controller for %s; skipped", path)
                continue
            for i, ev in enumerate(evs):
                value = scale_to_cc(path, ev.value)
                if value is None:
                    continue
                raw.append((ev.time_ms, seq, control, value))
                seq += 1
                nxt = evs[i + 1] if i + 1 < len(evs) else None
                if ev.curve != CURVE_LINEAR or nxt is None:
                    continue
                if not (_is_numeric(ev.value) and _is_numeric(nxt.value)) or nxt.time_ms <= ev.time_ms:
                    continue
                span = nxt.time_ms - ev.time_ms
                res = max(1, int(self.ramp_resolution_ms))
                t = ev.time_ms + res
                while t < nxt.time_ms:
                    frac = (t - ev.time_ms) / span
                    interp = float(ev.value) + (float(nxt.value) - float(ev.value)) * frac
                    v = scale_to_cc(path, interp)
                    if v is not None:
                        raw.append((t, seq, control, v))
                        seq += 1
                    t += res
        raw.sort(key=lambda x: (x[0], x[1]))
        out: List[Tuple[int, int, int]] = []
        last: Dict[int, int] = {}
        for t, _seq, control, value in raw:
            if last.get(control) == value:
                continue
            last[control] = value
            out.append((t, control, value))
        return out

    def build_midi(self, points: Sequence[Tuple[int, int, int]], duration_ms: int) -> mido.MidiFile:
        mid = mido.MidiFile(ticks_per_beat=TICKS_PER_BEAT)
        track = mido.MidiTrack()
        mid.tracks.append(track)
        track.append(mido.MetaMessage("track_name", name="automation", time=0))
        track.append(mido.MetaMessage("set_tempo", tempo=TEMPO_US_PER_BEAT, time=0))
        ch = max(0, min(15, int(self.channel)))
        cursor = 0
        for t_ms, control, value in points:
            tick = _ms_to_ticks(t_ms)
            track.append(mido.Message("control_change", channel=ch, control=control, value=value, time=tick - cursor))
            cursor = tick
        end_tick = max(cursor, _ms_to_ticks(duration_ms))
        track.append(mido.MetaMessage("end_of_track", time=end_tick - cursor))
        return mid

    def _next_path(self) -> str:
        os.makedirs(self.out_dir, exist_ok=True)
        millis = int(time.time() * 1000)
        path = os.path.join(self.out_dir, f"{self.prefix}-{millis}.mid")
        n = 1
        while os.path.exists(path):
            path = os.path.join(self.out_dir, f"{self.prefix}-{millis}-{n}.mid")
            n += 1
        return path


def _ms_to_ticks(ms: int) -> int:
    return int(mido.second2tick(ms / 1000.0, TICKS_PER_BEAT, TEMPO_US_PER_BEAT))
