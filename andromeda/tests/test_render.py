from __future__ import annotations

import unittest
from pathlib import Path

import mido
import pytest

from andromeda.flatten import AutomationEvent
from andromeda.render import (
    MidiFileRenderer,
    RenderError,
    RenderRequest,
    Renderer,
    render_timeline,
    resolve_cc,
    scale_to_cc,
)
from andromeda.timeline import AutomationTrack, Keyframe, Timeline, default_timeline


class _Recorder(Renderer):
    def __init__(self, result="out.wav"):
        self.requests = []
        self.result = result

    def render(self, request):
        self.requests.append(request)
        return self.result


class _Broken(Renderer):
    def render(self, request):
        raise OSError("disk full")


class TestMapping(unittest.TestCase):
    def test_resolve_cc(self):
        self.assertEqual(resolve_cc("filter.cutoff"), 74)
        self.assertEqual(resolve_cc("mixer.master"), 7)
        self.assertEqual(resolve_cc("cc:21"), 21)
        self.assertIsNone(resolve_cc("cc:200"))
        self.assertIsNone(resolve_cc("cc:x"))
        self.assertIsNone(resolve_cc("fx.wet"))

    def test_scale_to_cc(self):
        self.assertEqual(scale_to_cc("filter.cutoff", 20), 0)
        self.assertEqual(scale_to_cc("filter.cutoff", 20000), 127)
        self.assertEqual(scale_to_cc("filter.cutoff", 99999), 127)
        self.assertEqual(scale_to_cc("mixer.master", 0.5), 64)
        self.assertEqual(scale_to_cc("oscillator.sync", True), 127)
        self.assertEqual(scale_to_cc("oscillator.waveform", "sine"), 0)
        self.assertEqual(scale_to_cc("oscillator.waveform", "square"), 127)
        self.assertIsNone(scale_to_cc("oscillator.waveform", "noise"))
        self.assertEqual(scale_to_cc("cc:1", 300), 127)
        self.assertIsNone(scale_to_cc("cc:1", float("nan")))


class TestControlPoints(unittest.TestCase):
    def test_linear_ramps_step_holds(self):
        r = MidiFileRenderer(ramp_resolution_ms=100)
        events = [
            AutomationEvent(0, "mixer.master", 0.0, "linear"),
            AutomationEvent(0, "global.mono", False, "step"),
            AutomationEvent(400, "mixer.master", 1.0, "step"),
            AutomationEvent(500, "global.mono", True, "linear"),
        ]
        pts = r.control_points(events)
        master = [(t, v) for t, c, v in pts if c == 7]
        self.assertEqual(master, [(0, 0), (100, 32), (200, 64), (300, 95), (400, 127)])
        mono = [(t, v) for t, c, v in pts if c == 88]
        self.assertEqual(mono, [(0, 0), (500, 127)])
        self.assertEqual([t for t, _c, _v in pts], sorted(t for t, _c, _v in pts))

    def test_unchanged_values_not_resent_and_unknown_paths_skipped(self):
        r = MidiFileRenderer()
        pts = r.control_points(
            [
                AutomationEvent(0, "mixer.master", 0.5),
                AutomationEvent(100, "mixer.master", 0.5),
                AutomationEvent(100, "fx.wet", 0.5),
            ]
        )
        self.assertEqual(pts, [(0, 7, 64)])
        self.assertEqual(r.skipped_paths, ["fx.wet"])


def test_render_timeline_hands_flattened_events_over():
    rec = _Recorder()
    assert render_timeline(default_timeline(), rec) == "out.wav"
    req = rec.requests[0]
    assert isinstance(req, RenderRequest)
    assert req.duration_ms == 3000
    assert req.sample_rate == 44100
    assert [e.time_ms for e in req.events] == [0, 3000]
    assert req.to_dict()["events"][0] == {"time_ms": 0, "path": "filter.cutoff", "value": 400, "curve": "linear"}


def test_render_failure_surfaces_once():
    with pytest.raises(RenderError) as ei:
        render_timeline(default_timeline(), _Broken())
    assert isinstance(ei.value.__cause__, OSError)
    with pytest.raises(RenderError):
        render_timeline(default_timeline(), _Recorder(result=""))


def test_midi_file_renderer_writes_control_changes(tmp_path: Path):
    tl = Timeline(
        1000,
        (
            AutomationTrack("filter.cutoff", (Keyframe(0, 20, "linear"), Keyframe(1000, 20000, "linear"))),
            AutomationTrack("oscillator.waveform", (Keyframe(500, "saw", "step"),)),
        ),
    )
    r = MidiFileRenderer(out_dir=str(tmp_path), channel=2, ramp_resolution_ms=250)
    path = render_timeline(tl, r)
    assert Path(path).parent == tmp_path
    assert path.endswith(".mid")
    mid = mido.MidiFile(path)
    msgs = [m for m in mid.tracks[0] if m.type == "control_change"]
    assert all(m.channel == 2 for m in msgs)
    cutoff = [m.value for m in msgs if m.control == 74]
    assert cutoff[0] == 0 and cutoff[-1] == 127
    assert cutoff == sorted(cutoff)
    assert [m.value for m in msgs if m.control == 70] == [85]
    # end_of_track lands on the timeline's end (1 s at 120 BPM = 960 ticks)
    assert sum(m.time for m in mid.tracks[0]) == 960
    # A second render never overwrites the first
    assert render_timeline(tl, r) != path


def test_midi_file_renderer_rejects_bad_request(tmp_path: Path):
    r = MidiFileRenderer(out_dir=str(tmp_path))
    with pytest.raises(RenderError):
        r.render(RenderRequest(duration_ms=1000, sample_rate=0))
