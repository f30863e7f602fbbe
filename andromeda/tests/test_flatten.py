import unittest

from andromeda.flatten import AutomationEvent, events_to_json, flatten_timeline, timeline_from_events
from andromeda.timeline import AutomationTrack, Keyframe, Timeline, default_timeline, new_timeline


class TestFlatten(unittest.TestCase):
    def test_default_sweep(self):
        events = flatten_timeline(default_timeline())
        self.assertEqual(
            events_to_json(events),
            [
                {"time_ms": 0, "path": "filter.cutoff", "value": 400, "curve": "linear"},
                {"time_ms": 3000, "path": "filter.cutoff", "value": 12000, "curve": "linear"},
            ],
        )

    def test_equal_times_keep_enumeration_order(self):
        tl = Timeline(
            duration_ms=1000,
            tracks=(
                AutomationTrack("mixer.master", (Keyframe(500, 0.9, "step"),)),
                AutomationTrack("filter.cutoff", (Keyframe(100, 800, "step"),)),
                AutomationTrack("mixer.master", (Keyframe(100, 0.2, "step"),)),
            ),
        )
        got = [(e.path, e.time_ms) for e in flatten_timeline(tl)]
        self.assertEqual(got, [("filter.cutoff", 100), ("mixer.master", 100), ("mixer.master", 500)])

    def test_deterministic(self):
        tl = default_timeline()
        self.assertEqual(flatten_timeline(tl), flatten_timeline(tl))
        self.assertIsNot(flatten_timeline(tl), flatten_timeline(tl))

    def test_missing_curve_is_step(self):
        tl = Timeline(1000, (AutomationTrack("global.mono", (Keyframe(10, True),)),))
        self.assertEqual(flatten_timeline(tl), [AutomationEvent(10, "global.mono", True, "step")])

    def test_empty(self):
        self.assertEqual(flatten_timeline(new_timeline()), [])

    def test_event_dict_roundtrip(self):
        ev = AutomationEvent(5, "oscillator.waveform", "square", "step")
        self.assertEqual(AutomationEvent.from_dict(ev.to_dict()), ev)
        self.assertEqual(AutomationEvent.from_dict({"time_ms": 1, "path": "x", "value": 2}).curve, "step")

    def test_timeline_from_events_regroups_by_path(self):
        events = [
            AutomationEvent(500, "mixer.master", 0.9, "linear"),
            AutomationEvent(100, "filter.cutoff", 800, "step"),
            AutomationEvent(100, "mixer.master", 0.2, "step"),
        ]
        tl = timeline_from_events(events, 1000)
        self.assertEqual(tl.paths, ("filter.cutoff", "mixer.master"))
        self.assertEqual([k.time_ms for k in tl.tracks[1].keyframes], [100, 500])
        self.assertEqual(flatten_timeline(tl), sorted(events, key=lambda e: e.time_ms))
