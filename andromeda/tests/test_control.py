import unittest

from andromeda.control import ContinuousControl, External, Internal
from andromeda.numeric import NumericRange


class TestOwnership(unittest.TestCase):
    def test_internal_when_no_value_supplied(self):
        c = ContinuousControl(NumericRange(0, 1, 0.01), default_value=0.25)
        self.assertFalse(c.controlled)
        self.assertIsInstance(c.ownership, Internal)
        self.assertEqual(c.value, 0.25)

    def test_internal_seed_falls_back_to_min(self):
        c = ContinuousControl(NumericRange(20, 20000, 1))
        self.assertEqual(c.value, 20)

    def test_internal_control_keeps_its_own_value(self):
        seen = []
        c = ContinuousControl(NumericRange(0, 1, 0.01), default_value=0.5, on_change=seen.append)
        c.nudge(+1)
        self.assertEqual(seen, [0.51])
        self.assertEqual(c.value, 0.51)

    def test_external_value_is_never_mutated_by_control(self):
        seen = []
        c = ContinuousControl(NumericRange(0, 1, 0.01), value=0.5, on_change=seen.append)
        self.assertTrue(c.controlled)
        self.assertIsInstance(c.ownership, External)
        c.nudge(+1)
        self.assertEqual(seen, [0.51])
        # The owner has not echoed it back yet
        self.assertEqual(c.value, 0.5)
        c.sync(0.51)
        self.assertEqual(c.value, 0.51)

    def test_ownership_does_not_flip(self):
        c = ContinuousControl(NumericRange(0, 1, 0.01), value=0.2)
        c.sync(None)
        self.assertTrue(c.controlled)
        # Falls back to min while the owner has nothing to report
        self.assertEqual(c.value, 0)
        d = ContinuousControl(NumericRange(0, 1, 0.01))
        d.sync(0.9)
        self.assertFalse(d.controlled)
        self.assertEqual(d.value, 0)


class TestDrag(unittest.TestCase):
    def test_drag_up_full_sweep(self):
        seen = []
        ended = []
        c = ContinuousControl(NumericRange(0, 1, 0.01), on_change=seen.append, on_change_end=ended.append)
        c.drag_start(200)
        self.assertTrue(c.is_dragging)
        c.drag_move(125)
        self.assertAlmostEqual(seen[-1], 0.5)
        c.drag_move(50)
        self.assertEqual(seen[-1], 1)
        # Overshoot stays clamped
        c.drag_move(-100)
        self.assertEqual(seen[-1], 1)
        c.drag_end()
        self.assertFalse(c.is_dragging)
        self.assertEqual(ended, [1])

    def test_drag_is_relative_to_start_value(self):
        c = ContinuousControl(NumericRange(0, 1, 0.01), default_value=0.4)
        c.drag_start(0)
        c.drag_move(15)
        c.drag_move(-15)
        self.assertAlmostEqual(c.value, 0.5)

    def test_drag_move_without_start_is_ignored(self):
        seen = []
        c = ContinuousControl(on_change=seen.append)
        self.assertIsNone(c.drag_move(10))
        self.assertIsNone(c.drag_end())
        self.assertEqual(seen, [])

    def test_slider_ratio(self):
        c = ContinuousControl(NumericRange(-24, 24, 0.1))
        self.assertEqual(c.drag_to_ratio(0.5), 0)
        self.assertEqual(c.drag_to_ratio(2.0), 24)
        self.assertEqual(c.drag_to_ratio(-1), -24)

    def test_emitted_values_always_in_range_and_on_grid(self):
        rng = NumericRange(0.05, 1, 0.01)
        seen = []
        c = ContinuousControl(rng, on_change=seen.append)
        c.drag_start(0)
        for pos in range(-300, 300, 7):
            c.drag_move(pos)
        for v in seen:
            self.assertGreaterEqual(v, 0.05)
            self.assertLessEqual(v, 1)
            self.assertAlmostEqual(round((v - 0.05) / 0.01), (v - 0.05) / 0.01, places=6)


class TestKeys(unittest.TestCase):
    def test_arrow_page_home_end(self):
        c = ContinuousControl(NumericRange(0, 1, 0.01), default_value=0.5)
        self.assertTrue(c.handle_key("ArrowUp"))
        self.assertAlmostEqual(c.value, 0.51)
        self.assertTrue(c.handle_key("ArrowLeft"))
        self.assertAlmostEqual(c.value, 0.5)
        self.assertTrue(c.handle_key("PageUp"))
        self.assertAlmostEqual(c.value, 0.6)
        self.assertTrue(c.handle_key("PageDown"))
        self.assertAlmostEqual(c.value, 0.5)
        self.assertTrue(c.handle_key("End"))
        self.assertEqual(c.value, 1)
        self.assertTrue(c.handle_key("Home"))
        self.assertEqual(c.value, 0)

    def test_unknown_key_not_consumed(self):
        c = ContinuousControl()
        self.assertFalse(c.handle_key("Enter"))

    def test_disabled_ignores_everything(self):
        seen = []
        c = ContinuousControl(NumericRange(0, 1, 0.01), default_value=0.5, on_change=seen.append, disabled=True)
        self.assertFalse(c.handle_key("ArrowUp"))
        c.drag_start(100)
        self.assertIsNone(c.drag_move(0))
        self.assertIsNone(c.drag_to_ratio(1.0))
        self.assertIsNone(c.home())
        self.assertEqual(seen, [])
        self.assertEqual(c.value, 0.5)


class TestMalformedValues(unittest.TestCase):
    def test_nan_value_is_coerced_not_raised(self):
        seen = []
        c = ContinuousControl(NumericRange(0, 1, 0.01), value=float("nan"), on_change=seen.append)
        self.assertEqual(c.display_value, 0)
        self.assertEqual(c.display_text, "0.00")
        self.assertEqual(c.angle, -135.0)
        self.assertEqual(c.nudge(+1), 0)
        self.assertEqual(seen, [0])

    def test_nan_sync_then_drag(self):
        c = ContinuousControl(NumericRange(0, 1, 0.01), value=0.5)
        c.sync(float("nan"))
        c.drag_start(100)
        self.assertEqual(c.drag_move(0), 0)


class TestViews(unittest.TestCase):
    def test_display_text_and_angle(self):
        c = ContinuousControl(NumericRange(20, 20000, 1), value=1400.4)
        self.assertEqual(c.display_text, "1400")
        self.assertEqual(c.display_value, 1400)
        self.assertGreater(c.angle, -135)
        self.assertLess(c.angle, 0)
