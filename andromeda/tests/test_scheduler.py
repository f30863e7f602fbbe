import asyncio
import unittest

import pytest

from andromeda.scheduler import ActivityGate, PeriodicTask, Signal, clamp_poll_interval


class TestPollInterval(unittest.TestCase):
    def test_clamped_and_defaulted(self):
        self.assertEqual(clamp_poll_interval(50), 100)
        self.assertEqual(clamp_poll_interval(99999), 5000)
        self.assertEqual(clamp_poll_interval(1200), 1200)
        self.assertEqual(clamp_poll_interval("abc"), 750)
        self.assertEqual(clamp_poll_interval(None), 750)
        self.assertEqual(clamp_poll_interval(0), 750)


class TestSignalAndGate(unittest.TestCase):
    def test_release_is_idempotent(self):
        sig = Signal()
        got = []
        sub = sig.subscribe(got.append)
        sig.emit(1)
        sub.release()
        sub.release()
        sig.emit(2)
        self.assertEqual(got, [1])
        self.assertFalse(sub.active)
        self.assertEqual(len(sig), 0)

    def test_gate_emits_only_on_flip(self):
        gate = ActivityGate()
        seen = []
        gate.changed.subscribe(seen.append)
        gate.set_focused(True)
        gate.set_paused(True)
        gate.set_focused(False)  # already inactive
        gate.set_paused(False)  # still unfocused
        gate.set_focused(True)
        self.assertEqual(seen, [False, True])
        self.assertTrue(gate.toggle_paused())
        self.assertFalse(gate.active)


@pytest.mark.asyncio
async def test_periodic_task_runs_immediately_and_repeats():
    calls = []
    task = PeriodicTask(lambda: calls.append(1), 0.01, name="t")
    task.start()
    await asyncio.sleep(0)
    assert len(calls) == 1
    await asyncio.sleep(0.05)
    assert len(calls) >= 3
    task.stop()
    n = len(calls)
    await asyncio.sleep(0.03)
    assert len(calls) == n
    assert not task.running


@pytest.mark.asyncio
async def test_periodic_task_follows_gate():
    calls = []
    gate = ActivityGate(focused=False)
    async with PeriodicTask(lambda: calls.append(1), 0.01, gate=gate) as task:
        await asyncio.sleep(0.03)
        assert calls == []
        assert not task.running
        gate.set_focused(True)
        await asyncio.sleep(0)
        assert len(calls) == 1
        gate.set_paused(True)
        n = len(calls)
        await asyncio.sleep(0.03)
        assert len(calls) == n
    assert len(gate.changed) == 0


@pytest.mark.asyncio
async def test_periodic_task_survives_callback_errors():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")

    task = PeriodicTask(flaky, 0.01)
    task.start()
    await asyncio.sleep(0.05)
    task.stop()
    assert len(calls) >= 2
    assert task.runs >= 2


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicTask(lambda: None, 0)
