"""
Tests for MonitorRunner
"""

import asyncio
import logging
from unittest.mock import Mock

import pytest

from integrity_service.monitor.models import Sample, SessionPhase
from integrity_service.monitor.policy import MonitorPolicy
from integrity_service.monitor.runner import MonitorRunner, SignalSampler
from integrity_service.monitor.session import SessionController

from conftest import RecordingSink

FAST_POLICY = MonitorPolicy(
    sample_interval_ms=10,
    timer_interval_ms=5,
    inactivity_check_ms=20,
)


class ListSampler(SignalSampler):
    def __init__(self, sample=None, fail=False):
        self.sample = sample
        self.fail = fail
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.fail:
            raise RuntimeError("camera unplugged")
        return self.sample


class AsyncSampler(SignalSampler):
    def __init__(self):
        self.reads = 0

    async def read(self):
        self.reads += 1
        return Sample(face_presence=0.99)


def make_session(duration_ms, student, **kwargs):
    return SessionController(duration_ms, student, policy=FAST_POLICY, log_sink=RecordingSink(), **kwargs)


class TestMonitorRunner:

    @pytest.mark.asyncio
    async def test_exam_timer_ends_session(self, student):
        session = make_session(60, student)
        sampler = ListSampler(Sample(face_presence=0.99))
        runner = MonitorRunner(session, sampler)

        runner.start()
        await asyncio.wait_for(runner.wait(), timeout=2)

        assert session.phase == SessionPhase.ENDED
        assert session.end_reason == "Exam completed"
        assert runner.running is False
        assert sampler.reads > 0

    @pytest.mark.asyncio
    async def test_stop_cancels_loops(self, student):
        session = make_session(60000, student)
        runner = MonitorRunner(session, AsyncSampler())

        runner.start()
        await asyncio.sleep(0.05)
        await asyncio.wait_for(runner.stop(), timeout=2)

        assert session.phase == SessionPhase.ENDED
        assert runner.running is False

    @pytest.mark.asyncio
    async def test_sampler_errors_are_signal_gaps(self, student):
        session = make_session(60000, student)
        sampler = ListSampler(fail=True)
        runner = MonitorRunner(session, sampler)

        runner.start()
        await asyncio.sleep(0.05)
        await runner.stop()

        assert sampler.reads > 0
        assert session.violations == []

    def test_sampler_is_abstract(self):
        with pytest.raises(TypeError):
            SignalSampler()

    @pytest.mark.asyncio
    async def test_start_twice(self, student):
        runner = MonitorRunner(make_session(60000, student), ListSampler())

        runner.start()
        with pytest.raises(RuntimeError):
            runner.start()
        await runner.stop()

    @pytest.mark.asyncio
    async def test_observe_errors_keep_sampling(self, student):
        session = make_session(60000, student)
        session.observe_sample = Mock(side_effect=RuntimeError("pose model crashed"))
        runner = MonitorRunner(session, ListSampler(Sample(face_presence=0.99)))

        runner.start()
        await asyncio.sleep(0.08)
        sampling_alive = runner._tasks[0].done() is False
        await runner.stop()

        assert sampling_alive
        assert session.observe_sample.call_count > 1

    @pytest.mark.asyncio
    async def test_failed_loop_is_logged(self, student, caplog):
        caplog.set_level(logging.ERROR, logger="integrity_service.monitor.runner")
        session = make_session(60000, student)
        session.tick = Mock(side_effect=RuntimeError("clock broke"))
        runner = MonitorRunner(session, ListSampler())

        runner.start()
        await asyncio.sleep(0.05)
        await runner.stop()

        assert "exam-timer failed: clock broke" in caplog.text
