"""
Monitor Runner - Schedules sampling, exam timer and inactivity ticks
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from .models import EndReason, Sample
from .policy import MonitorPolicy
from .session import SessionController

logger = logging.getLogger(__name__)


class SignalSampler(ABC):
    """
    Source of periodic samples (pose model + presence classifier).

    read() may be a plain or async method; returning None means no
    signal for this tick.
    """

    @abstractmethod
    def read(self) -> Optional[Sample]:
        """Return the latest sample, or None"""


class MonitorRunner:
    """
    Drives a SessionController from three independent asyncio loops:

    - sampling tick (default 2000 ms): sampler -> observe_sample
    - exam timer tick (default 1000 ms): tick
    - inactivity check (default 5000 ms): check_inactivity

    Each loop is attached to the controller as a cancellable timer, so
    ending the session cancels all of them before resources are released.
    """

    def __init__(
        self,
        controller: SessionController,
        sampler: SignalSampler,
        policy: Optional[MonitorPolicy] = None
    ):
        self.controller = controller
        self.sampler = sampler
        self.policy = policy or controller.policy
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self):
        """Start all loops on the running event loop"""
        if self._tasks:
            raise RuntimeError("Runner already started")

        loops = [
            (self._sampling_loop(), "sampling"),
            (self._timer_loop(), "exam-timer"),
            (self._inactivity_loop(), "inactivity"),
        ]
        for coro, name in loops:
            task = asyncio.create_task(coro, name=f"{self.controller.id}-{name}")
            self._tasks.append(task)
            self.controller.attach_timer(task)

        logger.info(f"Runner started for session {self.controller.id}")

    async def wait(self):
        """Wait until every loop has stopped"""
        if not self._tasks:
            return
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                logger.error(f"Loop {task.get_name()} failed: {result}")

    async def stop(self, reason: str = EndReason.COMPLETED.value):
        """End the session and wait for the loops to unwind"""
        self.controller.end_exam(reason)
        await self.wait()

    async def _sampling_loop(self):
        interval = self.policy.sample_interval_ms / 1000
        while self.controller.is_active:
            await asyncio.sleep(interval)
            sample = await self._read_sample()
            if sample is None:
                continue
            try:
                self.controller.observe_sample(sample)
            except Exception as e:
                logger.error(f"Failed to observe sample for session {self.controller.id}: {e}")

    async def _timer_loop(self):
        interval = self.policy.timer_interval_ms / 1000
        while self.controller.is_active:
            await asyncio.sleep(interval)
            self.controller.tick()

    async def _inactivity_loop(self):
        interval = self.policy.inactivity_check_ms / 1000
        while self.controller.is_active:
            await asyncio.sleep(interval)
            self.controller.check_inactivity()

    async def _read_sample(self) -> Optional[Sample]:
        try:
            sample = self.sampler.read()
            if inspect.isawaitable(sample):
                sample = await sample
            return sample
        except Exception as e:
            logger.warning(f"Sampler error for session {self.controller.id}: {e}")
            return None
