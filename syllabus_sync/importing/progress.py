"""
Synthetic progress for imports.

Extraction and remote parsing expose no fractional progress, so the bar is
driven by a background task that walks each stage's progress window in
randomized steps while the real work runs, holds below the window's end until
the pipeline reports the stage finished, then publishes the stage-completion
message at the window's end.
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from .cancellation import CancellationController
from .config import ProgressConfig
from .models import ImportStage
from .session import ImportSession

logger = logging.getLogger(__name__)


@dataclass
class StageRequest:
    stage: ImportStage
    completion_message: str
    play_through: bool = False
    abandoned: bool = False
    work_done: asyncio.Event = field(default_factory=asyncio.Event)
    closed: asyncio.Event = field(default_factory=asyncio.Event)


class ProgressSimulator:
    def __init__(
        self,
        session: ImportSession,
        cancellation: CancellationController,
        config: Optional[ProgressConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.cancellation = cancellation
        self.config = config or ProgressConfig()
        self.rng = rng or random.Random()
        self._queue: "asyncio.Queue[StageRequest]" = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        # First tick is synchronous so the bar shows activity before any await.
        self._publish(self.config.initial_progress, self.config.initial_message)
        self._task = asyncio.create_task(self._run(), name="import-progress")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001
                logger.exception("Progress simulator task failed")
        while not self._queue.empty():
            self._queue.get_nowait().closed.set()

    @asynccontextmanager
    async def stage(
        self,
        stage: ImportStage,
        completion_message: str,
        play_through: bool = False,
    ) -> AsyncIterator[StageRequest]:
        """
        Animate `stage`'s window while the body runs.

        On a clean exit this waits for the simulator to publish the window end,
        so the boundary value is always the last write for the stage.
        """
        request = StageRequest(stage=stage, completion_message=completion_message, play_through=play_through)
        self._queue.put_nowait(request)
        try:
            yield request
        except BaseException:
            request.abandoned = True
            raise
        finally:
            request.work_done.set()
        if self.cancellation.is_cancelled or not self.running:
            return
        await request.closed.wait()

    async def finish(self, message: str) -> None:
        """Stop stage animation and glide the remaining distance towards 1.0."""
        await self.stop()
        start = self.session.progress
        if start >= 1.0:
            self._publish(1.0, message)
            return
        steps = max(1, self.config.finish_steps)
        remaining = 1.0 - start
        # The final step (exactly 1.0) belongs to the pipeline's completion.
        for step in range(1, steps):
            if self.cancellation.is_cancelled:
                return
            self._publish(start + remaining * step / steps, message)
            await asyncio.sleep(self.config.finish_delay)

    async def _run(self) -> None:
        await asyncio.sleep(self.config.settle_delay)
        while True:
            request = await self._queue.get()
            try:
                await self._animate(request)
            finally:
                request.closed.set()
            if self.cancellation.is_cancelled:
                return

    async def _animate(self, request: StageRequest) -> None:
        start, end = request.stage.window
        low, high = self.config.step_range
        steps = max(1, self.rng.randint(low, high))
        increment = (end - start) / steps
        messages = self.config.step_messages

        for index in range(1, steps):
            if self.cancellation.is_cancelled or request.abandoned:
                return
            if request.work_done.is_set() and not request.play_through:
                break
            self._publish(start + index * increment, messages[(index - 1) % len(messages)])
            await asyncio.sleep(self.rng.uniform(*self.config.step_delay_range))

        while not request.work_done.is_set():
            if self.cancellation.is_cancelled:
                return
            try:
                await asyncio.wait_for(request.work_done.wait(), timeout=self.config.hold_interval)
            except asyncio.TimeoutError:
                continue

        if self.cancellation.is_cancelled or request.abandoned:
            return
        self._publish(end, request.completion_message)

    def _publish(self, value: float, message: str) -> None:
        if self.cancellation.is_cancelled or not self.session.is_running:
            return
        self.session.update_progress(value, message)
