"""Asyncio clock that drives one-second ticks into a running session."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import contextlib
import logging

from study_quiz.constants.quiz_constants import TIMER_TICK_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SessionTicker:
    """Calls ``on_tick`` every ``interval`` seconds until stopped.

    The session itself never reads the wall clock; hosts run one of these
    next to a :class:`~study_quiz.core.quiz_manager.QuizManager` and pass
    ``manager.tick``. Tests skip it and apply ticks directly.
    """

    def __init__(
        self,
        on_tick: Callable[[], object],
        interval: float = TIMER_TICK_INTERVAL_SECONDS,
    ) -> None:
        if interval <= 0:
            raise ValueError("Tick interval must be positive.")
        self._on_tick = on_tick
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the tick loop on the running event loop."""
        if self.is_running():
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._on_tick()
            except Exception:
                logger.exception("Tick handler failed; stopping the session clock")
                raise
