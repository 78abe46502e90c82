import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .session import SessionController

logger = logging.getLogger(__name__)


class CountdownTimer:
    """
    Drives the per-question countdown of the active session.

    The timer keeps no copy of ``time_left``: every tick re-reads the session
    through the controller, so it stays correct across pause/resume, question
    changes and sessions restored from disk. When a tick brings the clock to
    zero ``on_expire`` is awaited once with the question index; ticking then
    stops until the session moves to a question with time on the clock.
    """

    def __init__(
        self,
        controller: SessionController,
        on_expire: Callable[[int], Awaitable[None]],
        interval: float = 1.0,
    ):
        self.controller = controller
        self.on_expire = on_expire
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._subscribers: List[asyncio.Queue] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def should_tick(self) -> bool:
        session = self.controller.session
        return (
            session is not None
            and session.interview_started
            and not session.interview_completed
            and not session.is_paused
            and isinstance(session.time_left, int)
            and session.time_left > 0
        )

    def start(self) -> None:
        if self.running:
            return
        session = self.controller.session
        if session is not None and session.interview_running and not session.is_paused and session.time_left == 0:
            # Restored with the clock already run out; the submit guard drops duplicates.
            self._task = asyncio.create_task(self._expire_then_run())
        else:
            self._task = asyncio.create_task(self._run())

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # Stopped from inside on_expire: let the loop notice and return instead of
        # cancelling the coroutine that is still awaiting.
        if task is not current:
            task.cancel()

    async def tick(self) -> Optional[int]:
        """Advance the clock by one second if the session allows it."""
        if not self.should_tick():
            return None
        time_left = self.controller.tick()
        logger.debug(f"Tick: {time_left}s left")
        self._publish({"type": "tick", "time_left": time_left})
        if time_left == 0:
            await self._expire()
        return time_left

    async def _expire(self) -> None:
        session = self.controller.session
        index = session.current_question_index if session else None
        logger.info(f"Time expired on question index {index}")
        self._publish({"type": "expired", "question_index": index})
        await self.on_expire(index)

    async def _expire_then_run(self) -> None:
        await self._expire()
        if self._owns_loop():
            await self._run()

    def _owns_loop(self) -> bool:
        return self._task is not None and self._task is asyncio.current_task()

    async def _run(self) -> None:
        while self._owns_loop():
            await asyncio.sleep(self.interval)
            if not self._owns_loop():
                return
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Timer tick failed: {e}", exc_info=True)

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _publish(self, event: dict) -> None:
        for queue in self._subscribers:
            queue.put_nowait(event)
