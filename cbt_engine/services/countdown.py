# FILE: cbt_engine/services/countdown.py
"""
Wall-clock countdown for one attempt

The remaining budget is always derived from an absolute start timestamp, so a
reload or reconnect can resume the same countdown. Expiry and manual submit are
mutually exclusive: both transitions require the state to still be RUNNING.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class CountdownState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXPIRED = "expired"
    COMPLETED = "completed"


class CountdownController:
    """Countdown state machine with a cooperative one-second tick"""

    def __init__(
        self,
        duration_seconds: float,
        on_expire: Optional[Callable[[], Awaitable[Any]]] = None,
        tick_seconds: float = 1.0,
        clock: Callable[[], float] = time.time
    ):
        self.duration_seconds = max(0.0, float(duration_seconds))
        self.on_expire = on_expire
        self.tick_seconds = tick_seconds
        self.clock = clock

        self.state = CountdownState.IDLE
        self.started_at: Optional[float] = None
        self.ended_at: Optional[float] = None
        self._remaining = self.duration_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.state == CountdownState.RUNNING

    def start(self, now: Optional[float] = None) -> bool:
        """idle -> running, anchored at now"""
        if self.state != CountdownState.IDLE:
            logger.debug(f"Ignoring start from state {self.state.value}")
            return False
        self.started_at = self.clock() if now is None else now
        self._remaining = self.duration_seconds
        self.state = CountdownState.RUNNING
        return True

    def resume(self, started_at: float) -> bool:
        """
        idle -> running, anchored at an earlier start (reload/reconnect)

        A spent budget leaves remaining_seconds() at 0; the next tick() expires
        the attempt and fires on_expire.
        """
        if not self.start(now=started_at):
            return False
        self._remaining = self.remaining_seconds()
        return True

    def remaining_seconds(self, now: Optional[float] = None) -> float:
        if self.state != CountdownState.RUNNING:
            return self._remaining
        return max(0.0, self.duration_seconds - self.elapsed_seconds(now))

    def elapsed_seconds(self, now: Optional[float] = None) -> float:
        """Seconds since the anchor, capped at the budget"""
        if self.started_at is None:
            return 0.0
        if self.state != CountdownState.RUNNING and self.ended_at is not None:
            end = self.ended_at
        else:
            end = self.clock() if now is None else now
        return min(self.duration_seconds, max(0.0, end - self.started_at))

    def submit(self, now: Optional[float] = None) -> bool:
        """running -> completed (manual submit); False if the attempt already ended"""
        return self._finish(CountdownState.COMPLETED, now)

    def expire(self, now: Optional[float] = None) -> bool:
        """running -> expired; False if the attempt already ended"""
        return self._finish(CountdownState.EXPIRED, now)

    def _finish(self, target: CountdownState, now: Optional[float]) -> bool:
        if self.state != CountdownState.RUNNING:
            logger.debug(f"Dropping {target.value} transition from state {self.state.value}")
            return False
        self.ended_at = self.clock() if now is None else now
        self._remaining = max(0.0, self.duration_seconds - (self.ended_at - self.started_at))
        self.state = target
        return True

    async def tick(self, now: Optional[float] = None) -> bool:
        """
        One countdown step

        Returns True when this tick expired the attempt (and ran on_expire).
        """
        if self.state != CountdownState.RUNNING:
            return False

        self._remaining = self.remaining_seconds(now)
        if self._remaining > 0:
            return False

        if not self.expire(now):
            return False

        logger.info("Countdown reached zero; forcing finalize")
        if self.on_expire is not None:
            await self.on_expire()
        return True

    async def run(self):
        """Tick every tick_seconds until the countdown leaves RUNNING"""
        while self.state == CountdownState.RUNNING:
            try:
                if await self.tick():
                    break
            except Exception as e:
                logger.error(f"Countdown expiry handler failed: {e}", exc_info=True)
                break
            await asyncio.sleep(self.tick_seconds)

    def launch(self) -> asyncio.Task:
        """Schedule run() on the current event loop"""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def release(self):
        """Stop the tick loop; safe to call from any exit path, including the loop itself"""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()

    async def __aenter__(self) -> "CountdownController":
        self.start()
        self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()
