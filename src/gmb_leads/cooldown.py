import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

PROGRESS_CEILING = 98


class CooldownController:
    """
    One-second countdown after a quota error.

    start() replaces any running countdown, so at most one is ever active.
    on_expire runs once the countdown reaches zero; cancel() suppresses it.
    """

    def __init__(self, *, sleep: Sleep = asyncio.sleep, interval: float = 1.0):
        self._sleep = sleep
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self.remaining: Optional[int] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def start(
        self,
        seconds: int,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
    ) -> asyncio.Task:
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(
            self._run(max(0, int(seconds)), on_tick, on_expire)
        )
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.remaining = None

    async def _run(
        self,
        seconds: int,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
    ) -> None:
        remaining = seconds
        while remaining > 0:
            self.remaining = remaining
            on_tick(remaining)
            await self._sleep(self._interval)
            remaining -= 1

        self.remaining = 0
        on_tick(0)
        # Detach before expiring so a restart from on_expire does not cancel us
        self._task = None
        logger.info("Cooldown finished, resuming search")
        on_expire()


def progress_status(progress: float, keyword: str, radius_km: float) -> str:
    if progress < 15:
        return "Locking GPS Satellite Signal..."
    if progress < 35:
        return f'Mapping {radius_km:g}km Radius for "{keyword}"...'
    if progress < 60:
        return "Finding top ranked listings..."
    if progress < 85:
        return "Finding deeper ranked listings..."
    return "Compiling lead table..."


class ProgressTicker:
    """Cosmetic progress for a running search. Never tied to the request itself."""

    def __init__(
        self,
        on_progress: Callable[[int, str], None],
        *,
        sleep: Sleep = asyncio.sleep,
        interval: float = 0.6,
        rng: Callable[[], float] = random.random,
    ):
        self._on_progress = on_progress
        self._sleep = sleep
        self._interval = interval
        self._rng = rng
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, keyword: str, radius_km: float) -> None:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(
            self._run(keyword, radius_km)
        )

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _increment(self, progress: float) -> float:
        if progress > 90:
            return 0.1
        if progress > 70:
            return 0.3
        return self._rng() * 1.5 + 0.5

    async def _run(self, keyword: str, radius_km: float) -> None:
        progress = 0.0
        while progress < PROGRESS_CEILING:
            await self._sleep(self._interval)
            progress = min(progress + self._increment(progress), PROGRESS_CEILING)
            self._on_progress(int(progress), progress_status(progress, keyword, radius_km))
