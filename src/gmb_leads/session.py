import asyncio
import logging
from typing import Callable, Optional

from .cooldown import CooldownController, ProgressTicker, Sleep
from .merge import LeadCollection
from .schema import (
    SearchFailed,
    SearchOutcome,
    SearchParams,
    SearchQuotaExceeded,
    SearchSucceeded,
)

logger = logging.getLogger(__name__)

SearchRunner = Callable[[SearchParams], SearchOutcome]
Listener = Callable[["LeadSearchSession"], None]

GENERIC_FAILURE_MESSAGE = (
    "Search failed. Check your internet connection and location settings."
)


class LeadSearchSession:
    """
    Holds the state a search screen needs: the accumulated leads, the single
    in-flight search, its cosmetic progress and the quota cooldown.

    Only the most recent search is tracked. A newer search cancels any
    countdown and makes the older result stale; stale results are dropped.
    """

    def __init__(
        self,
        runner: SearchRunner,
        *,
        max_auto_retries: int = 1,
        sleep: Sleep = asyncio.sleep,
        listener: Optional[Listener] = None,
    ):
        self._runner = runner
        self._max_auto_retries = max_auto_retries
        self._listener = listener
        self._cooldown = CooldownController(sleep=sleep)
        self._ticker = ProgressTicker(self._on_progress, sleep=sleep)
        self._tasks: set[asyncio.Task] = set()
        self._generation = 0
        self._retries_used = 0

        self.collection = LeadCollection()
        self.is_loading = False
        self.error: Optional[str] = None
        self.countdown: Optional[int] = None
        self.progress = 0
        self.status = ""
        self.last_params: Optional[SearchParams] = None

    async def search(self, params: SearchParams) -> Optional[SearchOutcome]:
        """Run a user-initiated search. Returns None when a newer search superseded it."""
        self._retries_used = 0
        return await self._run(params)

    def cancel_cooldown(self) -> None:
        self._cooldown.cancel()
        self._ticker.stop()
        self.countdown = None
        self.is_loading = False
        self.error = None
        self.progress = 0
        self.status = ""
        self._notify()

    def clear(self) -> None:
        self.collection.clear()
        self._notify()

    async def wait_idle(self) -> None:
        """Wait for the in-flight search, any countdown and the retry it schedules."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            cooldown_task = self._cooldown.task
            if cooldown_task is not None and not cooldown_task.done():
                pending.append(cooldown_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        self._generation += 1
        tasks = list(self._tasks)
        if self._cooldown.task is not None:
            tasks.append(self._cooldown.task)
        self._cooldown.cancel()
        self._ticker.stop()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def _run(self, params: SearchParams) -> Optional[SearchOutcome]:
        self._cooldown.cancel()
        self._generation += 1
        generation = self._generation

        self.last_params = params
        self.is_loading = True
        self.error = None
        self.countdown = None
        self.progress = 0
        self.status = "Establishing Precise GPS Link..."
        self._ticker.start(params.keyword, params.radius_km)
        self._notify()

        try:
            outcome = await asyncio.to_thread(self._runner, params)
        except Exception as e:
            logger.exception("Lead search crashed")
            if generation != self._generation:
                return None
            self._ticker.stop()
            self.is_loading = False
            self.progress = 0
            self.error = str(e) or GENERIC_FAILURE_MESSAGE
            self._notify()
            return SearchFailed(kind="transport", message=self.error)

        if generation != self._generation:
            logger.info(f"Dropping stale result for keyword={params.keyword!r}")
            return None

        self._ticker.stop()
        self._apply(outcome)
        return outcome

    def _apply(self, outcome: SearchOutcome) -> None:
        if isinstance(outcome, SearchSucceeded):
            added = self.collection.merge(outcome.leads)
            logger.info(f"Search finished: {len(added)} new leads")
            self.is_loading = False
            self.progress = 100
            self.status = "Deep Scan Complete!"
        elif isinstance(outcome, SearchQuotaExceeded):
            if self._retries_used < self._max_auto_retries:
                self._retries_used += 1
                self.error = outcome.message
                self.progress = 0
                self.status = "Waiting for quota cooldown..."
                self._cooldown.start(
                    outcome.retry_after_seconds,
                    on_tick=self._on_countdown,
                    on_expire=self._resume,
                )
            else:
                self.is_loading = False
                self.progress = 0
                self.error = (
                    f"{outcome.message} Automatic retry limit reached, "
                    "please try again later."
                )
        elif isinstance(outcome, SearchFailed):
            self.is_loading = False
            self.progress = 0
            self.error = outcome.message
        self._notify()

    def _on_countdown(self, remaining: int) -> None:
        self.countdown = remaining
        self._notify()

    def _on_progress(self, progress: int, status: str) -> None:
        self.progress = progress
        self.status = status
        self._notify()

    def _resume(self) -> None:
        if self.last_params is None:
            return
        self.countdown = None
        task = asyncio.get_running_loop().create_task(self._run(self.last_params))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify(self) -> None:
        if self._listener is not None:
            self._listener(self)
