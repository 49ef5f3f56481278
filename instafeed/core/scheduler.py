"""Fetch scheduling: when to refetch and the automatic trigger timer."""

import asyncio
import time
from typing import Callable, Optional

from instafeed.utils.config import FETCH_INTERVAL, TRIGGER_POLL_INTERVAL
from instafeed.utils.logging import get_logger

logger = get_logger(__name__)


class IntervalPolicy:
    """
    Allows one automatic fetch per interval.

    An attempt counts from the moment it starts. While an attempt is in
    progress no further automatic fetch is due.
    """

    def __init__(self, interval: float = FETCH_INTERVAL, clock: Callable[[], float] = time.monotonic):
        """
        Initialize policy.

        Args:
            interval: Minimum seconds between automatic attempts
            clock: Monotonic time source
        """
        self.interval = interval
        self.clock = clock
        self.last_attempt: Optional[float] = None
        self.in_progress = False

    @property
    def should_fetch(self) -> bool:
        if self.in_progress:
            return False
        if self.last_attempt is None:
            return True
        return self.clock() - self.last_attempt >= self.interval

    def started(self) -> None:
        self.in_progress = True
        self.last_attempt = self.clock()

    def completed(self) -> None:
        self.in_progress = False

    def failed(self) -> None:
        self.in_progress = False

    def reset(self) -> None:
        self.last_attempt = None
        self.in_progress = False


class FetchScheduler:
    """
    Decides whether a fetch is due and fires the automatic trigger.

    While switched on, a background task checks the policy every
    ``poll_interval`` seconds and calls ``on_trigger`` when a fetch is due.
    The trigger is fire-and-forget; the scheduler never waits on the fetch.
    """

    def __init__(
        self,
        on_trigger: Callable[[], None],
        policy: Optional[IntervalPolicy] = None,
        poll_interval: float = TRIGGER_POLL_INTERVAL,
    ):
        self.on_trigger = on_trigger
        self.policy = policy or IntervalPolicy()
        self.poll_interval = poll_interval
        self._is_on = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_on(self) -> bool:
        return self._is_on

    @is_on.setter
    def is_on(self, value: bool) -> None:
        if value == self._is_on:
            return
        self._is_on = value
        logger.debug(f"Automatic fetching {'enabled' if value else 'disabled'}")
        if value:
            self.arm()
        else:
            self._cancel()

    def should_fetch(self, force: bool = False, cache_empty: bool = False) -> bool:
        return force or cache_empty or self.policy.should_fetch

    def started(self) -> None:
        self.policy.started()

    def completed(self) -> None:
        self.policy.completed()

    def failed(self) -> None:
        self.policy.failed()

    def arm(self) -> None:
        """Start the trigger task if switched on and an event loop is running."""
        if not self._is_on or (self._task is not None and not self._task.done()):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, automatic trigger deferred")
            return
        self._task = loop.create_task(self._run())

    def stop(self) -> None:
        self._is_on = False
        self._cancel()

    def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while self._is_on:
            await asyncio.sleep(self.poll_interval)
            if self._is_on and self.policy.should_fetch:
                logger.debug("Automatic fetch triggered")
                try:
                    self.on_trigger()
                except Exception:
                    logger.exception("Automatic trigger failed")
