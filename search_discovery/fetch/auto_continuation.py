"""
Delayed follow-up page requests for sparse result pages.

At most one follow-up is pending at any time; a fixed delay between the
sparse response and the follow-up keeps a run of sparse pages from turning
into a burst of back-to-back requests.
"""

import asyncio
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class AutoContinuation:
    """Single-slot scheduler for automatic next-page fetches.

    Attributes:
        delay_seconds: Wait between scheduling and firing
        scheduled_count: Follow-ups scheduled over the instance lifetime
    """

    def __init__(self, delay_ms: int = 100):
        self.delay_seconds = delay_ms / 1000
        self.scheduled_count = 0
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self, callback: Callable[[], None]) -> bool:
        """Schedule callback after the delay unless one is already pending.

        Must be called from within a running event loop.

        Returns:
            True if a follow-up was scheduled, False if one was already pending
        """
        if self._handle is not None:
            logger.debug("Auto-continuation already pending, not scheduling another")
            return False

        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_seconds, self._fire, callback)
        self.scheduled_count += 1
        return True

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self, callback: Callable[[], None]) -> None:
        self._handle = None
        callback()
