"""
Expiry sweeper for the authorization store.

A sweep deletes every grant holding at least one expired token. The
cutoff is taken once at the start of a pass and used for the whole pass.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Union

from ..common.utils import as_utc, get_current_time
from ..store.types import AuthorizationStore
from ..types.grant import Grant, TokenKind


logger = logging.getLogger(__name__)


class ExpirySweeper:
    """
    Periodic expiry cleanup for an authorization store.

    Call run_once() from an external scheduler, or start() to run the
    built-in background loop.
    """

    def __init__(self, store: AuthorizationStore, interval: timedelta = timedelta(minutes=5)):
        """
        Initialize the sweeper.

        Args:
            store: Store to sweep
            interval: Time between background passes
        """
        if interval <= timedelta(0):
            raise ValueError("sweep interval must be positive")
        self.store = store
        self.interval = interval
        self.last_sweep_at: Optional[datetime] = None
        self.last_deleted = 0
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def find_expired(self, kind: Union[str, TokenKind], as_of: Optional[datetime] = None) -> List[Grant]:
        """Grants whose token of the given kind expired at or before as_of."""
        return await self.store.find_expired(kind, as_utc(as_of) or get_current_time())

    async def delete_expired(self, as_of: Optional[datetime] = None) -> int:
        """Delete expired grants, returning how many were removed."""
        cutoff = as_utc(as_of) or get_current_time()
        deleted = await self.store.delete_expired(cutoff)
        self.last_sweep_at = cutoff
        self.last_deleted = deleted
        return deleted

    async def run_once(self) -> int:
        """Run one sweep pass with the current time as cutoff."""
        logger.debug("Starting expiry sweep")
        deleted = await self.delete_expired()
        logger.debug(f"Completed expiry sweep, removed {deleted} grants")
        return deleted

    async def start(self) -> None:
        """Start the background sweep task."""
        if not self._running:
            self._running = True
            self._task = asyncio.create_task(self._run())
            logger.info(f"Started expiry sweeper (interval {self.interval.total_seconds():.0f}s)")

    async def stop(self) -> None:
        """Stop the background sweep task."""
        if self._running:
            self._running = False
            if self._task:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
                self._task = None
            logger.info("Stopped expiry sweeper")

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.interval.total_seconds())
                if self._running:
                    await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in expiry sweep: {e}")
