"""
Change Listener for the packages table.

Keeps one live subscription to the packages change feed while the check-out
view is active. Every event, whatever its type or payload, triggers a full
refresh of the packages collection.
"""

import asyncio
import contextlib
import logging
from typing import Optional

from ..repositories import RepositoryError
from ..utils.database import ChangeSubscription, RecordStore
from .view_cache import CollectionKind, ViewCache

logger = logging.getLogger(__name__)


class PackageChangeListener:
    """
    Single-subscription listener driving packages refreshes.

    ``start`` is a no-op while a subscription is live, so re-entering the
    view never stacks listeners. ``stop`` releases the subscription and
    cancels the consumer task.
    """

    def __init__(self, store: RecordStore, cache: ViewCache, table: str = "packages"):
        self._store = store
        self._cache = cache
        self._table = table
        self._subscription: Optional[ChangeSubscription] = None
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self.events_received = 0

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Open the subscription and start consuming it."""
        async with self._lock:
            if self.is_active:
                logger.debug(f"[ChangeListener] Already listening on {self._table}")
                return
            if self._subscription is not None:
                # Previous feed was dropped; release it before resubscribing.
                await self._release()

            self._subscription = await self._store.subscribe(self._table, "*")
            self._task = asyncio.create_task(
                self._consume(self._subscription),
                name=f"change-listener-{self._table}",
            )
            logger.info(f"[ChangeListener] Listening for {self._table} changes")

    async def stop(self) -> None:
        """Release the subscription. Safe to call when not started."""
        async with self._lock:
            await self._release()

    async def _release(self) -> None:
        subscription, task = self._subscription, self._task
        self._subscription = None
        self._task = None
        if subscription is None:
            return
        try:
            await self._store.unsubscribe(subscription)
        finally:
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        logger.info(f"[ChangeListener] Stopped listening for {self._table} changes")

    async def _consume(self, subscription: ChangeSubscription) -> None:
        async for event in subscription:
            self.events_received += 1
            logger.debug(f"[ChangeListener] {event.type.value} on {event.table}; refreshing packages")
            try:
                await self._cache.refresh(CollectionKind.PACKAGES)
            except RepositoryError as e:
                # Next event or view re-entry retries the read.
                logger.warning(f"[ChangeListener] Packages refresh failed: {e.message}")

        if self._subscription is subscription:
            logger.warning(f"[ChangeListener] {self._table} change feed ended; live refresh stopped")
