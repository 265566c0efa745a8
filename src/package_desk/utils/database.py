"""
Record store contract and Supabase integration.

This module defines the record store the desk depends on (CRUD over the
residents, storage_locations and packages tables plus a change feed) and
its Supabase implementation built on the async client: PostgREST for rows
and Realtime ``postgres_changes`` channels for change notifications.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from uuid import uuid4

from supabase import AsyncClient, acreate_client

from ..config import get_config
from ..schemas.database_models import ChangeEvent

logger = logging.getLogger(__name__)

# (column, descending)
OrderSpec = Tuple[str, bool]

# Realtime subscribe states after which a channel delivers nothing more.
DROPPED_CHANNEL_STATES = {"CHANNEL_ERROR", "TIMED_OUT", "CLOSED"}


class DatabaseConnectionError(Exception):
    """Raised when the record store client cannot be created."""
    pass


class ChangeSubscription:
    """
    Live feed of change events for one table.

    Consumed as an async iterator; iteration ends once the subscription is
    closed by ``RecordStore.unsubscribe`` or the feed is dropped.
    """

    def __init__(self, table: str, events: str = "*", handle: Any = None):
        self.table = table
        self.events = events
        self.handle = handle
        self._queue: "asyncio.Queue[Optional[ChangeEvent]]" = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: ChangeEvent) -> None:
        """Deliver an event to the consumer. Ignored once closed."""
        if self._closed:
            return
        if self.events != "*" and event.type.value != self.events:
            return
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class RecordStore(ABC):
    """Remote record store with per-row atomic writes and a change feed."""

    @abstractmethod
    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[OrderSpec] = None,
    ) -> List[Dict[str, Any]]:
        """Read rows; ``filters`` are equality conditions."""

    @abstractmethod
    async def insert(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Insert one row and return it as stored."""

    @abstractmethod
    async def update(
        self,
        table: str,
        identity: str,
        fields: Dict[str, Any],
        match: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Update the row with ``id = identity``.

        ``match`` adds equality conditions evaluated atomically with the
        write. Returns the updated rows, empty when nothing matched.
        """

    @abstractmethod
    async def delete(self, table: str, identity: str) -> None:
        """Delete the row with ``id = identity``."""

    @abstractmethod
    async def subscribe(self, table: str, events: str = "*") -> ChangeSubscription:
        """Open a change feed on ``table``."""

    @abstractmethod
    async def unsubscribe(self, subscription: ChangeSubscription) -> None:
        """Release a change feed and end its iteration."""

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform a health check against the record store.

        Returns:
            Dict containing health check results.
        """
        health_status = {
            "status": "unknown",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "tests": {},
        }

        try:
            loop = asyncio.get_running_loop()
            start_time = loop.time()
            await self.select("storage_locations", columns="id")
            health_status["tests"]["select"] = {
                "status": "healthy",
                "latency_ms": round((loop.time() - start_time) * 1000, 2),
            }
        except Exception as e:
            health_status["tests"]["select"] = {
                "status": "unhealthy",
                "error": str(e),
            }

        all_tests_healthy = all(
            test.get("status") == "healthy"
            for test in health_status["tests"].values()
        )
        health_status["status"] = "healthy" if all_tests_healthy else "unhealthy"
        return health_status

    async def close(self) -> None:
        """Release client resources."""


class SupabaseRecordStore(RecordStore):
    """
    Supabase-backed record store.

    The async client is created lazily on first use; an existing client can
    be injected for testing.
    """

    def __init__(self, client: Optional[AsyncClient] = None):
        self.config = get_config()
        self._client: Optional[AsyncClient] = client
        self._client_lock = asyncio.Lock()
        self._connection_stats = {
            "total_connections": 0,
            "failed_connections": 0,
            "last_connection_time": None,
            "last_failure_time": None,
        }

    async def get_client(self) -> AsyncClient:
        """
        Get the Supabase client instance.

        Raises:
            DatabaseConnectionError: If client initialization fails.
        """
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    await self._initialize_client()
        return self._client

    async def _initialize_client(self) -> None:
        """Initialize the Supabase client with configuration."""
        try:
            from supabase.lib.client_options import AsyncClientOptions

            options = AsyncClientOptions(
                schema=self.config.supabase.schema_name,
                postgrest_client_timeout=self.config.supabase.timeout,
            )
            self._client = await acreate_client(
                self.config.supabase.url,
                self.config.supabase.key,
                options=options,
            )

            self._connection_stats["last_connection_time"] = datetime.now(timezone.utc)
            self._connection_stats["total_connections"] += 1

            logger.info("Supabase client initialized successfully")

        except Exception as e:
            self._connection_stats["failed_connections"] += 1
            self._connection_stats["last_failure_time"] = datetime.now(timezone.utc)
            logger.error(f"Failed to initialize Supabase client: {e}")
            raise DatabaseConnectionError(f"Client initialization failed: {e}")

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[OrderSpec] = None,
    ) -> List[Dict[str, Any]]:
        client = await self.get_client()
        query = client.table(table).select(columns)
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order is not None:
            column, descending = order
            query = query.order(column, desc=descending)

        logger.debug(f"[SupabaseRecordStore] select {table} ({columns}) filters={filters} order={order}")
        response = await query.execute()
        return list(response.data or [])

    async def insert(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        client = await self.get_client()
        logger.debug(f"[SupabaseRecordStore] insert into {table}: {sorted(fields)}")
        response = await client.table(table).insert(fields).execute()
        rows = list(response.data or [])
        if not rows:
            raise DatabaseConnectionError(f"Insert into {table} returned no row")
        return rows[0]

    async def update(
        self,
        table: str,
        identity: str,
        fields: Dict[str, Any],
        match: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        client = await self.get_client()
        query = client.table(table).update(fields).eq("id", identity)
        for column, value in (match or {}).items():
            query = query.eq(column, value)

        logger.debug(f"[SupabaseRecordStore] update {table} id={identity} match={match}")
        response = await query.execute()
        return list(response.data or [])

    async def delete(self, table: str, identity: str) -> None:
        client = await self.get_client()
        logger.debug(f"[SupabaseRecordStore] delete from {table} id={identity}")
        await client.table(table).delete().eq("id", identity).execute()

    async def subscribe(self, table: str, events: str = "*") -> ChangeSubscription:
        client = await self.get_client()
        channel_name = f"{self.config.desk.realtime_channel}-{table}-{uuid4().hex[:8]}"
        channel = client.channel(channel_name)
        subscription = ChangeSubscription(table, events, handle=channel)

        def _on_change(payload: Dict[str, Any]) -> None:
            try:
                event = ChangeEvent.from_payload(table, payload)
            except ValueError as e:
                # Unparseable payloads still mean "something changed".
                logger.debug(f"[SupabaseRecordStore] Unrecognized change payload on {table}: {e}")
                event = ChangeEvent(table=table, type="UPDATE")
            subscription.push(event)

        channel.on_postgres_changes(
            events,
            callback=_on_change,
            table=table,
            schema=self.config.supabase.schema_name,
        )

        def _on_state(state: Any, error: Optional[Exception] = None) -> None:
            state_name = str(getattr(state, "value", state))
            if state_name in DROPPED_CHANNEL_STATES:
                logger.warning(f"[SupabaseRecordStore] Channel {channel_name} {state_name}: {error}")
                subscription.close()

        await channel.subscribe(_on_state)
        logger.info(f"[SupabaseRecordStore] Subscribed to {table} changes on channel {channel_name}")
        return subscription

    async def unsubscribe(self, subscription: ChangeSubscription) -> None:
        try:
            if subscription.handle is not None and self._client is not None:
                await self._client.remove_channel(subscription.handle)
                logger.info(f"[SupabaseRecordStore] Unsubscribed from {subscription.table} changes")
        finally:
            subscription.close()

    async def health_check(self) -> Dict[str, Any]:
        """Store health plus client connection statistics."""
        health_status = await super().health_check()
        health_status["connection_stats"] = self._connection_stats.copy()
        return health_status

    async def close(self) -> None:
        """Close realtime channels and drop the client."""
        if self._client is not None:
            await self._client.remove_all_channels()
            logger.info("Supabase realtime channels closed")
        self._client = None
        logger.info("Database connections closed")


# Global record store instance
record_store: Optional[RecordStore] = None


def get_record_store() -> RecordStore:
    """
    Get the global record store instance.

    Returns:
        RecordStore: The record store instance.
    """
    global record_store
    if record_store is None:
        record_store = SupabaseRecordStore()
    return record_store


async def close_record_store() -> None:
    """Close the global record store."""
    global record_store
    if record_store:
        await record_store.close()
        record_store = None
