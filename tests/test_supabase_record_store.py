"""
Tests for the Supabase record store against a mocked async client.

Covers the PostgREST query chains built for each operation, the realtime
channel wiring for change feeds, and the pass-through of PostgREST error
messages to repository errors.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from package_desk.repositories import DatabaseOperationError, ResidentRepository
from package_desk.schemas.database_models import ChangeType
from package_desk.utils.database import SupabaseRecordStore


def make_query(data=None, error=None):
    """Chainable PostgREST query mock whose execute() returns ``data``."""
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "order"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute = AsyncMock(side_effect=error)
    else:
        query.execute = AsyncMock(return_value=MagicMock(data=data if data is not None else []))
    return query


def make_client(query=None):
    client = MagicMock()
    client.table.return_value = query or make_query()
    client.channel.return_value = MagicMock(subscribe=AsyncMock())
    client.remove_channel = AsyncMock()
    client.remove_all_channels = AsyncMock()
    return client


class TestSupabaseQueries:

    @pytest.mark.asyncio
    async def test_select_applies_filters_and_order(self):
        query = make_query([{"id": "r1"}])
        store = SupabaseRecordStore(client=make_client(query))

        rows = await store.select("residents", columns="id, name", filters={"id": "r1"}, order=("name", False))

        assert rows == [{"id": "r1"}]
        query.select.assert_called_once_with("id, name")
        query.eq.assert_called_once_with("id", "r1")
        query.order.assert_called_once_with("name", desc=False)

    @pytest.mark.asyncio
    async def test_insert_returns_created_row(self):
        query = make_query([{"id": "p1", "package_id": "PKG-1"}])
        client = make_client(query)
        store = SupabaseRecordStore(client=client)

        row = await store.insert("packages", {"package_id": "PKG-1"})

        assert row["id"] == "p1"
        client.table.assert_called_with("packages")
        query.insert.assert_called_once_with({"package_id": "PKG-1"})

    @pytest.mark.asyncio
    async def test_conditional_update_adds_match_filters(self):
        query = make_query([])
        store = SupabaseRecordStore(client=make_client(query))

        rows = await store.update("packages", "p1", {"status": "checked_out"}, match={"status": "checked_in"})

        assert rows == []
        query.update.assert_called_once_with({"status": "checked_out"})
        assert [c.args for c in query.eq.call_args_list] == [("id", "p1"), ("status", "checked_in")]

    @pytest.mark.asyncio
    async def test_delete_by_id(self):
        query = make_query()
        store = SupabaseRecordStore(client=make_client(query))

        await store.delete("residents", "r1")

        query.delete.assert_called_once_with()
        query.eq.assert_called_once_with("id", "r1")

    @pytest.mark.asyncio
    async def test_postgrest_error_message_reaches_repository_error(self):
        error = APIError({"message": "permission denied for table residents", "code": "42501"})
        store = SupabaseRecordStore(client=make_client(make_query(error=error)))
        repository = ResidentRepository(store)

        with pytest.raises(DatabaseOperationError) as exc_info:
            await repository.list_all()

        assert exc_info.value.message == "permission denied for table residents"
        assert exc_info.value.operation == "select"


class TestSupabaseChangeFeed:

    @pytest.mark.asyncio
    async def test_subscribe_registers_postgres_changes(self):
        client = make_client()
        store = SupabaseRecordStore(client=client)

        subscription = await store.subscribe("packages")

        channel = client.channel.return_value
        assert client.channel.call_args.args[0].startswith("packages-changes-packages-")
        on_changes = channel.on_postgres_changes.call_args
        assert on_changes.args == ("*",)
        assert on_changes.kwargs["table"] == "packages"
        assert on_changes.kwargs["schema"] == "public"
        channel.subscribe.assert_awaited_once()
        assert subscription.handle is channel

    @pytest.mark.asyncio
    async def test_payload_delivered_as_change_event(self):
        client = make_client()
        store = SupabaseRecordStore(client=client)
        subscription = await store.subscribe("packages")
        callback = client.channel.return_value.on_postgres_changes.call_args.kwargs["callback"]

        callback({"data": {"table": "packages", "type": "UPDATE", "record": {"id": "p1"}}})
        event = await asyncio.wait_for(subscription.__anext__(), timeout=1)

        assert event.type == ChangeType.UPDATE
        assert event.record == {"id": "p1"}

    @pytest.mark.asyncio
    async def test_dropped_channel_ends_feed(self):
        client = make_client()
        store = SupabaseRecordStore(client=client)
        subscription = await store.subscribe("packages")
        on_state = client.channel.return_value.subscribe.call_args.args[0]

        on_state("SUBSCRIBED")
        assert not subscription.closed

        on_state("CHANNEL_ERROR", RuntimeError("socket closed"))
        assert subscription.closed
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(subscription.__anext__(), timeout=1)

    @pytest.mark.asyncio
    async def test_unsubscribe_removes_channel(self):
        client = make_client()
        store = SupabaseRecordStore(client=client)
        subscription = await store.subscribe("packages")

        await store.unsubscribe(subscription)

        client.remove_channel.assert_awaited_once_with(client.channel.return_value)
        assert subscription.closed

    @pytest.mark.asyncio
    async def test_unsubscribe_closes_feed_even_when_removal_fails(self):
        client = make_client()
        client.remove_channel = AsyncMock(side_effect=RuntimeError("socket gone"))
        store = SupabaseRecordStore(client=client)
        subscription = await store.subscribe("packages")

        with pytest.raises(RuntimeError):
            await store.unsubscribe(subscription)

        assert subscription.closed

    @pytest.mark.asyncio
    async def test_close_removes_all_channels(self):
        client = make_client()
        store = SupabaseRecordStore(client=client)

        await store.close()

        client.remove_all_channels.assert_awaited_once()


class TestSupabaseHealthCheck:

    @pytest.mark.asyncio
    async def test_healthy_store_reports_connection_stats(self):
        client = make_client(make_query([{"id": "loc-1"}]))
        store = SupabaseRecordStore(client=client)

        health = await store.health_check()

        assert health["status"] == "healthy"
        assert health["tests"]["select"]["status"] == "healthy"
        assert "latency_ms" in health["tests"]["select"]
        assert health["connection_stats"]["failed_connections"] == 0
        client.table.assert_called_with("storage_locations")

    @pytest.mark.asyncio
    async def test_failing_select_marks_store_unhealthy(self):
        error = APIError({"message": "permission denied for table storage_locations", "code": "42501"})
        store = SupabaseRecordStore(client=make_client(make_query(error=error)))

        health = await store.health_check()

        assert health["status"] == "unhealthy"
        assert health["tests"]["select"]["status"] == "unhealthy"
        assert "permission denied" in health["tests"]["select"]["error"]
