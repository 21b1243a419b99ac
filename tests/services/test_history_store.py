"""Tests for the SQLite-backed history store and CRUD helpers."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipflow.crud import transformation_logs as crud
from clipflow.services.flow.types import HistoryEntry
from clipflow.services.history_store import HistoryStore


BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def make_entry(index: int, *, successful: bool = True) -> HistoryEntry:
    return HistoryEntry(
        transformation_id="smart-unwrap",
        transformation_name="Smart Unwrap",
        input_text=f"input {index}",
        output_text=f"output {index}" if successful else "",
        processing_time_ms=10 + index,
        was_successful=successful,
        error_message=None if successful else "Transformation failed: boom",
        timestamp=BASE_TIME + timedelta(seconds=index),
    )


@pytest.mark.asyncio
class TestHistoryStore:
    async def test_record_and_fetch_newest_first(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory)
        for i in range(3):
            await store.record(make_entry(i))

        rows = await store.fetch_recent()

        assert [row.input_text for row in rows] == ["input 2", "input 1", "input 0"]
        assert rows[0].input_char_count == len("input 2")
        assert rows[0].was_successful is True

    async def test_failure_entry_is_stored(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory)

        await store.record(make_entry(0, successful=False))

        (row,) = await store.fetch_recent()
        assert row.was_successful is False
        assert row.output_text == ""
        assert row.error_message == "Transformation failed: boom"

    async def test_limit_prunes_oldest(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test the store never keeps more than its entry limit."""
        store = HistoryStore(session_factory, entry_limit=2)
        for i in range(4):
            await store.record(make_entry(i))

        rows = await store.fetch_recent()

        assert await store.count() == 2
        assert [row.input_text for row in rows] == ["input 3", "input 2"]

    async def test_concurrent_records_write_one_at_a_time(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """Test overlapping records never run their insert and prune together."""
        store = HistoryStore(session_factory, entry_limit=3)
        in_flight = 0
        peak = 0
        real_prune = crud.prune_logs

        async def tracking_prune(db: AsyncSession, keep: int) -> int:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            try:
                return await real_prune(db, keep)
            finally:
                in_flight -= 1

        with patch.object(crud, "prune_logs", tracking_prune):
            await asyncio.gather(*(store.record(make_entry(i)) for i in range(8)))

        rows = await store.fetch_recent()
        assert peak == 1
        assert await store.count() == 3
        assert [row.input_text for row in rows] == ["input 7", "input 6", "input 5"]

    async def test_zero_limit_keeps_everything(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory, entry_limit=0)
        for i in range(5):
            await store.record(make_entry(i))

        assert await store.count() == 5

    async def test_update_entry_limit_prunes_immediately(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory, entry_limit=0)
        for i in range(5):
            await store.record(make_entry(i))

        pruned = await store.update_entry_limit(3)

        assert pruned == 2
        assert store.entry_limit == 3
        assert await store.count() == 3

    async def test_negative_limit_is_clamped(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory)
        assert await store.update_entry_limit(-5) == 0
        assert store.entry_limit == 0

    async def test_remove_all(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory)
        for i in range(3):
            await store.record(make_entry(i))

        assert await store.remove_all() == 3
        assert await store.count() == 0

    async def test_disabled_store_records_nothing(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        store = HistoryStore(session_factory, enabled=False)

        await store.record(make_entry(0))

        assert await store.count() == 0


@pytest.mark.asyncio
async def test_create_log_computes_char_count(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as db:
        log = await crud.create_log(
            db,
            transformation_id="llm",
            transformation_name="LLM (OpenAI)",
            provider_name="OpenAI",
            model_used="gpt-4o-mini",
            system_prompt="Fix the grammar.",
            input_text="héllo",
            output_text="Hello",
            processing_time_ms=120,
            was_successful=True,
        )

    assert log.id is not None
    assert log.input_char_count == 5
    assert log.timestamp is not None
    assert "transformation_id=llm" in repr(log)


@pytest.mark.asyncio
async def test_prune_with_zero_keep_is_a_no_op(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    async with session_factory() as db:
        assert await crud.prune_logs(db, 0) == 0
