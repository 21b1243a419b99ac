"""History sink backed by the transformation_logs table."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipflow.crud import transformation_logs as crud
from clipflow.models.transformation_logs import TransformationLog
from clipflow.services.flow.types import HistoryEntry


logger = logging.getLogger(__name__)


class HistoryStore:
    """Records finished flows and keeps at most `entry_limit` rows.

    An `entry_limit` of 0 keeps everything.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        entry_limit: int = 100,
        enabled: bool = True,
    ):
        self._session_factory = session_factory
        self.entry_limit = max(entry_limit, 0)
        self.enabled = enabled
        # Inserts, prunes and deletes run one at a time
        self._write_lock = asyncio.Lock()

    async def record(self, entry: HistoryEntry) -> None:
        if not self.enabled:
            return
        async with self._write_lock, self._session_factory() as db:
            await crud.create_log(
                db,
                transformation_id=entry.transformation_id,
                transformation_name=entry.transformation_name,
                provider_name=entry.provider_name,
                model_used=entry.model_used,
                system_prompt=entry.system_prompt,
                input_text=entry.input_text,
                output_text=entry.output_text,
                processing_time_ms=entry.processing_time_ms,
                was_successful=entry.was_successful,
                error_message=entry.error_message,
                timestamp=entry.timestamp,
            )
            pruned = await crud.prune_logs(db, self.entry_limit)
        if pruned:
            logger.debug(f"Pruned {pruned} history entries")

    async def fetch_recent(self, limit: int = 50) -> Sequence[TransformationLog]:
        async with self._session_factory() as db:
            return await crud.list_recent(db, limit)

    async def count(self) -> int:
        async with self._session_factory() as db:
            return await crud.count_logs(db)

    async def remove_all(self) -> int:
        async with self._write_lock, self._session_factory() as db:
            deleted = await crud.delete_all(db)
        logger.info(f"Cleared {deleted} history entries")
        return deleted

    async def update_entry_limit(self, limit: int) -> int:
        """Change the limit and prune immediately. Returns rows pruned."""
        self.entry_limit = max(limit, 0)
        async with self._write_lock, self._session_factory() as db:
            return await crud.prune_logs(db, self.entry_limit)
