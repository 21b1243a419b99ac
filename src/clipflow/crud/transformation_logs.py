"""CRUD operations for transformation history logs."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clipflow.models.transformation_logs import TransformationLog


async def create_log(
    db: AsyncSession,
    *,
    transformation_id: str,
    transformation_name: str,
    input_text: str,
    output_text: str,
    processing_time_ms: int,
    was_successful: bool,
    error_message: str | None = None,
    provider_name: str | None = None,
    model_used: str | None = None,
    system_prompt: str | None = None,
    timestamp: datetime | None = None,
) -> TransformationLog:
    """Insert a history row.

    Args:
        db: Database session
        transformation_id: Id of the strategy that ran
        transformation_name: Display name of the strategy
        input_text: Text read from the buffer
        output_text: Text produced ("" on failure)
        processing_time_ms: Wall time from trigger to finish
        was_successful: Whether the flow completed
        error_message: Failure description, if any
        provider_name: LLM provider, if any
        model_used: LLM model, if any
        system_prompt: LLM system prompt, if any
        timestamp: When the flow finished (defaults to now)

    Returns:
        Created TransformationLog instance
    """
    log = TransformationLog(
        transformation_id=transformation_id,
        transformation_name=transformation_name,
        provider_name=provider_name,
        model_used=model_used,
        system_prompt=system_prompt,
        input_text=input_text,
        output_text=output_text,
        input_char_count=len(input_text),
        processing_time_ms=processing_time_ms,
        was_successful=was_successful,
        error_message=error_message,
    )
    if timestamp is not None:
        log.timestamp = timestamp

    db.add(log)
    await db.commit()
    await db.refresh(log)
    return log


async def list_recent(
    db: AsyncSession, limit: int = 50
) -> Sequence[TransformationLog]:
    """Newest first; ties on timestamp fall back to insertion order."""
    query = (
        select(TransformationLog)
        .order_by(TransformationLog.timestamp.desc(), TransformationLog.id.desc())
        .limit(limit)
    )
    result = await db.execute(query)
    return result.scalars().all()


async def count_logs(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(TransformationLog.id)))
    return int(result.scalar_one())


async def delete_all(db: AsyncSession) -> int:
    """Delete every history row.

    Returns:
        Number of rows deleted
    """
    result = await db.execute(delete(TransformationLog))
    await db.commit()
    return int(result.rowcount or 0)


async def prune_logs(db: AsyncSession, keep: int) -> int:
    """Delete all but the `keep` newest rows. `keep` of 0 keeps everything.

    Returns:
        Number of rows deleted
    """
    if keep <= 0:
        return 0

    newest = (
        select(TransformationLog.id)
        .order_by(TransformationLog.timestamp.desc(), TransformationLog.id.desc())
        .limit(keep)
    )
    result = await db.execute(
        delete(TransformationLog).where(TransformationLog.id.not_in(newest))
    )
    await db.commit()
    return int(result.rowcount or 0)
