"""Endpoints for the transformation history log."""

from typing import Annotated

from fastapi import APIRouter, Query

from clipflow.dependencies.flow import FlowServicesDep
from clipflow.schemas.api import ApiResponse
from clipflow.schemas.history import (
    HistoryClearResponse,
    HistoryEntryResponse,
    HistoryLimitRequest,
    HistoryLimitResponse,
)


router = APIRouter(prefix="/history", tags=["history"])


@router.get("", response_model=ApiResponse[list[HistoryEntryResponse]])
async def list_history(
    services: FlowServicesDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> ApiResponse[list[HistoryEntryResponse]]:
    """Newest entries first."""
    rows = await services.history.fetch_recent(limit)
    entries = [HistoryEntryResponse.model_validate(row) for row in rows]
    return ApiResponse(data=entries, message=f"{len(entries)} history entries")


@router.delete("", response_model=ApiResponse[HistoryClearResponse])
async def clear_history(services: FlowServicesDep) -> ApiResponse[HistoryClearResponse]:
    deleted = await services.history.remove_all()
    return ApiResponse(
        data=HistoryClearResponse(deleted=deleted), message="History cleared"
    )


@router.put("/limit", response_model=ApiResponse[HistoryLimitResponse])
async def update_history_limit(
    body: HistoryLimitRequest, services: FlowServicesDep
) -> ApiResponse[HistoryLimitResponse]:
    pruned = await services.history.update_entry_limit(body.limit)
    return ApiResponse(
        data=HistoryLimitResponse(limit=services.history.entry_limit, pruned=pruned),
        message="History limit updated",
    )
