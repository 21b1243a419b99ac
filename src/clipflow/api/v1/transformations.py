"""Endpoints for listing transformations and running them on sample text."""

import time

from fastapi import APIRouter

from clipflow.dependencies.flow import FlowServicesDep
from clipflow.schemas.api import ApiResponse
from clipflow.schemas.transformations import (
    TransformationInfo,
    TransformationTestRequest,
    TransformationTestResponse,
)
from clipflow.services.transformations.pipeline import TransformationPipeline


router = APIRouter(prefix="/transformations", tags=["transformations"])


@router.get("", response_model=ApiResponse[list[TransformationInfo]])
async def list_transformations(
    services: FlowServicesDep,
) -> ApiResponse[list[TransformationInfo]]:
    items = [
        TransformationInfo(
            id=entry.id,
            display_name=entry.display_name,
            kind=entry.kind,
            stages=list(entry.stages),
        )
        for entry in services.registry.entries()
    ]
    return ApiResponse(data=items, message=f"{len(items)} transformations")


@router.post(
    "/{transformation_id}/test",
    response_model=ApiResponse[TransformationTestResponse],
    summary="Run a transformation without touching the buffer",
    responses={404: {"description": "Unknown transformation id"}},
)
async def test_transformation(
    transformation_id: str,
    body: TransformationTestRequest,
    services: FlowServicesDep,
) -> ApiResponse[TransformationTestResponse]:
    """Errors from the strategy propagate to the global exception handler."""
    strategy = services.registry.resolve(transformation_id)
    started = time.perf_counter()
    if isinstance(strategy, TransformationPipeline):
        output = (await strategy.execute(body.text)).output
    else:
        output = await strategy.transform(body.text)
    duration_ms = int((time.perf_counter() - started) * 1000)
    return ApiResponse(
        data=TransformationTestResponse(
            transformation_id=transformation_id, output=output, duration_ms=duration_ms
        ),
        message="Transformation succeeded",
    )
