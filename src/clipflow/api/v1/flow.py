"""Endpoints that drive and observe the transformation flow."""

from fastapi import APIRouter

from clipflow.dependencies.flow import FlowServicesDep
from clipflow.schemas.api import ApiResponse
from clipflow.schemas.flow import (
    FlowErrorInfo,
    FlowStateResponse,
    NotificationInfo,
    ProcessingStateInfo,
    TriggerRequest,
    TriggerResponse,
)
from clipflow.services.container import FlowServices
from clipflow.services.flow.types import Processing
from clipflow.services.transformations.base import Transformation
from clipflow.services.transformations.pipeline import TransformationPipeline


router = APIRouter(prefix="/flow", tags=["flow"])


def _state_response(services: FlowServices) -> FlowStateResponse:
    coordinator = services.coordinator
    last_error = coordinator.last_error
    terminal = coordinator.last_terminal_state
    return FlowStateResponse(
        state=ProcessingStateInfo.from_state(coordinator.processing_state),
        is_processing=coordinator.is_processing,
        last_error=FlowErrorInfo.from_error(last_error) if last_error else None,
        last_terminal_state=(
            ProcessingStateInfo.from_state(terminal) if terminal else None
        ),
        active_transformation=services.settings.ACTIVE_TRANSFORMATION,
    )


@router.get("/state", response_model=ApiResponse[FlowStateResponse])
async def get_flow_state(services: FlowServicesDep) -> ApiResponse[FlowStateResponse]:
    return ApiResponse(data=_state_response(services), message="Flow state")


@router.post(
    "/trigger",
    response_model=ApiResponse[TriggerResponse],
    summary="Trigger a transformation",
    description=(
        "Runs the configured transformation on the current buffer content. "
        "A trigger while another flow is running is rejected, not queued; "
        "`accepted` is false in that case."
    ),
    responses={404: {"description": "Unknown transformation id"}},
)
async def trigger_flow(
    services: FlowServicesDep, body: TriggerRequest | None = None
) -> ApiResponse[TriggerResponse]:
    body = body or TriggerRequest()
    registry = services.registry

    transformation: Transformation | None = None
    pipeline: TransformationPipeline | None = None
    if body.pipeline:
        pipeline = registry.build_pipeline(body.pipeline)
    elif body.transformation_id:
        resolved = registry.resolve(body.transformation_id)
        if isinstance(resolved, TransformationPipeline):
            pipeline = resolved
        else:
            transformation = resolved

    accepted = await services.coordinator.handle_trigger(
        transformation=transformation,
        pipeline=pipeline,
        timeout=body.timeout_seconds,
    )
    state = services.coordinator.processing_state
    request_id = state.request.id if isinstance(state, Processing) else None
    return ApiResponse(
        data=TriggerResponse(accepted=accepted, request_id=request_id),
        message="Transformation started" if accepted else "Already processing",
    )


@router.post("/cancel", response_model=ApiResponse[FlowStateResponse])
async def cancel_flow(services: FlowServicesDep) -> ApiResponse[FlowStateResponse]:
    await services.coordinator.cancel_current_transformation()
    return ApiResponse(data=_state_response(services), message="Cancelled")


@router.post("/reset", response_model=ApiResponse[FlowStateResponse])
async def reset_flow(services: FlowServicesDep) -> ApiResponse[FlowStateResponse]:
    services.coordinator.reset()
    return ApiResponse(data=_state_response(services), message="Flow reset")


@router.get("/notifications", response_model=ApiResponse[list[NotificationInfo]])
async def list_notifications(
    services: FlowServicesDep,
) -> ApiResponse[list[NotificationInfo]]:
    items = [
        NotificationInfo(
            title=n.title,
            message=n.message,
            category=n.category.kind.value,
            created_at=n.created_at,
        )
        for n in services.notifier.recent
    ]
    return ApiResponse(data=items, message=f"{len(items)} notifications")
