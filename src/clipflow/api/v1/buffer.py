"""Endpoints for inspecting the buffer and simulating external copies."""

from fastapi import APIRouter

from clipflow.dependencies.flow import FlowServicesDep
from clipflow.schemas.api import ApiResponse
from clipflow.schemas.buffer import BufferContentResponse, BufferUpdateRequest
from clipflow.services.container import FlowServices


router = APIRouter(prefix="/buffer", tags=["buffer"])


def _content_response(services: FlowServices) -> BufferContentResponse:
    buffer = services.buffer
    content = buffer.read_text()
    last_change = services.last_external_change
    return BufferContentResponse(
        version=buffer.current_version(),
        types=buffer.types(),
        has_marker=buffer.has_marker(),
        kind=content.kind.value,
        text=content.text,
        binary_type=content.binary_type,
        last_external_change_kind=last_change.kind.value if last_change else None,
    )


@router.get("", response_model=ApiResponse[BufferContentResponse])
async def read_buffer(services: FlowServicesDep) -> ApiResponse[BufferContentResponse]:
    return ApiResponse(data=_content_response(services), message="Buffer content")


@router.put(
    "",
    response_model=ApiResponse[BufferContentResponse],
    summary="Simulate an external copy",
)
async def write_buffer(
    body: BufferUpdateRequest, services: FlowServicesDep
) -> ApiResponse[BufferContentResponse]:
    if body.representations is not None:
        services.buffer.set_representations(body.representations)
    else:
        services.buffer.set_text(body.text or "")
    return ApiResponse(data=_content_response(services), message="Buffer updated")


@router.delete("", response_model=ApiResponse[BufferContentResponse])
async def clear_buffer(services: FlowServicesDep) -> ApiResponse[BufferContentResponse]:
    services.buffer.clear()
    return ApiResponse(data=_content_response(services), message="Buffer cleared")
