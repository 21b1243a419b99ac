from fastapi import APIRouter

from clipflow.core.config import get_settings
from clipflow.schemas.api import ApiResponse


router = APIRouter()


@router.get("/health", response_model=ApiResponse[dict[str, str]])
def health_check() -> ApiResponse[dict[str, str]]:
    """Health check endpoint for monitoring."""
    settings = get_settings()
    return ApiResponse(
        success=True,
        data={"status": "healthy", "message": f"{settings.APP_NAME} is running"},
        message="Health check successful",
    )
