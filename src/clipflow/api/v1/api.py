from fastapi import APIRouter

from .buffer import router as buffer_router
from .flow import router as flow_router
from .health import router as health_router
from .history import router as history_router
from .transformations import router as transformations_router


api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(flow_router)
api_router.include_router(buffer_router)
api_router.include_router(history_router)
api_router.include_router(transformations_router)
