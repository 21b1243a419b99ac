import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_swagger_ui_html
from starlette.exceptions import HTTPException as StarletteHTTPException

from clipflow import __version__
from clipflow.api.v1.api import api_router
from clipflow.core.config import Settings, get_settings
from clipflow.core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
    setup_logging,
)
from clipflow.core.middleware import CorrelationIdMiddleware
from clipflow.dependencies.db import AsyncSessionLocal, init_models
from clipflow.services.container import build_flow_services


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the history table, then own the flow services for the app's life."""
    setup_logging()
    settings = get_settings()
    await init_models()

    services = build_flow_services(settings, AsyncSessionLocal)
    app.state.flow_services = services
    services.start()
    logger.info(f"{settings.APP_NAME} {__version__} up ({settings.ENVIRONMENT})")
    try:
        yield
    finally:
        await services.stop()
        logger.info(f"{settings.APP_NAME} stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(
        title=f"{settings.APP_NAME} API",
        description="Clipboard transformation flow service",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    # Added last runs first: CORS, then correlation ids, then normalization
    application.add_middleware(ExceptionNormalizationMiddleware)
    application.add_middleware(CorrelationIdMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for exc_class in (StarletteHTTPException, RequestValidationError, Exception):
        application.add_exception_handler(exc_class, global_exception_handler)

    application.include_router(api_router, prefix=API_PREFIX)

    @application.get(f"{API_PREFIX}/docs", include_in_schema=False)
    def swagger_ui():
        return get_swagger_ui_html(
            openapi_url="/openapi.json", title=f"{settings.APP_NAME} API Docs"
        )

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("clipflow.main:app", host="127.0.0.1", port=8000, reload=True)
