"""Error envelopes, correlation ids and logging for the ClipFlow API.

Every failure leaving the API goes through `global_exception_handler`, which
turns it into an `ErrorResponse` whose `error` body is trimmed to what the
current environment may see. Logs go through `StructuredLogger`, which tags
each record with the correlation id and redacts credentials and clipboard
payloads before anything is formatted.
"""

import logging
import logging.config
import traceback
import uuid
from contextvars import ContextVar
from typing import Any, NamedTuple

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from clipflow.core.config import get_settings
from clipflow.core.exceptions import (
    DomainError,
    ProviderNotConfiguredError,
    TransformationNotFoundError,
)
from clipflow.core.security_config import get_allowed_error_fields, is_sensitive_key
from clipflow.schemas.api import ErrorResponse
from clipflow.services.transformations.errors import (
    PipelineError,
    TransformationError,
)


REDACTED = "[REDACTED]"

# Shared by the HTTP request and any flow task it starts
_current_correlation_id: ContextVar[str | None] = ContextVar(
    "clipflow_correlation_id", default=None
)

DOMAIN_ERROR_MESSAGES: dict[type[Exception], str] = {
    TransformationNotFoundError: "The requested transformation was not found",
    ProviderNotConfiguredError: "No LLM provider is configured",
}

DOMAIN_ERROR_STATUS: dict[type[Exception], int] = {
    TransformationNotFoundError: 404,
    ProviderNotConfiguredError: 409,
}


def get_correlation_id() -> str:
    """Return the id bound to this context, binding a fresh one if needed."""
    current = _current_correlation_id.get()
    if current:
        return current
    current = uuid.uuid4().hex
    _current_correlation_id.set(current)
    return current


def set_correlation_id(correlation_id: str | None) -> None:
    _current_correlation_id.set(correlation_id)


def _redact(key: str, value: Any) -> Any:
    if is_sensitive_key(key):
        return REDACTED
    if isinstance(value, dict):
        return redact_fields(value)
    if isinstance(value, list):
        return [redact_fields(v) if isinstance(v, dict) else v for v in value]
    return value


def redact_name_value_pair(data: dict[str, Any]) -> dict[str, Any] | None:
    """Redact a `{"name": ..., "value": ...}` pair such as an HTTP header.

    Returns None when `data` is not such a pair or its name is harmless.
    """
    if "value" not in data:
        return None
    name = data.get("name", data.get("key"))
    if not isinstance(name, str) or not is_sensitive_key(name):
        return None
    return {
        k: REDACTED if k.lower() in {"value", "val", "v"} else _redact(k, v)
        for k, v in data.items()
    }


def redact_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of `data` with sensitive keys masked, recursing into containers."""
    if not data:
        return {}
    pair = redact_name_value_pair(data)
    if pair is not None:
        return pair
    return {k: _redact(k, v) for k, v in data.items()}


class StructuredLogger:
    """Logger wrapper whose keyword arguments become redacted log fields.

    Development output renders fields as `key=value` after the message;
    production hands them to the JSON formatter under `structured_data`.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _emit(
        self, level: int, message: str, fields: dict[str, Any], **kw: Any
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        correlation_id = get_correlation_id()
        safe = self._sanitize_data(fields)
        payload = {"correlation_id": correlation_id, "message": message, **safe}

        text = message
        if get_settings().ENVIRONMENT != "production":
            details = (f"{k}={v}" for k, v in safe.items())
            text = " ".join([f"[{correlation_id}] {message}", *details])
        self.logger.log(level, text, extra={"structured_data": payload}, **kw)

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        return redact_fields(data) if isinstance(data, dict) else {}

    def _redact_header_like(self, data: dict[str, Any]) -> dict[str, Any] | None:
        return redact_name_value_pair(data)

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields, exc_info=True)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Turn exceptions escaping the route stack into error envelopes."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def _build_error_response(
    *,
    correlation_id: str,
    error_type: str,
    message: str,
    environment: str,
    details: dict[str, Any] | None = None,
    traceback_str: str | None = None,
    exception_type: str | None = None,
    validation_errors: Any | None = None,
    status_code: int = 500,
) -> JSONResponse:
    """Render an `ErrorResponse`, dropping fields the environment may not see."""
    optional = {
        "details": details,
        "traceback": traceback_str,
        "exception_type": exception_type,
        "validation_errors": validation_errors,
    }
    allowed = get_allowed_error_fields(environment)
    error_body = {"correlation_id": correlation_id, "type": error_type} | {
        field: value
        for field, value in optional.items()
        if field in allowed and value is not None
    }
    envelope = ErrorResponse(message=message, error=error_body)
    return JSONResponse(status_code=status_code, content=envelope.model_dump())


class _ErrorShape(NamedTuple):
    status_code: int
    error_type: str
    message: str
    details: dict[str, Any] | None = None
    validation_errors: Any | None = None


def _shape_error(exc: Exception) -> _ErrorShape | None:
    """Map an expected exception to its envelope; None means unexpected."""
    if isinstance(exc, StarletteHTTPException):
        return _ErrorShape(
            exc.status_code,
            "http_error",
            "An HTTP error occurred",
            details={"detail": exc.detail},
        )
    if isinstance(exc, ValidationError | RequestValidationError):
        problems = jsonable_encoder(exc.errors())
        structured_logger.warning("Validation error", error_count=len(problems))
        return _ErrorShape(
            422,
            "validation_error",
            "Invalid request data provided",
            validation_errors=problems,
        )
    if isinstance(exc, DomainError):
        structured_logger.warning(
            "Domain error", error_type=type(exc).__name__, domain_message=str(exc)
        )
        return _ErrorShape(
            DOMAIN_ERROR_STATUS.get(type(exc), 400),
            "domain_error",
            DOMAIN_ERROR_MESSAGES.get(type(exc), "Domain error"),
            details={"detail": str(exc)},
        )
    if isinstance(exc, TransformationError | PipelineError):
        structured_logger.warning(
            "Transformation error", error_kind=exc.kind.value, error=str(exc)
        )
        return _ErrorShape(
            422,
            "transformation_error",
            exc.short_message,
            details={"detail": str(exc), "kind": exc.kind.value},
        )
    return None


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Single exception handler for HTTP, validation, domain and unexpected errors."""
    environment = get_settings().ENVIRONMENT
    correlation_id = get_correlation_id()
    exposes_internals = environment != "production"

    shape = _shape_error(exc)
    if shape is not None:
        return _build_error_response(
            correlation_id=correlation_id,
            error_type=shape.error_type,
            message=shape.message,
            environment=environment,
            details=shape.details,
            exception_type=type(exc).__name__,
            validation_errors=shape.validation_errors,
            status_code=shape.status_code,
        )

    structured_logger.exception(
        "Unhandled exception", exception_type=type(exc).__name__, error=str(exc)
    )
    return _build_error_response(
        correlation_id=correlation_id,
        error_type="internal_server_error",
        message="An internal error occurred",
        environment=environment,
        traceback_str=(
            "".join(traceback.format_exception(exc)).strip()
            if exposes_internals
            else None
        ),
        exception_type=type(exc).__name__ if exposes_internals else None,
    )


# Third-party loggers that are too chatty at INFO
_QUIET_LOGGERS = ("apscheduler", "aiosqlite")
_PRODUCTION_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def setup_logging() -> None:
    """Configure root logging once; JSON lines in production, text elsewhere."""
    if logging.getLogger().handlers:
        return

    environment = get_settings().ENVIRONMENT
    level = "DEBUG" if environment == "development" else "INFO"
    quiet: tuple[str, ...] = _QUIET_LOGGERS
    if environment == "production":
        quiet += _PRODUCTION_QUIET_LOGGERS

    formatters: dict[str, dict[str, Any]] = {
        "json": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
        "text": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": formatters,
            "handlers": {
                "stdout": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "json" if environment == "production" else "text",
                    "level": level,
                }
            },
            "root": {"level": level, "handlers": ["stdout"]},
            "loggers": {name: {"level": "WARNING"} for name in quiet},
        }
    )
