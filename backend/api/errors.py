"""
Exception handlers mapping service failures to JSON responses.

Body shape for every error::

    {"success": false, "error": "<message>", "code": "<machine code>", ...}
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from adapters.social.base import (
    ContainerFailedError,
    InvalidArgumentError,
    PublishTimeoutError,
    UpstreamError,
    UpstreamErrorKind,
)
from core.exceptions import RequestValidationFailed
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

UPSTREAM_STATUS = {
    UpstreamErrorKind.TOKEN_EXPIRED: 401,
    UpstreamErrorKind.PERMISSION_DENIED: 403,
    UpstreamErrorKind.RATE_LIMITED: 429,
    UpstreamErrorKind.GENERIC: 500,
}


def _error(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "code": code, **extra},
    )


def _missing_fields(exc: RequestValidationError) -> list[str]:
    fields: list[str] = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "form")]
        name = ".".join(loc) or "body"
        if name not in fields:
            fields.append(name)
    return fields


async def request_validation_handler(request: Request, exc: RequestValidationError):
    missing = _missing_fields(exc)
    return _error(
        400,
        f"Missing or invalid parameters: {', '.join(missing)}",
        "validation_error",
        missing=missing,
    )


async def validation_failed_handler(request: Request, exc: RequestValidationFailed):
    return _error(400, exc.message, "validation_error", missing=exc.missing)


async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
    return _error(400, str(exc), "invalid_argument")


async def upstream_error_handler(request: Request, exc: UpstreamError):
    kind = exc.kind
    logger.warning(
        "Upstream error on %s: %s (kind=%s)", request.url.path, exc.message, kind.value
    )
    return _error(UPSTREAM_STATUS[kind], exc.message, kind.value, details=exc.body)


async def publish_timeout_handler(request: Request, exc: PublishTimeoutError):
    return _error(
        500,
        "Media processing did not finish in time",
        "publish_timeout",
        container_id=exc.container_id,
    )


async def container_failed_handler(request: Request, exc: ContainerFailedError):
    return _error(
        500,
        str(exc),
        "container_failed",
        container_id=exc.container_id,
        container_status=exc.status_code,
    )


async def global_exception_handler(request: Request, exc: Exception):
    # Production logs only type+message; the body never carries internals outside development
    if settings.is_production:
        logger.error("Unhandled exception: %s: %s", type(exc).__name__, str(exc)[:200])
    else:
        logger.error("Unhandled exception: %s", str(exc), exc_info=exc)
    message = str(exc) if settings.is_development else "Internal server error"
    return _error(500, message, "internal_error")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all handlers to *app*."""
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RequestValidationFailed, validation_failed_handler)
    app.add_exception_handler(InvalidArgumentError, invalid_argument_handler)
    app.add_exception_handler(UpstreamError, upstream_error_handler)
    app.add_exception_handler(PublishTimeoutError, publish_timeout_handler)
    app.add_exception_handler(ContainerFailedError, container_failed_handler)
    app.add_exception_handler(Exception, global_exception_handler)
