# File: civictrack/core/notices.py
# Project: civictrack

import logging
from enum import Enum
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from civictrack.core.config import settings

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    success = "success"
    error = "error"
    warning = "warning"
    info = "info"


SESSION_EXPIRED = "Token expired"


def notice(message: str, severity: Severity | str = Severity.info, **extra) -> dict:
    """Transient user-facing message; clients dismiss it after `dismiss_after_ms`."""
    sev = severity.value if isinstance(severity, Severity) else str(severity)
    body = {"message": message, "severity": sev, "dismiss_after_ms": settings.notice_dismiss_ms}
    body.update(extra)
    return body


def ok(message: str, **payload) -> dict:
    return {"ok": True, **payload, "notice": notice(message, Severity.success)}


class WarningNotice(HTTPException):
    """A 400 whose notice is a warning rather than an error (e.g. empty selection)."""

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _message(detail) -> str:
    if isinstance(detail, str):
        return detail
    return "Request failed"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    severity = Severity.warning if isinstance(exc, WarningNotice) else Severity.error
    extra = {}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED and exc.detail == SESSION_EXPIRED:
        extra["session_expired"] = True
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "notice": notice(_message(exc.detail), severity, **extra)},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    message = f"Invalid {field}: {first.get('msg', 'validation error')}"
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(errors), "notice": notice(message, Severity.error)},
    )


def jsonable_errors(errors) -> list:
    out = []
    for e in errors:
        out.append({"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")})
    return out


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": f"Rate limit exceeded: {exc.detail}",
            "notice": notice("Too many requests. Please try again in a minute.", Severity.warning),
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error", "notice": notice("Something went wrong. Please try again.", Severity.error)},
    )


def install(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
