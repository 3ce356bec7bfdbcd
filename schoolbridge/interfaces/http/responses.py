"""
Uniform response envelope and the exception handlers that produce it.

Every JSON body, success or failure, has the shape
``{success, message, data?, error?, timestamp}``.
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...config import settings
from ...domain.errors import SchoolBridgeError
from ...infrastructure.repositories import classify_integrity_error

logger = structlog.get_logger()


def dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, (list, tuple)):
        return [dump(v) for v in value]
    if isinstance(value, dict):
        return {k: dump(v) for k, v in value.items()}
    return value


def envelope(success: bool, message: str, data: Any = None, error: Any = None) -> dict:
    body: dict[str, Any] = {"success": success, "message": message}
    if data is not None:
        body["data"] = dump(data)
    if error is not None:
        body["error"] = error
    body["timestamp"] = datetime.now(timezone.utc).isoformat()
    return jsonable_encoder(body)


def ok(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=envelope(True, message, data))


def fail(status_code: int, message: str, error: Optional[Any] = None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=envelope(False, message, error=error),
        headers=headers,
    )


def _field_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        message = str(err.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": ".".join(loc), "message": message})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SchoolBridgeError)
    async def domain_error(request: Request, exc: SchoolBridgeError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=exc.message)
        return fail(exc.status_code, exc.message, exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return fail(400, "Validation failed", {"code": "ValidationError", "details": _field_errors(exc)})

    @app.exception_handler(IntegrityError)
    async def integrity_error(request: Request, exc: IntegrityError):
        classified = classify_integrity_error(exc)
        return fail(classified.status_code, classified.message, classified.to_dict())

    @app.exception_handler(RateLimitExceeded)
    async def rate_limited(request: Request, exc: RateLimitExceeded):
        logger.warning("rate_limited", path=request.url.path, limit=str(exc.detail))
        return fail(
            429,
            "Too many requests, please try again later.",
            {"code": "RateLimitExceeded", "details": str(exc.detail)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return fail(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.error("unhandled_exception", path=request.url.path, error=repr(exc))
        error: dict[str, Any] = {"code": "InternalError"}
        if settings.DEBUG:
            error["details"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return fail(500, "Internal server error", error)
