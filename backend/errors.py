"""API error envelope and FastAPI exception handlers.

Every failure leaves the API as::

    {"error": {"code": "...", "message": "...", "details": ...}}
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import InterfaceError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

_VALIDATION_CODES = {
    "body": ("INVALID_PAYLOAD", "Invalid request payload"),
    "query": ("INVALID_QUERY", "Invalid query parameters"),
    "path": ("INVALID_PARAMS", "Invalid path parameters"),
    "header": ("INVALID_HEADERS", "Invalid request headers"),
}

_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    429: "RATE_LIMITED",
}


class ApiError(HTTPException):
    """HTTPException carrying a machine-readable error code."""

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.details = details


def error_payload(code: str, message: str, details: Any = None) -> dict:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return {"error": error}


def error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_payload(code, message, details))


def validation_error(exc: ValidationError, code: str = "INVALID_PAYLOAD", message: str = "Invalid request payload") -> ApiError:
    """Wrap a pydantic ValidationError raised from a manually parsed body."""
    return ApiError(400, code, message, _clean_errors(exc.errors()))


def is_database_unavailable(exc: BaseException) -> bool:
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    msg = str(exc).lower()
    return any(
        marker in msg
        for marker in (
            "connection refused",
            "connection terminated",
            "could not connect",
            "the database system is starting up",
        )
    )


def _clean_errors(errors: list) -> list:
    cleaned = []
    for err in errors:
        item = {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        cleaned.append(item)
    return cleaned


def _first_location(errors: list) -> Optional[str]:
    for err in errors:
        loc = err.get("loc") or ()
        if loc:
            return str(loc[0])
    return None


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = _STATUS_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    response = error_response(exc.status_code, code, message)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    code, message = _VALIDATION_CODES.get(_first_location(errors), _VALIDATION_CODES["body"])
    return error_response(400, code, message, _clean_errors(errors))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if is_database_unavailable(exc):
        logger.error("Database unavailable during %s %s", request.method, request.url.path, exc_info=exc)
        return error_response(503, "DATABASE_UNAVAILABLE", "Database unavailable")
    logger.error("Unhandled error during %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
