"""
Error taxonomy

Every failure a handler can produce is an HTTPException subclass, so FastAPI
routes raise them exactly like a plain HTTPException. The handlers registered
by `install_error_handlers` render all of them as `{"error": "<message>"}`.
"""

import logging
import os
from contextlib import contextmanager
from typing import Iterable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

# error detail is only shown when this is set to something other than "production"
APP_ENV = os.getenv("APP_ENV", "production")


class ApiError(HTTPException):
    status_code = 500
    code = "ApiError"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=message)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(ApiError):
    """Rejected payload or path parameter, raised before any store access."""

    status_code = 400
    code = "ValidationError"

    def __init__(self, message: str, code: Optional[str] = None, fields: Iterable[str] = ()):
        super().__init__(message, code)
        self.fields = tuple(fields)


class AuthError(ApiError):
    status_code = 401
    code = "InvalidCredentials"


class NotFoundError(ApiError):
    status_code = 404
    code = "NotFound"


class ConflictError(ApiError):
    status_code = 409
    code = "Conflict"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class InternalError(ApiError):
    status_code = 500
    code = "InternalError"

    def __init__(self, message: str = "Internal server error", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


@contextmanager
def store_errors(message: str):
    """Map anything unexpected raised inside the block to an InternalError."""
    try:
        yield
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("%s: %s", message, exc)
        raise InternalError(message, cause=exc) from exc


def install_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        content = {"error": str(exc.detail)}
        cause = getattr(exc, "cause", None)
        if cause is not None and APP_ENV != "production":
            content["detail"] = str(cause)
        return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request body"
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
            message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        content = {"error": "Internal server error"}
        if APP_ENV != "production":
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)
