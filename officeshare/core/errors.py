"""Error payloads returned to API callers.

Every error leaves the service as ``{"message": str, "error": ERROR_CODE}``;
``error`` is left out when no code applies (for example plain validation
errors). Routes raise :class:`ApiError` and the handlers registered in
``officeshare.main`` render it.
"""
import enum
import logging
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger("office-share")


class ErrorCode(str, enum.Enum):
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    ORGANIZATION_ACCESS_DENIED = "ORGANIZATION_ACCESS_DENIED"
    NOT_FOUND = "NOT_FOUND"
    LINK_EXPIRED = "LINK_EXPIRED"
    CONTENT_MISSING = "CONTENT_MISSING"
    STORE_ERROR = "STORE_ERROR"


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, error: Optional[str] = None, headers: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error.value if isinstance(error, enum.Enum) else error
        self.headers = headers

    def payload(self) -> dict:
        body = {"message": self.message}
        if self.error:
            body["error"] = self.error
        return body


def error_response(status_code: int, message: str, error: Optional[str] = None, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ApiError(status_code, message, error).payload(), headers=headers)


async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("API error: %s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.message)
    else:
        logger.info("API error: %s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.error or exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload(), headers=exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    error = ErrorCode.NOT_FOUND.value if exc.status_code == 404 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiError(exc.status_code, message, error).payload(),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Validation error: %s %s -> %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=422,
        content={"message": "Validation error", "errors": jsonable_errors(exc)},
    )


async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error: %s %s -> %s", request.method, request.url.path, exc, exc_info=exc)
    return error_response(503, "Database is temporarily unavailable", ErrorCode.STORE_ERROR.value)


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
