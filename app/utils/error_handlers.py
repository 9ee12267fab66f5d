"""
Error handling utilities
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors surfaced to API callers"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Missing or malformed request input"""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    """Not connected to Google Search Console"""
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(AppError):
    """Requested resource does not exist"""
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamError(AppError):
    """Google API call failed"""
    pass


class StorageError(AppError):
    """MongoDB operation failed"""
    pass


class ImportFailedError(AppError):
    """Import job ended in the failed state"""

    def __init__(self, message: str, import_id: str = None):
        super().__init__(message)
        self.import_id = import_id


def _error_body(request: Request, status_code: int, message, **extra):
    body = {
        "error": message,
        "status_code": status_code,
        "path": str(request.url)
    }
    body.update(extra)
    return body


async def app_error_handler(request: Request, exc: AppError):
    """
    Handle application errors raised by services
    """
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__}: {exc.message}")

    extra = {}
    if isinstance(exc, ImportFailedError) and exc.import_id:
        extra["import_id"] = exc.import_id

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.message, **extra)
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handle HTTP exceptions
    """
    logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.status_code, exc.detail)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle request validation errors
    """
    logger.error(f"Validation error: {exc.errors()}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            request,
            status.HTTP_400_BAD_REQUEST,
            "Validation error",
            details=jsonable_errors(exc.errors())
        )
    )


async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle general exceptions
    """
    logger.error(f"Unhandled exception: {type(exc).__name__} - {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, 500, "Internal server error")
    )


def jsonable_errors(errors):
    """Strip non-serializable context (exception objects) from pydantic errors"""
    cleaned = []
    for error in errors:
        item = {k: v for k, v in error.items() if k != "ctx"}
        if "ctx" in error:
            item["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        cleaned.append(item)
    return cleaned
