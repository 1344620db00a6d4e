"""
Custom exceptions and error handlers for the application.
Every error leaves the API wrapped in the standard response envelope.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from pymongo.errors import PyMongoError
import logging

logger = logging.getLogger(__name__)


class APIException(Exception):
    """Base API exception class."""
    def __init__(self, message: str, status_code: int = 500, error_code: str = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"ERR_{status_code}"
        super().__init__(self.message)


class NotFoundException(APIException):
    """Resource not found exception."""
    def __init__(self, resource: str, resource_id: str = None):
        message = f"{resource} not found"
        if resource_id:
            message += f": {resource_id}"
        super().__init__(message, status_code=404, error_code="NOT_FOUND")


class ValidationException(APIException):
    """Validation exception."""
    def __init__(self, message: str, errors: dict = None):
        super().__init__(message, status_code=400, error_code="VALIDATION_ERROR")
        self.errors = errors or {}


class StorageException(APIException):
    """The document store could not be reached or rejected the operation."""
    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message, status_code=500, error_code="STORAGE_ERROR")


class DispatchError(Exception):
    """
    The email provider did not accept a message.

    Not an APIException: callers downgrade it to a warning instead of
    failing the request.
    """
    def __init__(self, message: str, detail: str = None, status_code: int = None):
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)

    def __str__(self):
        if self.detail:
            return f"{self.message}: {self.detail}"
        return self.message


def error_body(message: str, error_code: str, errors: dict = None) -> dict:
    body = {
        "success": False,
        "message": message,
        "error_code": error_code,
    }
    if errors:
        body["errors"] = errors
    return body


async def api_exception_handler(request: Request, exc: APIException):
    """Handle API exceptions."""
    logger.error(f"API Exception: {exc.message} (Code: {exc.error_code}, Status: {exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.message, exc.error_code, getattr(exc, "errors", None))
    )


def _format_errors(errors) -> dict:
    details = {}
    for error in errors:
        field = ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path"))
        details[field or "request"] = error["msg"]
    return details


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors as a 400 ValidationError."""
    error_details = _format_errors(exc.errors())
    logger.warning(f"Validation error: {error_details}")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Validation error", "VALIDATION_ERROR", error_details)
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(f"HTTP Exception: {exc.detail} (Status: {exc.status_code})")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), f"HTTP_{exc.status_code}"),
        headers=getattr(exc, "headers", None)
    )


async def storage_exception_handler(request: Request, exc: PyMongoError):
    """Handle MongoDB errors that escaped the service layer."""
    logger.error(f"Storage error: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_body("Storage unavailable", "STORAGE_ERROR")
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {type(exc).__name__}: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR")
    )
