"""
Centralized API Error Handling
Maps domain exceptions to consistent error responses
"""

import logging
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from churchbook.core.exceptions import (
    ConnectivityError, RecordNotFoundError, RemoteRejectionError, StorageUnavailableError
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    REMOTE_REJECTED = "REMOTE_REJECTED"
    REMOTE_UNREACHABLE = "REMOTE_UNREACHABLE"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    503: ErrorCode.REMOTE_UNREACHABLE
}


class APIError(Exception):
    """API error with standardized error codes"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or []
        super().__init__(message)


class ConflictAPIError(APIError):
    """Resource conflict API error"""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFLICT,
            status_code=status.HTTP_409_CONFLICT
        )


def create_error_response(
    message: str,
    error_code: ErrorCode,
    status_code: int,
    details: Optional[List[Dict[str, Any]]] = None
) -> JSONResponse:
    """Create standardized error response"""
    request_id = str(uuid.uuid4())
    error_payload = {
        "error": message,
        "error_code": error_code.value,
        "status_code": status_code,
        "request_id": request_id
    }

    if details:
        error_payload["details"] = details

    return JSONResponse(status_code=status_code, content=jsonable_encoder(error_payload))


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    logger.error(f"API Error: {exc.message} (code: {exc.error_code.value})")
    return create_error_response(exc.message, exc.error_code, exc.status_code, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_code = HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    logger.warning(f"HTTP Exception: {exc.detail} (status: {exc.status_code})")

    response = create_error_response(str(exc.detail), error_code, exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors"""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "code": error["type"]
        }
        for error in exc.errors()
    ]

    logger.warning(f"Validation Error: {len(field_errors)} field errors on {request.url.path}")
    return create_error_response(
        "Validation failed",
        ErrorCode.VALIDATION_ERROR,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        field_errors
    )


async def not_found_handler(request: Request, exc: RecordNotFoundError) -> JSONResponse:
    return create_error_response(str(exc), ErrorCode.NOT_FOUND, status.HTTP_404_NOT_FOUND)


async def remote_rejection_handler(request: Request, exc: RemoteRejectionError) -> JSONResponse:
    """The remote answered; pass its 4xx through, anything else becomes 422"""
    status_code = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else \
        status.HTTP_422_UNPROCESSABLE_ENTITY
    logger.warning(f"Remote rejected request to {request.url.path}: {exc}")
    details = [{"code": exc.code}] if exc.code else None
    return create_error_response(exc.message, ErrorCode.REMOTE_REJECTED, status_code, details)


async def connectivity_error_handler(request: Request, exc: ConnectivityError) -> JSONResponse:
    logger.warning(f"Remote unreachable for {request.url.path}: {exc}")
    return create_error_response(str(exc), ErrorCode.REMOTE_UNREACHABLE, status.HTTP_503_SERVICE_UNAVAILABLE)


async def storage_error_handler(request: Request, exc: StorageUnavailableError) -> JSONResponse:
    logger.error(f"Local storage unavailable for {request.url.path}: {exc}")
    return create_error_response(str(exc), ErrorCode.STORAGE_UNAVAILABLE, status.HTTP_503_SERVICE_UNAVAILABLE)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler"""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return create_error_response(
        "Internal server error",
        ErrorCode.INTERNAL_ERROR,
        status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(APIError)(api_error_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(RecordNotFoundError)(not_found_handler)
    app.exception_handler(RemoteRejectionError)(remote_rejection_handler)
    app.exception_handler(ConnectivityError)(connectivity_error_handler)
    app.exception_handler(StorageUnavailableError)(storage_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
