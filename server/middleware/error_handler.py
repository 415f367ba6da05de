"""
Error Handling Middleware
Maps API, HTTP, validation, database and partner-association errors
onto one JSON error envelope
"""

import logging
import traceback
import time
from typing import Union, Dict
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from services.partner_identity import NotAssociatedError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base API error class"""
    def __init__(self, message: str, status_code: int = 500, error_code: str = None, details=None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or f"API_ERROR_{status_code}"
        self.details = details
        super().__init__(self.message)


class AuthenticationError(APIError):
    """Authentication related errors"""
    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message, 401, "AUTHENTICATION_ERROR")


class AuthorizationError(APIError):
    """Authorization related errors"""
    def __init__(self, message: str = "Access denied"):
        super().__init__(message, 403, "AUTHORIZATION_ERROR")


class ValidationError(APIError):
    """Validation related errors"""
    def __init__(self, message: str = "Validation failed", details=None):
        super().__init__(message, 400, "VALIDATION_ERROR", details)


class ConflictError(APIError):
    """Request conflicts with the current state of a resource"""
    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message, 409, "CONFLICT")


class NotFoundError(APIError):
    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, 404, "NOT_FOUND")


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = None,
    details: Union[str, Dict, list] = None,
    request_id: str = None,
    headers: Dict[str, str] = None,
) -> JSONResponse:
    """
    Create standardized error response
    """
    error_data = {
        "error": True,
        "message": message,
        "status_code": status_code,
        "timestamp": time.time()
    }

    if error_code:
        error_data["error_code"] = error_code

    if details:
        error_data["details"] = details

    if request_id:
        error_data["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        content=error_data,
        headers=headers,
    )


async def api_error_handler(request: Request, exc: APIError):
    """Handle custom API errors"""
    request_id = getattr(request.state, 'request_id', None)

    logger.error(
        f"API Error: {exc.error_code} - {exc.message} "
        f"(Request: {request.method} {request.url.path})"
    )

    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        request_id=request_id,
        headers=headers,
    )


async def not_associated_handler(request: Request, exc: NotAssociatedError):
    """Caller is authenticated but linked to no partner company"""
    request_id = getattr(request.state, 'request_id', None)

    logger.info(
        f"Partner association missing (Request: {request.method} {request.url.path})"
    )

    return create_error_response(
        status_code=403,
        message=exc.message,
        error_code="NOT_ASSOCIATED",
        details="Contact support to link your account to a partner company",
        request_id=request_id,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle FastAPI and Starlette HTTP exceptions"""
    request_id = getattr(request.state, 'request_id', None)

    logger.warning(
        f"HTTP Exception: {exc.status_code} - {exc.detail} "
        f"(Request: {request.method} {request.url.path})"
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.detail,
        error_code=f"HTTP_ERROR_{exc.status_code}",
        request_id=request_id,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    request_id = getattr(request.state, 'request_id', None)

    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(x) for x in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    logger.warning(
        f"Validation Error: {len(errors)} validation errors "
        f"(Request: {request.method} {request.url.path})"
    )

    return create_error_response(
        status_code=422,
        message="Request validation failed",
        error_code="VALIDATION_ERROR",
        details=errors,
        request_id=request_id
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handle SQLAlchemy database errors"""
    request_id = getattr(request.state, 'request_id', None)

    logger.error(
        f"Database Error: {type(exc).__name__} - {str(exc)} "
        f"(Request: {request.method} {request.url.path})\n"
        f"Traceback: {traceback.format_exc()}"
    )

    if isinstance(exc, IntegrityError):
        message = "Data integrity violation"
        if "UNIQUE constraint failed" in str(exc) or "Duplicate entry" in str(exc):
            message = "Duplicate entry - record already exists"
        elif "FOREIGN KEY constraint failed" in str(exc):
            message = "Invalid reference - related record not found"
    else:
        message = "Database operation failed"

    return create_error_response(
        status_code=500,
        message=message,
        error_code="DATABASE_ERROR",
        request_id=request_id
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    request_id = getattr(request.state, 'request_id', None)

    logger.error(
        f"Unexpected Error: {type(exc).__name__} - {str(exc)} "
        f"(Request: {request.method} {request.url.path})\n"
        f"Traceback: {traceback.format_exc()}"
    )

    return create_error_response(
        status_code=500,
        message="Internal server error",
        error_code="INTERNAL_SERVER_ERROR",
        details=str(exc) if logger.isEnabledFor(logging.DEBUG) else None,
        request_id=request_id
    )


def setup_error_handlers(app):
    """
    Setup error handlers for FastAPI application
    """
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(NotAssociatedError, not_associated_handler)

    # HTTPException from FastAPI subclasses the Starlette one
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)

    # General exception handler (catch-all)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Error handlers registered successfully")
