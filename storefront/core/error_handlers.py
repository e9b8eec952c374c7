# storefront/core/error_handlers.py

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from slowapi.errors import RateLimitExceeded
import logging
import traceback
import uuid

from .exceptions import (
    StorefrontError,
    AuthenticationError,
    PermissionDeniedError,
    UserNotFoundError,
    InvalidPasswordError,
    PasswordMismatchError,
    ErrorCode
)

logger = logging.getLogger(__name__)

STATUS_CODE_MAP = {
    ErrorCode.INVALID_PARAMETERS: 400,
    ErrorCode.MISSING_REQUIRED_PARAMETER: 400,
    ErrorCode.PRODUCT_NOT_FOUND: 404,
    ErrorCode.CATEGORY_NOT_FOUND: 404,
    ErrorCode.DUPLICATE_RESOURCE: 409,
    ErrorCode.RESOURCE_IN_USE: 409,
    ErrorCode.OUT_OF_STOCK: 409,
    ErrorCode.EMPTY_CART: 400,
    ErrorCode.PRICE_MISMATCH: 400,
    ErrorCode.ORDER_NOT_FOUND: 404,
    ErrorCode.PAYMENT_FAILED: 502,
    ErrorCode.PAYMENT_NOT_FOUND: 404,
    ErrorCode.PAYMENT_FORBIDDEN: 403,
    ErrorCode.PAYMENT_NOT_CONFIGURED: 500,
    ErrorCode.SHIPPING_UNAVAILABLE: 400,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
}

def _error_body(code: str, message, **extra) -> dict:
    return {"error": {"code": code, "message": message, **extra}}

def setup_error_handlers(app: FastAPI):
    """Set up global error handlers for the FastAPI application."""

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError):
        """Handle custom storefront errors."""
        status_code = STATUS_CODE_MAP.get(exc.code, 400)

        logger.error(
            f"Storefront Error: {exc.code.value}",
            extra={
                "error_code": exc.code.value,
                "technical_details": exc.technical_details,
                "request_url": str(request.url),
                "request_method": request.method,
                "client_ip": request.client.host if request.client else None
            }
        )

        return JSONResponse(
            status_code=status_code,
            content=jsonable_encoder(exc.to_response())
        )

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        logger.warning(f"Authentication failed on {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=401,
            content=_error_body("UNAUTHORIZED", exc.message),
            headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied_handler(request: Request, exc: PermissionDeniedError):
        logger.warning(f"Permission denied on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=403, content=_error_body("FORBIDDEN", exc.message))

    @app.exception_handler(UserNotFoundError)
    async def user_not_found_handler(request: Request, exc: UserNotFoundError):
        return JSONResponse(status_code=404, content=_error_body("USER_NOT_FOUND", exc.message))

    @app.exception_handler(InvalidPasswordError)
    async def invalid_password_handler(request: Request, exc: InvalidPasswordError):
        return JSONResponse(status_code=400, content=_error_body("INVALID_PASSWORD", exc.message))

    @app.exception_handler(PasswordMismatchError)
    async def password_mismatch_handler(request: Request, exc: PasswordMismatchError):
        return JSONResponse(status_code=400, content=_error_body("PASSWORD_MISMATCH", exc.message))

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'}")
        return JSONResponse(
            status_code=429,
            content=_error_body(
                ErrorCode.RATE_LIMIT_EXCEEDED.value,
                "Too many requests. Please try again later."
            )
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors with better formatting."""

        errors = []
        for error in exc.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"]
            })

        logger.warning(
            "Validation error",
            extra={
                "validation_errors": errors,
                "request_url": str(request.url),
                "request_method": request.method
            }
        )

        return JSONResponse(
            status_code=422,
            content=_error_body("VALIDATION_ERROR", "Request validation failed", details=errors)
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle standard HTTP exceptions with consistent format."""

        if isinstance(exc.detail, dict) and "error" in exc.detail:
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.detail,
                headers=exc.headers
            )

        logger.warning(
            f"HTTP Exception: {exc.status_code}",
            extra={
                "status_code": exc.status_code,
                "detail": exc.detail,
                "request_url": str(request.url),
                "request_method": request.method
            }
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(f"HTTP_{exc.status_code}", exc.detail, status_code=exc.status_code),
            headers=exc.headers
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle ValueError exceptions with better context."""

        logger.error(
            f"ValueError: {str(exc)}",
            extra={
                "request_url": str(request.url),
                "request_method": request.method,
                "traceback": traceback.format_exc()
            }
        )

        return JSONResponse(
            status_code=400,
            content=_error_body("VALUE_ERROR", "Invalid value provided", details=str(exc))
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions with proper logging."""

        logger.error(
            f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
            extra={
                "exception_type": type(exc).__name__,
                "request_url": str(request.url),
                "request_method": request.method,
                "traceback": traceback.format_exc()
            }
        )

        # Don't expose internal details in production
        return JSONResponse(
            status_code=500,
            content=_error_body(
                ErrorCode.INTERNAL_SERVER_ERROR.value,
                "An internal server error occurred. Please try again later."
            )
        )

async def add_request_id_middleware(request: Request, call_next):
    """Add request ID for better error tracking."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response
