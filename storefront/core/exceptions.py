# storefront/core/exceptions.py

from enum import Enum
from typing import Optional, Dict, Any
import logging
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

class ErrorCode(Enum):
    """Standardized error codes for the application."""

    # Request validation errors
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    MISSING_REQUIRED_PARAMETER = "MISSING_REQUIRED_PARAMETER"

    # Catalog errors
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    CATEGORY_NOT_FOUND = "CATEGORY_NOT_FOUND"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
    RESOURCE_IN_USE = "RESOURCE_IN_USE"

    # Cart and checkout errors
    OUT_OF_STOCK = "OUT_OF_STOCK"
    EMPTY_CART = "EMPTY_CART"
    PRICE_MISMATCH = "PRICE_MISMATCH"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"

    # Payment errors
    PAYMENT_FAILED = "PAYMENT_FAILED"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    PAYMENT_FORBIDDEN = "PAYMENT_FORBIDDEN"
    PAYMENT_NOT_CONFIGURED = "PAYMENT_NOT_CONFIGURED"

    # Shipping errors
    SHIPPING_UNAVAILABLE = "SHIPPING_UNAVAILABLE"

    # System errors
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

class StorefrontError(Exception):
    """Base exception for all storefront application errors."""

    def __init__(
        self,
        code: ErrorCode,
        user_message: str,
        technical_details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggested_action: Optional[str] = None
    ):
        self.code = code
        self.user_message = user_message
        self.technical_details = technical_details
        self.context = context or {}
        self.suggested_action = suggested_action

        logger.warning(
            f"Storefront Error: {code.value}",
            extra={
                "error_code": code.value,
                "user_message": user_message,
                "technical_details": technical_details,
                "context": self.context,
            }
        )

        super().__init__(self.user_message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to API response format."""
        response = {
            "error": {
                "code": self.code.value,
                "message": self.user_message,
                "context": self.context
            }
        }

        if self.suggested_action:
            response["error"]["suggested_action"] = self.suggested_action

        return response

    def to_http_exception(self, status_code: int = status.HTTP_400_BAD_REQUEST) -> HTTPException:
        """Convert to FastAPI HTTPException."""
        return HTTPException(
            status_code=status_code,
            detail=self.to_response()
        )

class ProductNotFoundError(StorefrontError):
    def __init__(self, product_id: Any):
        super().__init__(
            code=ErrorCode.PRODUCT_NOT_FOUND,
            user_message="Product not found",
            context={"product_id": str(product_id)}
        )

class CategoryNotFoundError(StorefrontError):
    def __init__(self, category_id: Any):
        super().__init__(
            code=ErrorCode.CATEGORY_NOT_FOUND,
            user_message="Category not found",
            context={"category_id": str(category_id)}
        )

class OrderNotFoundError(StorefrontError):
    def __init__(self, order_id: Any):
        super().__init__(
            code=ErrorCode.ORDER_NOT_FOUND,
            user_message="Order not found",
            context={"order_id": str(order_id)}
        )

class DuplicateResourceError(StorefrontError):
    """Raised when a unique field (email, slug, sku) is already taken."""

    def __init__(self, resource: str, field: str, value: Any):
        super().__init__(
            code=ErrorCode.DUPLICATE_RESOURCE,
            user_message=f"A {resource} with this {field} already exists",
            context={"resource": resource, "field": field, "value": str(value)}
        )

class ResourceInUseError(StorefrontError):
    def __init__(self, resource: str, user_message: str):
        super().__init__(
            code=ErrorCode.RESOURCE_IN_USE,
            user_message=user_message,
            context={"resource": resource}
        )

class OutOfStockError(StorefrontError):
    """Raised when a product cannot be added or bought in the requested quantity."""

    def __init__(self, product_name: str, available: int, requested: Optional[int] = None):
        context = {"product_name": product_name, "available": available}
        if requested is not None:
            context["requested"] = requested
        super().__init__(
            code=ErrorCode.OUT_OF_STOCK,
            user_message=f"Insufficient stock for {product_name}",
            context=context,
            suggested_action="Reduce the quantity or remove the product from your cart"
        )

class EmptyCartError(StorefrontError):
    def __init__(self):
        super().__init__(
            code=ErrorCode.EMPTY_CART,
            user_message="Cart is empty"
        )

class PriceMismatchError(StorefrontError):
    """Raised when the price sent by the client differs from the catalog price."""

    def __init__(self, product_name: str, expected: float, received: float):
        super().__init__(
            code=ErrorCode.PRICE_MISMATCH,
            user_message=f"Price mismatch for {product_name}",
            context={"product_name": product_name, "expected": expected, "received": received},
            suggested_action="Refresh your cart to get the current prices"
        )

class PaymentError(StorefrontError):
    """Specific error for payment processor issues."""

    def __init__(
        self,
        code: ErrorCode,
        user_message: str,
        technical_details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(code, user_message, technical_details, context)

class ShippingError(StorefrontError):
    def __init__(self, user_message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.SHIPPING_UNAVAILABLE,
            user_message=user_message,
            context=context
        )

class AuthenticationError(Exception):
    """Exception raised for authentication-related errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

class PermissionDeniedError(Exception):
    """Exception raised when an authenticated user may not perform an action."""

    def __init__(self, message: str = "Forbidden"):
        self.message = message
        super().__init__(self.message)

class UserNotFoundError(Exception):
    """Exception raised when a user is not found."""

    def __init__(self, message: str = "User not found"):
        self.message = message
        super().__init__(self.message)

class InvalidPasswordError(Exception):
    """Exception raised when password is invalid."""

    def __init__(self, message: str = "Invalid password"):
        self.message = message
        super().__init__(self.message)

class PasswordMismatchError(Exception):
    """Exception raised when passwords don't match."""

    def __init__(self, message: str = "Passwords do not match"):
        self.message = message
        super().__init__(self.message)

# Errors that already map to an HTTP response through the registered handlers
HANDLED_ERRORS = (
    HTTPException,
    StorefrontError,
    AuthenticationError,
    PermissionDeniedError,
    UserNotFoundError,
    InvalidPasswordError,
    PasswordMismatchError,
)
