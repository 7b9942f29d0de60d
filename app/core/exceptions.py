from typing import Dict, Any, Optional
from datetime import datetime, timezone
from fastapi import status
import logging

logger = logging.getLogger(__name__)


class BaseCustomException(Exception):
    """Base class for custom exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(BaseCustomException):
    """Exception for validation errors"""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            error_code=error_code or "VALIDATION_ERROR"
        )


class NotFoundError(BaseCustomException):
    """Exception for resource not found errors"""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error_code=error_code or "NOT_FOUND_ERROR"
        )


class ConflictError(BaseCustomException):
    """Exception for conflict errors"""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            error_code=error_code or "CONFLICT_ERROR"
        )


class InsufficientStockError(BaseCustomException):
    """Raised when a sale cannot be fully covered by the matching batches"""

    def __init__(
        self,
        available: int,
        requested: int,
        message: Optional[str] = None,
        error_code: Optional[str] = None
    ):
        self.available = available
        self.requested = requested
        super().__init__(
            message=message or f"Insufficient stock. Available: {available}",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"available": available, "requested": requested},
            error_code=error_code or "INSUFFICIENT_STOCK_ERROR"
        )


class StoreError(BaseCustomException):
    """Exception for persistence failures (file I/O or database driver)"""

    def __init__(
        self,
        message: str = "Store operation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code=error_code or "STORE_ERROR"
        )


def create_error_response(
    exception: BaseCustomException,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create standardized error response"""
    response = {
        "error": exception.__class__.__name__.replace("Error", " Error"),
        "message": exception.message,
        "error_code": exception.error_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id
    }

    if exception.details:
        response["details"] = exception.details

    return response


def create_validation_error_response(
    exception: ValidationError,
    validation_errors: Optional[Dict[str, list]] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Create validation error response"""
    response = {
        "error": "Validation Error",
        "message": exception.message,
        "error_code": exception.error_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id
    }

    if validation_errors:
        response["validation_errors"] = validation_errors

    if exception.details:
        response["details"] = exception.details

    return response


def handle_store_error(error: Exception, operation: str = "store operation") -> StoreError:
    """Handle persistence errors and convert to StoreError"""
    logger.error(f"Store error during {operation}: {error}")

    error_message = "Store operation failed"
    if "connection" in str(error).lower():
        error_message = "Database connection failed"
    elif "timeout" in str(error).lower():
        error_message = "Store operation timed out"
    elif "constraint" in str(error).lower():
        error_message = "Database constraint violation"
    elif isinstance(error, OSError):
        error_message = "Inventory file could not be accessed"
    elif isinstance(error, ValueError):
        error_message = "Inventory data is corrupt"

    return StoreError(
        message=error_message,
        details={"operation": operation, "original_error": str(error)},
        error_code="STORE_OPERATION_ERROR"
    )


# Context manager for error handling
class ErrorHandler:
    """Converts unexpected persistence failures into StoreError"""

    def __init__(self, operation: str):
        self.operation = operation

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and not issubclass(exc_type, BaseCustomException):
            if not issubclass(exc_type, Exception):
                return False
            raise handle_store_error(exc_val, self.operation) from exc_val

        return False  # Don't suppress exceptions
