"""Standardized error handling for the application."""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

# Configure logger
logger = logging.getLogger(__name__)


class PortalError(Exception):
    """Base exception class for all application errors."""

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            status_code: HTTP status code
            details: Additional error details
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for API responses.

        Returns:
            Dict containing error details
        """
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def log(self, level: int = logging.ERROR, **context: Any) -> None:
        """Log the error with appropriate level and context.

        Args:
            level: Logging level to use
            **context: Extra record fields, such as the request path and id
        """
        log_context = {
            **context,
            "error_type": self.__class__.__name__,
            "status_code": self.status_code,
            "error_details": self.details,
        }
        logger.log(level, f"{self.message}", extra=log_context)


# Client errors
class ValidationError(PortalError):
    """Missing or malformed input."""

    def __init__(self, message: str = "Invalid request", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, details=details)


class NotFoundError(PortalError):
    """A referenced entity does not exist."""

    def __init__(self, entity: str, query: Optional[Dict[str, Any]] = None):
        """Initialize not found error.

        Args:
            entity: Kind of entity that was looked up
            query: The lookup that found nothing
        """
        super().__init__(
            message=f"{entity} not found",
            status_code=404,
            details={"entity": entity, "query": query or {}},
        )


class PlanNotFound(NotFoundError):
    """Unknown subscription plan."""

    def __init__(self, plan_id: Optional[str]):
        super().__init__("Plan", {"plan_id": plan_id})


class PaymentDeclined(PortalError):
    """The gateway rejected the charge."""

    def __init__(self, reason: str, payment_id: Optional[str] = None):
        super().__init__(
            message=f"Payment declined: {reason}",
            status_code=402,
            details={"reason": reason, "payment_id": payment_id},
        )


class SignatureInvalid(PortalError):
    """Payment provider signature did not match the order."""

    def __init__(self, order_id: str):
        super().__init__(
            message="Invalid payment signature",
            status_code=400,
            details={"order_id": order_id},
        )


class SubscriptionConflict(PortalError):
    """The requested transition clashes with existing subscription state."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=409, details=details)


class Unauthorized(PortalError):
    """No usable credentials were presented."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=401)


class Forbidden(PortalError):
    """Credentials do not grant access to the requested identity."""

    def __init__(self, message: str = "Not allowed to access this subscription"):
        super().__init__(message=message, status_code=403)


# Infrastructure errors
class StorageUnavailable(PortalError):
    """The document store could not be reached in time."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        """Initialize storage error.

        Args:
            operation: Name of the storage operation that failed
            cause: Underlying driver exception
        """
        details = {"operation": operation, "retryable": True}
        if cause is not None:
            details["cause"] = cause.__class__.__name__
        super().__init__(message=f"Storage unavailable during {operation}", status_code=503, details=details)


class PaymentProviderError(PortalError):
    """The payment provider failed for reasons other than a decline."""

    def __init__(self, provider: str, message: str):
        super().__init__(
            message=f"Payment provider {provider} error: {message}",
            status_code=502,
            details={"provider": provider},
        )


def convert_exception(exc: Exception) -> PortalError:
    """Map any exception onto the application error hierarchy.

    Args:
        exc: The exception raised while handling a request

    Returns:
        A PortalError carrying an appropriate status code
    """
    if isinstance(exc, PortalError):
        return exc
    if isinstance(exc, PydanticValidationError):
        errors = [{"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]} for err in exc.errors()]
        return ValidationError("Invalid request", details={"errors": errors})
    if isinstance(exc, PyMongoError):
        return StorageUnavailable("request", exc)
    return PortalError(message=str(exc) or "Internal server error", details={"type": exc.__class__.__name__})
