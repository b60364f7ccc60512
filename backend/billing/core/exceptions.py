"""
Custom application exceptions.
Project: Billing Backend

Domain-specific exceptions for centralized error handling. Each class
carries the HTTP status and error code the exception handlers in
`billing.main` turn into the error envelope.

NOTE: BusinessValidationError is deliberately distinct from
pydantic.ValidationError.
- pydantic.ValidationError: malformed input (FastAPI RequestValidationError → 400)
- BusinessValidationError: business rule violations the schema layer
  cannot know about (positive amounts, overpayment, ...) → 400
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "InvalidInputError",
    "OverpaymentError",
    "ConflictError",
    "InvoiceStateError",
]


class AppException(Exception):
    """
    Base exception for the application.

    Attributes:
        status_code: HTTP status code returned to the client
        error_code: stable identifier of the error for API consumers
        detail: human readable message
        extra: optional structured data added to the error envelope
    """

    # Default values - overridden in subclasses
    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Internal server error"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            detail: error message (default: the class default)
            error_code: identifier (default: the class one)
            extra: additional data for the client (default: None)
        """
        self.detail = detail if detail is not None else self.default_detail
        # Use provided error_code or fall back to class-level default
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(self.detail)


class NotFoundError(AppException):
    """
    Raised when a referenced customer, product or invoice does not exist.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Resource not found"


class DuplicateError(AppException):
    """
    Raised when a create/update would break a uniqueness constraint
    (customer email, product SKU).
    """

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"
    default_detail: str = "Resource already exists"


class BusinessValidationError(ValueError, AppException):
    """
    Raised for business rule violations.

    Inherits from ValueError so it can be raised from Pydantic validators.

    Do NOT confuse with pydantic.ValidationError, which covers the
    shape/format of the incoming payload.
    """

    status_code: int = 400
    error_code: str = "BUSINESS_VALIDATION_ERROR"
    default_detail: str = "Business validation failed"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Call AppException.__init__ directly to skip ValueError's
        AppException.__init__(self, detail, error_code, extra)


class InvalidInputError(BusinessValidationError):
    """
    Malformed numeric input: empty item list, non-positive quantity or
    price, tax rate outside [0, 1].
    """

    error_code: str = "INVALID_INPUT"
    default_detail: str = "Invalid input"


class OverpaymentError(BusinessValidationError):
    """
    Raised when a payment exceeds the remaining balance of an invoice.
    """

    error_code: str = "OVERPAYMENT_REJECTED"
    default_detail: str = "Payment amount exceeds remaining balance"


class ConflictError(AppException):
    """
    Raised when an operation conflicts with the stored state
    (integrity errors, numbering collisions, referenced rows).
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"
    default_detail: str = "State conflict"


class InvoiceStateError(ConflictError):
    """
    Raised when the invoice status does not allow the operation,
    e.g. a payment against a CANCELLED invoice.
    """

    error_code: str = "INVALID_INVOICE_STATE"
    default_detail: str = "Operation not allowed in the current invoice status"
