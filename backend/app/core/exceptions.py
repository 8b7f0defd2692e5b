"""
Custom exception hierarchy for structured error handling.

WHY: Custom exceptions provide:
1. Consistent error handling across the API
2. HTTP status code mapping for FastAPI
3. Structured error responses with contextual data (invoice id,
   expected vs. actual status) so callers can react without re-querying
4. No sensitive data leaks in error messages

IMPORTANT: NEVER use base Exception class. Always use custom exceptions.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception class for all application exceptions.

    WHY: Centralizing exception handling in a base class ensures consistent
    error responses, HTTP status code mapping, and prevents sensitive data
    leaks in error messages.

    All custom exceptions should inherit from this class.
    """

    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **context: Any,
    ):
        """
        Initialize exception with message and context.

        Args:
            message: Human-readable error message
            status_code: HTTP status code (overrides class default)
            **context: Additional context for debugging (filtered in to_dict)
        """
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize exception to dictionary for JSON response.

        Returns:
            Dictionary with error details (sensitive fields filtered out)
        """
        sensitive_fields = {"password", "token", "secret", "key", "api_key"}
        filtered_context = {
            k: v for k, v in self.context.items() if k.lower() not in sensitive_fields
        }

        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": filtered_context if filtered_context else None,
        }


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class AuthenticationError(AppException):
    """
    Raised when authentication fails.

    HTTP Status: 401 Unauthorized
    """

    status_code = 401
    default_message = "Authentication failed"


class AuthorizationError(AppException):
    """
    Raised when user lacks permissions for an action.

    HTTP Status: 403 Forbidden
    """

    status_code = 403
    default_message = "You do not have permission to perform this action"


class TokenExpiredError(AuthenticationError):
    """Raised when JWT token has expired."""

    default_message = "Token has expired"


class TokenInvalidError(AuthenticationError):
    """Raised when JWT token is malformed or has invalid signature."""

    default_message = "Token is invalid"


class CrossTenantAccessError(AuthorizationError):
    """
    Raised when a caller touches an invoice owned by another company.

    WHY: Tenant isolation is the boundary of every invoice operation.
    Confirming or paying someone else's invoice is reported as a rule
    violation naming the invoice, not as a generic 404.

    HTTP Status: 403 Forbidden
    """

    default_message = "Invoice does not belong to your company"


# ============================================================================
# Validation & Input Exceptions
# ============================================================================


class ValidationError(AppException):
    """
    Raised when input validation fails.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Validation failed"


class CompanyRequiredError(ValidationError):
    """
    Raised when the caller's identity resolves to no company.

    WHY: Every invoice operation is tenant-scoped. A user that has not
    joined or created a company has no tenant id to scope by.

    HTTP Status: 400 Bad Request
    """

    default_message = "User must be associated with a company"


# ============================================================================
# Resource Exceptions
# ============================================================================


class ResourceNotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    HTTP Status: 404 Not Found
    """

    status_code = 404
    default_message = "Resource not found"


class InvoiceNotFoundError(ResourceNotFoundError):
    default_message = "Invoice not found"


class ClientNotFoundError(ResourceNotFoundError):
    default_message = "Client not found"


# ============================================================================
# Business Logic Exceptions
# ============================================================================


class BusinessRuleViolation(AppException):
    """
    Raised when a business rule is violated.

    HTTP Status: 422 Unprocessable Entity
    """

    status_code = 422
    default_message = "Business rule violation"


class InvalidStateTransitionError(BusinessRuleViolation):
    """
    Raised when an invalid state transition is attempted.

    WHY: The invoice state machine only allows DRAFT -> PENDING (confirm)
    and PENDING -> PAID (mark paid). Confirming twice or paying a draft
    must fail loudly, with the current and expected states in context.

    HTTP Status: 400 Bad Request
    """

    status_code = 400
    default_message = "Invalid state transition"


class ImmutableInvoiceFieldError(BusinessRuleViolation):
    """
    Raised when an update tries to change the series of a numbered invoice.

    HTTP Status: 422 Unprocessable Entity
    """

    default_message = "Invoice series cannot change once a number is assigned"


class InvoiceNumberConflictError(AppException):
    """
    Raised when a legal number could not be assigned without colliding.

    WHY: The unique index on (company, series, number) rejected every
    attempt within the retry budget. The caller may retry the request.

    HTTP Status: 409 Conflict
    """

    status_code = 409
    default_message = "Could not assign a unique invoice number, please retry"


# ============================================================================
# Rendering Exceptions
# ============================================================================


class DocumentRenderError(AppException):
    """
    Raised when invoice PDF generation fails at any drawing step.

    WHY: A half-drawn document must never reach the caller. Any failure
    while rendering aborts the whole document and surfaces as this error.

    HTTP Status: 500 Internal Server Error
    """

    status_code = 500
    default_message = "Failed to generate PDF"
