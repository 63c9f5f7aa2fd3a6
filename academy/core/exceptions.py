"""
Errors the academy API raises on purpose.

Every class carries its HTTP status and a stable error code; the handlers in
error_handlers.py render them as {"error", "message", "details", "path"}.
"""

from typing import Optional, Dict, Any, List


class BaseAppException(Exception):
    status_code = 500
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# === Access ===
class AuthenticationError(BaseAppException):
    """Missing, expired or unverifiable access token"""

    status_code = 401
    error_code = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)


class AuthorizationError(BaseAppException):
    """Signed in, but the coach's role or identity does not allow the action"""

    status_code = 403
    error_code = "AUTHORIZATION_ERROR"

    def __init__(
        self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)


# === Input and business rules ===
class ValidationError(BaseAppException):
    """Well-formed request whose values the academy rules reject"""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class BusinessLogicError(BaseAppException):
    status_code = 400
    error_code = "BUSINESS_LOGIC_ERROR"


class NotFoundError(BaseAppException):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        details = {"resource": resource}
        if identifier:
            details["identifier"] = identifier
            message = f"{resource} with identifier '{identifier}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(message, details)


class DuplicateError(BaseAppException):
    status_code = 409
    error_code = "DUPLICATE_ERROR"

    def __init__(self, resource: str, field: str, value: str):
        super().__init__(
            f"{resource} with {field} '{value}' already exists",
            {"resource": resource, "field": field, "value": value},
        )


class ConflictError(BaseAppException):
    """A coach or student is already booked in an overlapping session"""

    status_code = 409
    error_code = "SCHEDULE_CONFLICT"

    def __init__(self, conflicts: List[str]):
        conflicts = list(conflicts)
        super().__init__(
            "; ".join(conflicts) if conflicts else "Scheduling conflict",
            {"conflicts": conflicts},
        )


# === Storage ===
class DatabaseError(BaseAppException):
    error_code = "DATABASE_ERROR"

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)


class DatabaseConnectionError(DatabaseError):
    status_code = 503
    error_code = "DATABASE_CONNECTION_ERROR"

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message)


class DatabaseTimeoutError(DatabaseError):
    status_code = 504
    error_code = "DATABASE_TIMEOUT"

    def __init__(self, operation: str, timeout: int):
        super().__init__(
            f"Database operation '{operation}' timed out after {timeout}s",
            {"operation": operation, "timeout": timeout},
        )


class DatabaseIntegrityError(DatabaseError):
    """A row would break a unique or foreign-key constraint"""

    status_code = 409
    error_code = "DATABASE_INTEGRITY_ERROR"

    def __init__(self, message: str, constraint: str, details: Optional[Dict[str, Any]] = None):
        error_details = {"constraint": constraint}
        error_details.update(details or {})
        super().__init__(message, error_details)


# === Outside services ===
class ExternalServiceError(BaseAppException):
    """The identity provider (coach account provisioning) failed or refused"""

    status_code = 502
    error_code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: Optional[str] = None):
        super().__init__(
            message or f"External service '{service}' error", {"service": service}
        )


class ConfigurationError(BaseAppException):
    error_code = "CONFIGURATION_ERROR"

    def __init__(self, parameter: str, message: Optional[str] = None):
        super().__init__(
            message or f"Configuration parameter '{parameter}' is invalid or missing",
            {"parameter": parameter},
        )
