"""
Custom Exception Classes for the Multiblog Platform

This module defines the error kinds raised by the tenant directory, resolver,
isolation enforcer, registration store and provisioning workflow, with the
HTTP status and machine-readable error code each one maps to.
"""

import enum
from typing import Any

from fastapi import status


class ErrorCode(str, enum.Enum):
    """Machine-readable error codes returned in error response bodies."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
    TENANT_UNAVAILABLE = "TENANT_UNAVAILABLE"

    ROUTING_KEY_CONFLICT = "ROUTING_KEY_CONFLICT"
    IDENTITY_CONFLICT = "IDENTITY_CONFLICT"

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"

    COMMIT_TIMEOUT = "COMMIT_TIMEOUT"

    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"


class PlatformError(Exception):
    """Base exception class for all platform errors"""

    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Tenant Resolution Exceptions
# ============================================================================


class TenantNotFoundError(PlatformError):
    """Raised when no tenant owns the requested routing key or id"""

    error_code = ErrorCode.TENANT_NOT_FOUND

    def __init__(self, message: str = "Not found", details: dict[str, Any] | None = None):
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class TenantUnavailableError(PlatformError):
    """Raised when a tenant exists but is suspended, deleted or not yet active"""

    error_code = ErrorCode.TENANT_UNAVAILABLE

    def __init__(self, tenant_status: str, message: str = "This blog is currently unavailable"):
        self.tenant_status = tenant_status
        super().__init__(
            message=message, status_code=status.HTTP_403_FORBIDDEN, details={"tenant_status": tenant_status}
        )


class IsolationViolationError(PlatformError):
    """
    Raised when an operation touches an entity owned by another tenant.

    The details are for the audit log only; the HTTP handler renders this
    exactly like TenantNotFoundError so clients cannot discover other
    tenants' data.
    """

    error_code = ErrorCode.TENANT_NOT_FOUND

    def __init__(
        self,
        reason: str,
        context_tenant_id: int | None = None,
        entity_type: str | None = None,
        entity_id: Any | None = None,
        entity_tenant_id: int | None = None,
    ):
        self.reason = reason
        self.context_tenant_id = context_tenant_id
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.entity_tenant_id = entity_tenant_id
        super().__init__(
            message=f"Isolation violation: {reason}",
            status_code=status.HTTP_404_NOT_FOUND,
            details={
                "reason": reason,
                "context_tenant_id": context_tenant_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "entity_tenant_id": entity_tenant_id,
            },
        )


# ============================================================================
# Conflict Exceptions
# ============================================================================


class RoutingKeyConflictError(PlatformError):
    """Raised when a routing key is already owned by another tenant"""

    error_code = ErrorCode.ROUTING_KEY_CONFLICT

    def __init__(self, routing_key: str, suggestions: list[str] | None = None):
        self.routing_key = routing_key
        self.suggestions = list(suggestions or [])
        super().__init__(
            message=f"'{routing_key}' is already taken, please try another address",
            status_code=status.HTTP_409_CONFLICT,
            details={"routing_key": routing_key, "suggestions": self.suggestions},
        )


class IdentityConflictError(PlatformError):
    """Raised when an email address already owns a blog"""

    error_code = ErrorCode.IDENTITY_CONFLICT

    def __init__(self, email: str):
        super().__init__(
            message="This email address is already registered, please sign in or use another email",
            status_code=status.HTTP_409_CONFLICT,
            details={"field": "email"},
        )
        self.email = email


# ============================================================================
# Registration Session Exceptions
# ============================================================================


class SessionNotFoundError(PlatformError):
    """Raised when a registration session does not exist"""

    error_code = ErrorCode.SESSION_NOT_FOUND

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            message="Registration session not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"session_id": session_id},
        )


class SessionExpiredError(PlatformError):
    """Raised when a registration session has passed its expiry time"""

    error_code = ErrorCode.SESSION_EXPIRED

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            message="Your signup session has expired, please start over",
            status_code=status.HTTP_410_GONE,
            details={"session_id": session_id},
        )


class CommitTimeoutError(PlatformError):
    """Raised when tenant creation did not finish within its time bound"""

    error_code = ErrorCode.COMMIT_TIMEOUT

    def __init__(self, timeout_seconds: float):
        super().__init__(
            message="Creating your blog is taking longer than expected, please retry",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"retryable": True, "timeout_seconds": timeout_seconds},
        )


# ============================================================================
# Validation & Business Logic Exceptions
# ============================================================================


class ValidationError(PlatformError):
    """Raised when input validation fails"""

    error_code = ErrorCode.VALIDATION_FAILED

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


class InvalidStatusTransitionError(PlatformError):
    """Raised when an invalid tenant status transition is attempted"""

    error_code = ErrorCode.INVALID_STATUS_TRANSITION

    def __init__(self, current_status: str, target_status: str, resource_type: str = "Tenant"):
        super().__init__(
            message=f"Cannot transition {resource_type} from '{current_status}' to '{target_status}'",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"resource_type": resource_type, "current_status": current_status, "target_status": target_status},
        )


class ResourceNotFoundError(PlatformError):
    """Raised when a tenant-owned resource does not exist"""

    error_code = ErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class AuthorizationError(PlatformError):
    """Raised when the caller lacks permission for an action"""

    error_code = ErrorCode.AUTH_PERMISSION_DENIED

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)
