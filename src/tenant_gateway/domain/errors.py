"""
Custom exception hierarchy for the Tenant Database Gateway.

This module defines the exception hierarchy with:
- Consistent error codes for API responses
- HTTP status code mappings for FastAPI
- Detailed error messages for debugging

Exception Categories:
- Validation (422): bad identifier, disallowed type, unformattable default
- Authorization (404): project absent or not owned by the caller
- Routing (503): no running instance, no credentials, instance not
  configured, container IP unresolved
- Credential (500): stored secret cannot be decrypted
- Database (5xx): control-plane database failures

Routing and credential errors carry the instance id that was resolved
before the failure (if any) so the audit trail can attribute the attempt.

Usage:
    raise NoRunningInstanceError("no running database instance for this project")
    raise ValidationError("invalid table name", details={"identifier": "1bad"})
"""

from typing import Any, Dict, Optional
from uuid import UUID


class GatewayException(Exception):
    """
    Base exception for all gateway errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "NO_RUNNING_INSTANCE")
        http_status: HTTP status code to return (default: 500)
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class ValidationError(GatewayException):
    """
    Raised when request-shape validation fails.

    HTTP Status: 422 Unprocessable Entity

    Examples:
        - Identifier outside the allowed grammar or longer than 63 bytes
        - Column type not in the allow-list
        - DDL default value of a type that cannot be safely formatted
    """

    error_code = "VALIDATION_ERROR"
    http_status = 422


class AuthorizationError(GatewayException):
    """
    Raised when the project does not exist or is not owned by the caller.

    HTTP Status: 404 Not Found (absence and foreign ownership look the same)
    """

    error_code = "NOT_FOUND"
    http_status = 404


class UnauthenticatedError(GatewayException):
    """
    Raised when no verified user identity accompanies the request.

    HTTP Status: 401 Unauthorized
    """

    error_code = "UNAUTHORIZED"
    http_status = 401


# =============================================================================
# Routing Errors (503)
# =============================================================================


class RoutingError(GatewayException):
    """
    Base class for failures to resolve a reachable tenant endpoint.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "ROUTING_ERROR"
    http_status = 503

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        instance_id: Optional[UUID] = None,
        **kwargs: Any,
    ):
        super().__init__(message, details=details, **kwargs)
        self.instance_id = instance_id


class NoRunningInstanceError(RoutingError):
    """Raised when the project has no database instance in status 'running'."""

    error_code = "NO_RUNNING_INSTANCE"


class NoCredentialsError(RoutingError):
    """Raised when the running instance has no stored credential."""

    error_code = "NO_CREDENTIALS"


class InstanceNotConfiguredError(RoutingError):
    """Raised when the instance lacks a container id or a port."""

    error_code = "INSTANCE_NOT_CONFIGURED"


class IPResolutionFailedError(RoutingError):
    """Raised when neither the registry nor Redis knows the container's IP."""

    error_code = "IP_RESOLUTION_FAILED"


# =============================================================================
# Credential Errors (500)
# =============================================================================


class CredentialError(GatewayException):
    """
    Base class for credential handling failures.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "CREDENTIAL_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        instance_id: Optional[UUID] = None,
        **kwargs: Any,
    ):
        super().__init__(message, details=details, **kwargs)
        self.instance_id = instance_id


class DecryptionFailedError(CredentialError):
    """Raised when a stored credential secret cannot be decrypted."""

    error_code = "DECRYPTION_FAILED"


class ConfigurationError(GatewayException):
    """
    Raised when configuration is invalid or missing.

    HTTP Status: 500 Internal Server Error

    Examples:
        - Encryption key cannot be turned into a cipher
    """

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# Execution Errors
# =============================================================================


class QueryExecutionError(GatewayException):
    """
    Raised when a tenant statement fails at the driver level.

    HTTP Status: 500 Internal Server Error

    The gateway converts this into the `error` field of the operation result;
    it is not expected to reach the HTTP layer.
    """

    error_code = "QUERY_EXECUTION_ERROR"
    http_status = 500


# =============================================================================
# Control-Plane Database Errors (5xx)
# =============================================================================


class DatabaseError(GatewayException):
    """
    Base class for control-plane database errors.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "DATABASE_ERROR"
    http_status = 503


class DatabaseConnectionError(DatabaseError):
    """
    Raised when the control-plane database connection fails.

    Examples:
        - Connection timeout
        - Authentication failure
        - Pool not initialized
    """

    error_code = "DATABASE_CONNECTION_ERROR"
    http_status = 503


class DatabaseQueryError(DatabaseError):
    """
    Raised when a control-plane query fails.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "DATABASE_QUERY_ERROR"
    http_status = 500


class ServiceUnavailableError(GatewayException):
    """
    Raised when a required service is not available.

    HTTP Status: 503 Service Unavailable

    Examples:
        - Gateway not initialized at startup
    """

    error_code = "SERVICE_UNAVAILABLE"
    http_status = 503
