# zahnflow/core/exceptions.py
"""
Core exceptions - standardized error handling for the auth subsystem.

Every exception carries the HTTP status code it maps to at the request
boundary. Messages are user-facing (German) and never reveal internals;
diagnostic context goes into ``details`` and the log only.
"""

from typing import Optional, Dict, Any


class AuthBaseException(Exception):
    """Base exception for all ZahnFlow errors"""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class InvalidCredentialsError(AuthBaseException):
    """Unknown email or wrong password - both produce the same message"""

    status_code = 401

    def __init__(self, message: str = "Ungültige E-Mail oder Passwort.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class SessionExpiredOrInvalidError(AuthBaseException):
    """Token missing, malformed, badly signed or without a live session"""

    status_code = 401

    def __init__(
        self,
        message: str = "Session abgelaufen oder ungültig. Bitte erneut anmelden.",
        error_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize session error.

        Args:
            message: Error description
            error_type: Type of failure (missing, invalid)
            details: Additional security context
        """
        super().__init__(message, details)
        self.error_type = error_type

        if error_type:
            self.details['error_type'] = error_type


class NotFoundError(AuthBaseException):
    """Requested resource does not exist for the caller"""

    status_code = 404

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.resource = resource
        self.resource_id = resource_id

        if resource:
            self.details['resource'] = resource
        if resource_id:
            self.details['resource_id'] = resource_id


class SessionNotFoundError(NotFoundError):
    """Revocation target does not exist or belongs to another user"""

    def __init__(self, session_id: Optional[str] = None):
        super().__init__("Session nicht gefunden.", resource="session", resource_id=session_id)


class UserNotFoundError(NotFoundError):
    """Authenticated user id no longer resolves to a user"""

    def __init__(self, user_id: Optional[str] = None):
        super().__init__("Benutzer nicht gefunden.", resource="user", resource_id=user_id)


class AuthConfigurationError(AuthBaseException):
    """Errors in system configuration and initialization"""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize configuration error.

        Args:
            message: Error description
            component: Component with configuration issue
            details: Additional configuration context
        """
        super().__init__(message, details)
        self.component = component

        if component:
            self.details['component'] = component


class ServiceError(AuthBaseException):
    """Errors in backing service interactions"""

    def __init__(
        self,
        message: str,
        service_name: Optional[str] = None,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize service error.

        Args:
            message: Error description
            service_name: Name of the failing service
            operation: Operation that failed
            details: Additional service context
        """
        super().__init__(message, details)
        self.service_name = service_name
        self.operation = operation

        if service_name:
            self.details['service'] = service_name
        if operation:
            self.details['operation'] = operation


class SessionStoreError(ServiceError):
    """Session or credential store used in an unusable state"""

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, service_name="SessionStore", operation=operation, details=details)


# Convenience functions for creating common errors

def config_error(message: str, component: str) -> AuthConfigurationError:
    """Create a configuration error with component context."""
    return AuthConfigurationError(message, component=component)


def store_error(message: str, operation: str = None) -> SessionStoreError:
    """Create a store error with operation context."""
    return SessionStoreError(message, operation=operation)

