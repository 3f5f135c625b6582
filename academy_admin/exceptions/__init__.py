"""Custom exceptions and result types for the academy admin application."""
import enum
from dataclasses import dataclass
from typing import Any, Optional


class AcademyError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class ConfigurationError(AcademyError):
    """Required startup configuration is missing. Fatal."""
    def __init__(self, missing):
        self.missing = list(missing)
        message = f"Missing required configuration: {', '.join(self.missing)}"
        super().__init__(message, 500, {'missing': self.missing})


class BusinessLogicError(AcademyError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Input rejected before any write took place."""
    def __init__(self, message, errors=None):
        self.errors = errors or {}
        super().__init__(message, 422, {'errors': self.errors})


class NotFoundError(AcademyError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class TenantNotFoundError(NotFoundError):
    """The origin did not resolve to a tenant."""
    def __init__(self, message="Academy not found", payload=None):
        super().__init__(message, payload)


class UnauthorizedError(AcademyError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access"):
        super().__init__(message, 403)


class FeatureNotEnabledError(AcademyError):
    """The tenant's plan does not include the requested feature."""
    def __init__(self, feature_key):
        self.feature_key = feature_key
        super().__init__(
            "Feature not enabled for tenant plan", 403,
            {'code': 'FEATURE_NOT_ENABLED', 'feature_key': feature_key},
        )


class AccessDeniedError(AcademyError):
    """The access gate blocked the current session."""
    def __init__(self, decision):
        self.decision = decision
        super().__init__(decision.message, 403, {'decision': decision.to_dict()})


class ImpersonationError(AcademyError):
    """Support-mode transitions that failed. Always surfaced to the caller."""
    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)


class IdentityServiceError(AcademyError):
    """The identity collaborator rejected or failed a request."""
    def __init__(self, message, payload=None):
        super().__init__(message, 502, payload)


class ErrorKind(enum.Enum):
    """Closed set of failure kinds returned by backend lookups."""
    CAPABILITY_UNSUPPORTED = 'capability_unsupported'
    NOT_FOUND = 'not_found'
    INVALID_ORIGIN = 'invalid_origin'
    BACKEND_ERROR = 'backend_error'


@dataclass(frozen=True)
class Result:
    """Outcome of a fallible backend operation: a value or an error kind."""
    value: Any = None
    error: Optional[ErrorKind] = None
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value):
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind, detail: Optional[str] = None):
        return cls(error=error, detail=detail)
