"""
Error kinds for the onboarding workflow.

Every error carries:
- Error code (for client handling)
- User message (safe to show to callers; no connection strings, no traces)
- HTTP status code (for API responses)
"""

from typing import Any, Dict, List, Optional


class OnboardingError(Exception):
    """Base exception for all onboarding errors."""

    def __init__(
        self,
        message: str,
        error_code: str,
        http_status: int = 500,
        **kwargs: Any,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.http_status = http_status
        self.metadata = kwargs

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for API responses"""
        return {"message": self.message, "code": self.error_code}


class NotFoundError(OnboardingError):
    """Application, prospect, agent or signature does not exist."""

    def __init__(self, resource: str, identifier: Any = None, **kwargs: Any):
        super().__init__(
            message=f"{resource} not found",
            error_code="not_found",
            http_status=404,
            resource=resource,
            identifier=identifier,
            **kwargs,
        )


class InvalidTransitionError(OnboardingError):
    """Status precondition of a workflow transition failed."""

    def __init__(self, message: str, current_status: Optional[str] = None, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="invalid_transition",
            http_status=400,
            current_status=current_status,
            **kwargs,
        )
        self.current_status = current_status


class ForbiddenError(OnboardingError):
    """Caller may not act on this resource."""

    def __init__(self, message: str = "You do not have access to this prospect", **kwargs: Any):
        super().__init__(
            message=message,
            error_code="forbidden",
            http_status=403,
            **kwargs,
        )


class AuthenticationError(OnboardingError):
    """No authenticated caller on the request."""

    def __init__(self, message: str = "Authentication required", **kwargs: Any):
        super().__init__(
            message=message,
            error_code="unauthenticated",
            http_status=401,
            **kwargs,
        )


class ValidationFailedError(OnboardingError):
    """Completion/validation evaluation produced errors."""

    def __init__(
        self,
        errors: List[str],
        missing_signatures: Optional[List[Dict[str, Any]]] = None,
        message: str = "Application is incomplete",
        **kwargs: Any,
    ):
        super().__init__(
            message=message,
            error_code="validation_failed",
            http_status=400,
            **kwargs,
        )
        self.errors = list(errors)
        self.missing_signatures = list(missing_signatures or [])

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["errors"] = self.errors
        body["missingSignatures"] = self.missing_signatures
        return body


class ConnectionUnavailableError(OnboardingError):
    """
    The database for an environment is unset or unreachable.

    Never retried by callers and never answered from another environment.
    """

    def __init__(self, environment: str, **kwargs: Any):
        super().__init__(
            message=f"Database unavailable for environment: {environment}",
            error_code="connection_unavailable",
            http_status=500,
            environment=environment,
            **kwargs,
        )
        self.environment = environment


class InvalidEnvironmentError(OnboardingError):
    """Value passed to the global environment selector is not allowed."""

    def __init__(self, value: Any, **kwargs: Any):
        super().__init__(
            message="Invalid environment. Must be development or test.",
            error_code="invalid_environment",
            http_status=400,
            value=value,
            **kwargs,
        )


class ConflictError(OnboardingError):
    """Record already exists."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="conflict",
            http_status=409,
            **kwargs,
        )


class InvalidApplicationError(OnboardingError):
    """Application cannot be created from the given acquirer/template."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="invalid_application",
            http_status=400,
            **kwargs,
        )


class InvalidSignatureError(OnboardingError):
    """Signature payload or type rejected."""

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(
            message=message,
            error_code="invalid_signature",
            http_status=400,
            **kwargs,
        )
