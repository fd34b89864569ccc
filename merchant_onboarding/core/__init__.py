"""Core onboarding workflow logic."""
from .environment import (
    Environment,
    EnvironmentConfig,
    EnvironmentResolver,
    get_environment_resolver,
)
from .errors import (
    AuthenticationError,
    ConflictError,
    ConnectionUnavailableError,
    ForbiddenError,
    InvalidApplicationError,
    InvalidEnvironmentError,
    InvalidSignatureError,
    InvalidTransitionError,
    NotFoundError,
    OnboardingError,
    ValidationFailedError,
)

__all__ = [
    "AuthenticationError",
    "ConflictError",
    "ConnectionUnavailableError",
    "Environment",
    "EnvironmentConfig",
    "EnvironmentResolver",
    "ForbiddenError",
    "InvalidApplicationError",
    "InvalidEnvironmentError",
    "InvalidSignatureError",
    "InvalidTransitionError",
    "NotFoundError",
    "OnboardingError",
    "ValidationFailedError",
    "get_environment_resolver",
]
