"""
Database environment resolution.

Production hostnames always resolve to the production database. Every other
hostname resolves to the process-wide selected environment, which an admin
can switch between development and test.
"""
import threading
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Optional

import structlog

from merchant_onboarding.config import get_settings

from .errors import InvalidEnvironmentError

logger = structlog.get_logger(__name__)


class Environment(str, Enum):
    """Logical database targets."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"


SELECTABLE_ENVIRONMENTS = (Environment.DEVELOPMENT, Environment.TEST)


@dataclass(frozen=True)
class EnvironmentConfig:
    """Environment bound to a single request."""

    environment: Environment
    is_production: bool
    hostname: str

    def to_dict(self) -> dict:
        return {
            "environment": self.environment.value,
            "isProduction": self.is_production,
            "url": self.hostname,
        }


class EnvironmentResolver:
    """
    Resolves the database environment for a request hostname.

    The selector is the only mutable state and is guarded by a lock; callers
    receive an immutable EnvironmentConfig and never see later changes.
    """

    def __init__(
        self,
        production_hostname: str,
        default_environment: str = Environment.DEVELOPMENT.value,
    ):
        self.production_hostname = production_hostname
        self._lock = threading.Lock()
        self._selected = self.validate(default_environment)

        logger.info(
            "environment_resolver_initialized",
            production_hostname=production_hostname,
            global_environment=self._selected.value,
        )

    @staticmethod
    def validate(value: object) -> Environment:
        """Parse a selectable environment, rejecting production and unknown values."""
        try:
            env = Environment(value)
        except ValueError:
            raise InvalidEnvironmentError(value)
        if env not in SELECTABLE_ENVIRONMENTS:
            raise InvalidEnvironmentError(value)
        return env

    @property
    def global_environment(self) -> Environment:
        """Current selection for non-production hostnames."""
        with self._lock:
            return self._selected

    def resolve(self, hostname: Optional[str]) -> EnvironmentConfig:
        """
        Resolve the environment for a hostname.

        Args:
            hostname: Request hostname without port (may be empty)

        Returns:
            EnvironmentConfig: Environment the request must use
        """
        host = (hostname or "").strip().lower()

        if host == self.production_hostname.lower():
            return EnvironmentConfig(
                environment=Environment.PRODUCTION,
                is_production=True,
                hostname=host,
            )

        return EnvironmentConfig(
            environment=self.global_environment,
            is_production=False,
            hostname=host,
        )

    def set_global_environment(self, value: object) -> Environment:
        """
        Change the environment used by non-production hostnames.

        Args:
            value: 'development' or 'test'

        Returns:
            Environment: The new selection

        Raises:
            InvalidEnvironmentError: For any other value, including 'production'
        """
        env = self.validate(value)
        with self._lock:
            previous = self._selected
            self._selected = env

        logger.info(
            "global_environment_changed",
            previous=previous.value,
            environment=env.value,
        )
        return env


@lru_cache()
def get_environment_resolver() -> EnvironmentResolver:
    """Get the process-wide environment resolver."""
    settings = get_settings()
    return EnvironmentResolver(
        production_hostname=settings.production_hostname,
        default_environment=settings.global_db_env,
    )
