"""
Health check endpoints for readiness/liveness probes.

Checks connectivity of every configured database environment.
"""
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import text

from merchant_onboarding.core.environment import Environment
from merchant_onboarding.core.errors import ConnectionUnavailableError
from merchant_onboarding.database.connection import DatabaseGateway, get_gateway

logger = structlog.get_logger(__name__)


class HealthCheckError(Exception):
    """Raised when health check fails."""

    pass


class HealthCheck:
    """
    Health check service for monitoring system dependencies.

    Provides:
    - Per-environment database connectivity check
    - Overall system health status
    """

    def __init__(self, gateway: Optional[DatabaseGateway] = None) -> None:
        """
        Initialize health check service.

        Args:
            gateway: Optional database gateway (uses the process-wide one if not provided)
        """
        self._gateway = gateway

    @property
    def gateway(self) -> DatabaseGateway:
        return self._gateway or get_gateway()

    async def check_database(self, environment: Environment) -> Dict[str, Any]:
        """
        Check database connectivity for one environment.

        Returns:
            Dict[str, Any]: Database health status

        Raises:
            HealthCheckError: If database check fails
        """
        try:
            async with self.gateway.session(environment) as db:
                result = await db.execute(text("SELECT 1"))
                result.scalar()

            return {
                "status": "healthy",
                "service": f"database:{environment.value}",
                "message": "Database connection successful",
            }

        except ConnectionUnavailableError as e:
            logger.error("database_health_check_failed", environment=environment.value)
            raise HealthCheckError(e.message)
        except Exception as e:
            logger.error(
                "database_health_check_failed",
                environment=environment.value,
                error_type=type(e).__name__,
            )
            raise HealthCheckError(f"Database health check failed for {environment.value}")

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Dict[str, Any]: Overall health status
        """
        checks = {}
        all_healthy = True

        for environment in self.gateway.configured_environments():
            key = f"database_{environment.value}"
            try:
                checks[key] = await self.check_database(environment)
            except HealthCheckError as e:
                checks[key] = {
                    "status": "unhealthy",
                    "service": f"database:{environment.value}",
                    "error": str(e),
                }
                all_healthy = False

        return {
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }

    async def liveness(self) -> Dict[str, Any]:
        """
        Liveness probe endpoint.

        Simple check that the application is running.
        Does not check external dependencies.
        """
        return {
            "status": "alive",
            "message": "Application is running",
        }

    async def readiness(self) -> Dict[str, Any]:
        """
        Readiness probe endpoint.

        Checks if application is ready to accept traffic.
        """
        return await self.check_all()
