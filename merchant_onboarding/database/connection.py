"""
Per-environment database connection and session management.

Each environment (production/development/test) gets its own engine, pool and
session factory, created on first use and kept for the process lifetime.
"""
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

import structlog
from fastapi import Request
from sqlalchemy.engine import make_url
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from merchant_onboarding.config import Settings, get_settings
from merchant_onboarding.core.environment import Environment, get_environment_resolver
from merchant_onboarding.core.errors import ConnectionUnavailableError
from merchant_onboarding.database.models import Base
from merchant_onboarding.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

# Connection-level failures worth a bounded retry; query errors never are.
TRANSIENT_CONNECTION_ERRORS = (OperationalError, InterfaceError, OSError)


class DatabaseGateway:
    """
    Hands out sessions bound to one environment's database.

    Every environment has a distinct connection string, so a session opened
    for development or test can never write to the production store.
    """

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize the gateway.

        Args:
            settings: Optional settings (loads cached settings if not provided)
        """
        self.settings = settings or get_settings()
        self._engines: Dict[Environment, AsyncEngine] = {}
        self._session_factories: Dict[Environment, async_sessionmaker[AsyncSession]] = {}

    @staticmethod
    def _normalize(environment: Union[Environment, str]) -> Environment:
        try:
            return Environment(environment)
        except ValueError:
            raise ConnectionUnavailableError(str(environment))

    def configured_environments(self) -> List[Environment]:
        """Environments that have a connection string set."""
        return [env for env in Environment if self.settings.database_url_for(env.value)]

    def get_engine(self, environment: Union[Environment, str]) -> AsyncEngine:
        """
        Get or create the engine for an environment.

        Raises:
            ConnectionUnavailableError: If the environment has no connection string
        """
        env = self._normalize(environment)
        engine = self._engines.get(env)
        if engine is not None:
            return engine

        url = self.settings.database_url_for(env.value)
        if not url:
            logger.error("database_url_not_configured", environment=env.value)
            metrics.record_connection_failure(env.value, "not_configured")
            raise ConnectionUnavailableError(env.value)

        engine_kwargs: Dict[str, Any] = {
            "echo": self.settings.database_echo,
            "pool_pre_ping": True,  # Verify connections before using
        }
        if make_url(url).get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_size=self.settings.database_pool_size,
                max_overflow=self.settings.database_max_overflow,
                pool_recycle=3600,  # Recycle connections after 1 hour
            )

        engine = create_async_engine(url, **engine_kwargs)
        self._engines[env] = engine
        logger.info("database_engine_created", environment=env.value)
        return engine

    def get_session_factory(
        self, environment: Union[Environment, str]
    ) -> async_sessionmaker[AsyncSession]:
        """Get or create the session factory for an environment."""
        env = self._normalize(environment)
        factory = self._session_factories.get(env)
        if factory is None:
            factory = async_sessionmaker(
                self.get_engine(env),
                class_=AsyncSession,
                expire_on_commit=False,
                autocommit=False,
                autoflush=False,
            )
            self._session_factories[env] = factory
        return factory

    async def _connect(self, session: AsyncSession, environment: Environment) -> None:
        """Open the session's connection, retrying transient failures only."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TRANSIENT_CONNECTION_ERRORS),
                stop=stop_after_attempt(max(1, self.settings.database_connect_retries)),
                wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
                reraise=True,
            ):
                with attempt:
                    await session.connection()
        except TRANSIENT_CONNECTION_ERRORS as e:
            logger.error(
                "database_connection_failed",
                environment=environment.value,
                error_type=type(e).__name__,
            )
            metrics.record_connection_failure(environment.value, "unreachable")
            raise ConnectionUnavailableError(environment.value) from e

    @asynccontextmanager
    async def session(self, environment: Union[Environment, str]) -> AsyncIterator[AsyncSession]:
        """
        Open a session bound to one environment.

        Raises:
            ConnectionUnavailableError: If the database is unset or unreachable
        """
        env = self._normalize(environment)
        session_factory = self.get_session_factory(env)
        async with session_factory() as session:
            await self._connect(session, env)
            yield session

    async def init_db(self, environment: Union[Environment, str]) -> None:
        """
        Initialize database tables for an environment.

        Creates all tables defined in models if they don't exist.
        """
        engine = self.get_engine(environment)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections and dispose of every engine."""
        for env, engine in list(self._engines.items()):
            await engine.dispose()
            logger.info("database_engine_disposed", environment=env.value)
        self._engines.clear()
        self._session_factories.clear()


@lru_cache()
def get_gateway() -> DatabaseGateway:
    """Get the process-wide database gateway."""
    return DatabaseGateway()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, Any]:
    """
    Dependency for getting a session on the request's environment.

    Yields:
        AsyncSession: Database session

    Example:
        @router.get("/prospects/{prospect_id}")
        async def get_prospect(db: AsyncSession = Depends(get_db)):
            ...
    """
    env_config = getattr(request.state, "environment", None)
    if env_config is None:
        env_config = get_environment_resolver().resolve(request.url.hostname)

    async with get_gateway().session(env_config.environment) as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables for every configured environment."""
    gateway = get_gateway()
    for env in gateway.configured_environments():
        await gateway.init_db(env)
        logger.info("database_initialized", environment=env.value)


async def close_db() -> None:
    """Dispose of all environment engines."""
    await get_gateway().close()
