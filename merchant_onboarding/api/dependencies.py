"""
Request-scoped dependencies: environment, caller identity, services.

All services share the request's session from `get_db`, so they read and
write the environment the request resolved to.
"""
import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.config import get_settings
from merchant_onboarding.core.applications import ApplicationStore
from merchant_onboarding.core.callers import Caller
from merchant_onboarding.core.environment import EnvironmentConfig, get_environment_resolver
from merchant_onboarding.core.errors import AuthenticationError, ForbiddenError
from merchant_onboarding.core.prospects import ProspectStore
from merchant_onboarding.core.signatures import SignatureService
from merchant_onboarding.core.workflow import WorkflowController
from merchant_onboarding.database.connection import get_db

logger = structlog.get_logger(__name__)


def get_environment(request: Request) -> EnvironmentConfig:
    """Environment captured by the request middleware."""
    env_config = getattr(request.state, "environment", None)
    if env_config is None:
        env_config = get_environment_resolver().resolve(request.url.hostname)
    return env_config


async def get_caller(request: Request, db: AsyncSession = Depends(get_db)) -> Caller:
    """
    Identify the caller from the user id header.

    Raises:
        AuthenticationError: Header missing or user unknown in this environment
        ForbiddenError: User is not active
    """
    user_id = request.headers.get(get_settings().user_id_header)
    if not user_id:
        raise AuthenticationError()

    user = await ProspectStore(db).get_user(user_id)
    if user is None:
        logger.warning("unknown_caller", user_id=user_id)
        raise AuthenticationError()
    if user.status != "active":
        raise ForbiddenError("User account is not active")

    structlog.contextvars.bind_contextvars(user_id=user.id)
    return Caller.from_roles(user.id, user.roles or [])


async def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not caller.is_admin:
        raise ForbiddenError("Admin access required")
    return caller


async def require_agent_or_admin(caller: Caller = Depends(get_caller)) -> Caller:
    if not (caller.is_admin or caller.is_agent):
        raise ForbiddenError("Agent or admin access required")
    return caller


def get_workflow(db: AsyncSession = Depends(get_db)) -> WorkflowController:
    return WorkflowController(
        ApplicationStore(db),
        ProspectStore(db),
        SignatureService(db),
    )


def get_prospect_store(db: AsyncSession = Depends(get_db)) -> ProspectStore:
    return ProspectStore(db)


def get_signature_service(db: AsyncSession = Depends(get_db)) -> SignatureService:
    return SignatureService(db)
