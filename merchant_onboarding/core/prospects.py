"""Prospect and agent lookups used by the workflow."""
import secrets
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.database.models import (
    Acquirer,
    AcquirerApplicationTemplate,
    Agent,
    Prospect,
    User,
)

logger = structlog.get_logger(__name__)


class ProspectStore:
    """Prospects, their agents, and the acquirer catalogue."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, prospect_id: int) -> Optional[Prospect]:
        return await self.db.get(Prospect, prospect_id)

    async def get_by_email(self, email: str) -> Optional[Prospect]:
        result = await self.db.execute(select(Prospect).where(Prospect.email == email))
        return result.scalars().first()

    async def create(
        self,
        first_name: str,
        last_name: str,
        email: str,
        agent_id: Optional[int] = None,
        phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Prospect:
        prospect = Prospect(
            first_name=first_name,
            last_name=last_name,
            email=email,
            phone=phone,
            agent_id=agent_id,
            notes=notes,
            status="pending",
            validation_token=secrets.token_urlsafe(32),
            form_data={},
            current_step=0,
        )
        self.db.add(prospect)
        await self.db.flush()

        logger.info("prospect_created", prospect_id=prospect.id, agent_id=agent_id)
        return prospect

    async def list_by_agent(self, agent_id: int) -> List[Prospect]:
        result = await self.db.execute(
            select(Prospect).where(Prospect.agent_id == agent_id).order_by(Prospect.id)
        )
        return list(result.scalars().all())

    async def update_form_data(
        self, prospect: Prospect, form_data: Dict[str, Any], current_step: Optional[int] = None
    ) -> Prospect:
        prospect.form_data = dict(form_data)
        if current_step is not None:
            prospect.current_step = current_step
        await self.db.flush()
        return prospect

    async def get_agent(self, agent_id: int) -> Optional[Agent]:
        return await self.db.get(Agent, agent_id)

    async def get_agent_by_user(self, user_id: str) -> Optional[Agent]:
        result = await self.db.execute(select(Agent).where(Agent.user_id == user_id))
        return result.scalars().first()

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_acquirer(self, acquirer_id: int) -> Optional[Acquirer]:
        return await self.db.get(Acquirer, acquirer_id)

    async def get_template(self, template_id: int) -> Optional[AcquirerApplicationTemplate]:
        return await self.db.get(AcquirerApplicationTemplate, template_id)
