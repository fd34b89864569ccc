"""
Application Record Store.

Raw persistence for prospect applications. No business rules live here;
the workflow controller is the only caller that changes `status`, and it
does so through `transition`.
"""
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.database.models import Prospect, ProspectApplication

logger = structlog.get_logger(__name__)


class ApplicationStore:
    """CRUD over `prospect_applications` on one environment's session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, application_id: int) -> Optional[ProspectApplication]:
        """Load an application, bypassing any stale identity-map copy."""
        return await self.db.get(ProspectApplication, application_id, populate_existing=True)

    async def create(
        self,
        prospect_id: int,
        acquirer_id: int,
        template_id: int,
        template_version: str = "1.0",
        application_data: Optional[Dict[str, Any]] = None,
    ) -> ProspectApplication:
        """
        Create an application in `draft` with no transition timestamps.

        Args:
            prospect_id: Owning prospect
            acquirer_id: Payment processor
            template_id: Field template
            template_version: Version of the template used

        Returns:
            ProspectApplication: The new record
        """
        application = ProspectApplication(
            prospect_id=prospect_id,
            acquirer_id=acquirer_id,
            template_id=template_id,
            template_version=template_version,
            status="draft",
            application_data=dict(application_data or {}),
            submitted_at=None,
            approved_at=None,
            rejected_at=None,
            rejection_reason=None,
        )
        self.db.add(application)
        await self.db.flush()

        logger.info(
            "application_created",
            application_id=application.id,
            prospect_id=prospect_id,
            acquirer_id=acquirer_id,
            template_id=template_id,
        )
        return application

    async def update(self, application_id: int, patch: Dict[str, Any]) -> Optional[ProspectApplication]:
        """
        Apply a raw column patch.

        Returns:
            Optional[ProspectApplication]: Updated record, or None if it does not exist
        """
        if patch:
            await self.db.execute(
                update(ProspectApplication)
                .where(ProspectApplication.id == application_id)
                .values(**patch)
                .execution_options(synchronize_session=False)
            )
        return await self.get(application_id)

    async def transition(
        self, application_id: int, from_status: str, values: Dict[str, Any]
    ) -> bool:
        """
        Conditionally update a record that is still in `from_status`.

        Issues `UPDATE ... WHERE id = ? AND status = ?`, so two concurrent
        callers can never both move the same record out of a status.

        Returns:
            bool: False if no row matched (missing, or status already changed)
        """
        result = await self.db.execute(
            update(ProspectApplication)
            .where(
                ProspectApplication.id == application_id,
                ProspectApplication.status == from_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find_for_acquirer(
        self, prospect_id: int, acquirer_id: int
    ) -> Optional[ProspectApplication]:
        result = await self.db.execute(
            select(ProspectApplication).where(
                ProspectApplication.prospect_id == prospect_id,
                ProspectApplication.acquirer_id == acquirer_id,
            )
        )
        return result.scalars().first()

    async def list_by_prospect(self, prospect_id: int) -> List[ProspectApplication]:
        result = await self.db.execute(
            select(ProspectApplication)
            .where(ProspectApplication.prospect_id == prospect_id)
            .order_by(ProspectApplication.created_at, ProspectApplication.id)
        )
        return list(result.scalars().all())

    async def list_by_agent(self, agent_id: int) -> List[ProspectApplication]:
        result = await self.db.execute(
            select(ProspectApplication)
            .join(Prospect, Prospect.id == ProspectApplication.prospect_id)
            .where(Prospect.agent_id == agent_id)
            .order_by(ProspectApplication.created_at, ProspectApplication.id)
        )
        return list(result.scalars().all())
