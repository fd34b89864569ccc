"""
Workflow controller for prospect applications.

Status only moves forward:

    draft -> in_progress -> submitted -> approved | rejected

Each transition is a single conditional update on (id, status), so two
concurrent callers can never both move a record out of the same status.
The loser gets InvalidTransitionError. Every successful transition stages
an outbox event in the same transaction.
"""
from typing import Any, Awaitable, Dict, List, Optional

import structlog
from sqlalchemy.exc import IntegrityError

from merchant_onboarding.core.applications import ApplicationStore
from merchant_onboarding.core.callers import Caller
from merchant_onboarding.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidApplicationError,
    InvalidTransitionError,
    NotFoundError,
    OnboardingError,
    ValidationFailedError,
)
from merchant_onboarding.core.evaluator import EvaluationResult, evaluate
from merchant_onboarding.core.outbox import write_outbox_event
from merchant_onboarding.core.prospects import ProspectStore
from merchant_onboarding.core.signatures import SignatureService
from merchant_onboarding.database.models import Prospect, ProspectApplication, utcnow
from merchant_onboarding.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

EDITABLE_STATUSES = ("draft", "in_progress")


class WorkflowController:
    """
    Drives application status changes and the read paths around them.

    Ownership rule: admins bypass it; anyone else must be the user linked to
    the agent assigned to the application's prospect.
    """

    def __init__(
        self,
        store: ApplicationStore,
        prospects: ProspectStore,
        signatures: SignatureService,
    ):
        self.store = store
        self.prospects = prospects
        self.signatures = signatures
        self.db = store.db

    async def _load(self, application_id: int) -> ProspectApplication:
        application = await self.store.get(application_id)
        if application is None:
            raise NotFoundError("Application", application_id)
        return application

    async def authorize_prospect(self, prospect_id: int, caller: Caller) -> Prospect:
        """
        Load a prospect and apply the ownership rule.

        Raises:
            NotFoundError: Prospect or its assigned agent missing
            ForbiddenError: Caller is not the owning agent and not an admin
        """
        prospect = await self.prospects.get(prospect_id)
        if prospect is None:
            raise NotFoundError("Prospect", prospect_id)

        if caller.is_admin:
            return prospect

        if prospect.agent_id is None:
            raise ForbiddenError()

        agent = await self.prospects.get_agent(prospect.agent_id)
        if agent is None:
            raise NotFoundError("Agent", prospect.agent_id)

        if agent.user_id != caller.user_id:
            logger.warning(
                "prospect_access_denied",
                prospect_id=prospect_id,
                agent_id=agent.id,
                user_id=caller.user_id,
            )
            raise ForbiddenError()

        return prospect

    async def _apply(
        self,
        transition: str,
        application: ProspectApplication,
        from_status: str,
        values: Dict[str, Any],
        event_type: str,
        caller: Caller,
    ) -> ProspectApplication:
        """Run the conditional update, stage the event and commit."""
        updated = await self.store.transition(application.id, from_status, values)
        if not updated:
            # Zero rows changed; the session owner decides whether to roll back
            raise InvalidTransitionError(f"Application is no longer {from_status}")

        await write_outbox_event(
            self.db,
            aggregate_type="prospect_application",
            aggregate_id=application.id,
            event_type=event_type,
            payload={
                "application_id": application.id,
                "prospect_id": application.prospect_id,
                "acquirer_id": application.acquirer_id,
                "status": values["status"],
                "user_id": caller.user_id,
            },
        )
        await self.db.commit()

        refreshed = await self.store.get(application.id)
        logger.info(
            "application_transitioned",
            transition=transition,
            application_id=application.id,
            from_status=from_status,
            to_status=values["status"],
            user_id=caller.user_id,
        )
        metrics.record_transition(transition, "success")
        return refreshed

    @staticmethod
    def _require_status(application: ProspectApplication, expected: str, action: str) -> None:
        if application.status != expected:
            raise InvalidTransitionError(
                f"Cannot {action} application in {application.status} status",
                current_status=application.status,
            )

    async def _guarded(
        self, transition: str, coro: Awaitable[ProspectApplication]
    ) -> ProspectApplication:
        try:
            return await coro
        except OnboardingError as e:
            metrics.record_transition(transition, e.error_code)
            logger.info(
                "application_transition_refused",
                transition=transition,
                error_code=e.error_code,
                message=e.message,
            )
            raise

    async def start(self, application_id: int, caller: Caller) -> ProspectApplication:
        """
        Move a draft application to in_progress.

        Raises:
            NotFoundError: Unknown application
            ForbiddenError: Caller does not own the prospect
            InvalidTransitionError: Status is not draft
        """
        return await self._guarded("start", self._start(application_id, caller))

    async def _start(self, application_id: int, caller: Caller) -> ProspectApplication:
        application = await self._load(application_id)
        await self.authorize_prospect(application.prospect_id, caller)
        self._require_status(application, "draft", "start")
        return await self._apply(
            "start",
            application,
            "draft",
            {"status": "in_progress", "updated_at": utcnow()},
            "application.started",
            caller,
        )

    async def submit(
        self,
        application_id: int,
        caller: Caller,
        application_data: Optional[Dict[str, Any]] = None,
    ) -> ProspectApplication:
        """
        Submit an in-progress application.

        Non-admin callers must pass the completion/validation evaluator.
        Provided application data replaces the stored data.

        Raises:
            NotFoundError: Unknown application
            ForbiddenError: Caller does not own the prospect
            InvalidTransitionError: Status is not in_progress
            ValidationFailedError: Required data or signatures are missing
        """
        return await self._guarded(
            "submit", self._submit(application_id, caller, application_data)
        )

    async def _submit(
        self,
        application_id: int,
        caller: Caller,
        application_data: Optional[Dict[str, Any]],
    ) -> ProspectApplication:
        application = await self._load(application_id)
        prospect = await self.authorize_prospect(application.prospect_id, caller)
        self._require_status(application, "in_progress", "submit")

        data = application_data if application_data is not None else application.application_data
        if not caller.is_admin:
            result = await self._evaluate(prospect, data or {})
            if not result.is_valid:
                raise ValidationFailedError(result.errors, result.missing_signatures)

        now = utcnow()
        values: Dict[str, Any] = {"status": "submitted", "submitted_at": now, "updated_at": now}
        if application_data is not None:
            values["application_data"] = dict(application_data)

        return await self._apply(
            "submit", application, "in_progress", values, "application.submitted", caller
        )

    async def approve(self, application_id: int, caller: Caller) -> ProspectApplication:
        """Approve a submitted application. Admin access is enforced by the endpoint."""
        return await self._guarded("approve", self._approve(application_id, caller))

    async def _approve(self, application_id: int, caller: Caller) -> ProspectApplication:
        application = await self._load(application_id)
        self._require_status(application, "submitted", "approve")
        now = utcnow()
        return await self._apply(
            "approve",
            application,
            "submitted",
            {"status": "approved", "approved_at": now, "updated_at": now},
            "application.approved",
            caller,
        )

    async def reject(
        self, application_id: int, caller: Caller, reason: Optional[str] = None
    ) -> ProspectApplication:
        """Reject a submitted application, recording the reason if given."""
        return await self._guarded("reject", self._reject(application_id, caller, reason))

    async def _reject(
        self, application_id: int, caller: Caller, reason: Optional[str]
    ) -> ProspectApplication:
        application = await self._load(application_id)
        self._require_status(application, "submitted", "reject")
        now = utcnow()
        return await self._apply(
            "reject",
            application,
            "submitted",
            {
                "status": "rejected",
                "rejected_at": now,
                "rejection_reason": reason or None,
                "updated_at": now,
            },
            "application.rejected",
            caller,
        )

    async def create(
        self, prospect_id: int, acquirer_id: int, template_id: int, caller: Caller
    ) -> ProspectApplication:
        """
        Create a draft application of a prospect for one acquirer.

        Raises:
            NotFoundError: Prospect, acquirer or template missing
            ForbiddenError: Caller does not own the prospect
            InvalidApplicationError: Template is inactive or belongs to another acquirer
            ConflictError: The prospect already has an application for the acquirer
        """
        await self.authorize_prospect(prospect_id, caller)

        acquirer = await self.prospects.get_acquirer(acquirer_id)
        if acquirer is None:
            raise NotFoundError("Acquirer", acquirer_id)

        template = await self.prospects.get_template(template_id)
        if template is None:
            raise NotFoundError("Template", template_id)
        if template.acquirer_id != acquirer.id:
            raise InvalidApplicationError("Template does not belong to this acquirer")
        if not template.is_active or not acquirer.is_active:
            raise InvalidApplicationError("Template is not active")

        if await self.store.find_for_acquirer(prospect_id, acquirer_id) is not None:
            raise ConflictError("Application already exists for this prospect and acquirer")

        try:
            application = await self.store.create(
                prospect_id=prospect_id,
                acquirer_id=acquirer_id,
                template_id=template.id,
                template_version=template.version,
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Application already exists for this prospect and acquirer")

        return application

    async def save_progress(
        self, application_id: int, caller: Caller, application_data: Dict[str, Any]
    ) -> ProspectApplication:
        """Autosave wizard data without touching the status."""
        application = await self._load(application_id)
        await self.authorize_prospect(application.prospect_id, caller)
        if application.status not in EDITABLE_STATUSES:
            raise InvalidTransitionError(
                f"Cannot edit application in {application.status} status",
                current_status=application.status,
            )

        saved = await self.store.transition(
            application_id,
            application.status,
            {"application_data": dict(application_data), "updated_at": utcnow()},
        )
        if not saved:
            raise InvalidTransitionError(f"Application is no longer {application.status}")
        await self.db.commit()

        logger.info("application_progress_saved", application_id=application_id)
        return await self.store.get(application_id)

    async def get(self, application_id: int, caller: Caller) -> ProspectApplication:
        application = await self._load(application_id)
        await self.authorize_prospect(application.prospect_id, caller)
        return application

    async def list_for_prospect(
        self, prospect_id: int, caller: Caller
    ) -> List[ProspectApplication]:
        await self.authorize_prospect(prospect_id, caller)
        return await self.store.list_by_prospect(prospect_id)

    async def _authorize_agent(self, agent_id: int, caller: Caller, resource: str) -> None:
        agent = await self.prospects.get_agent(agent_id)
        if agent is None:
            raise NotFoundError("Agent", agent_id)
        if not caller.is_admin and agent.user_id != caller.user_id:
            raise ForbiddenError(f"You can only view your own {resource}")

    async def list_for_agent(self, agent_id: int, caller: Caller) -> List[ProspectApplication]:
        await self._authorize_agent(agent_id, caller, "applications")
        return await self.store.list_by_agent(agent_id)

    async def list_prospects_for_agent(self, agent_id: int, caller: Caller) -> List[Prospect]:
        await self._authorize_agent(agent_id, caller, "prospects")
        return await self.prospects.list_by_agent(agent_id)

    async def evaluate_application(
        self, application_id: int, caller: Caller
    ) -> EvaluationResult:
        """Run the evaluator over the stored data without changing anything."""
        application = await self._load(application_id)
        prospect = await self.authorize_prospect(application.prospect_id, caller)
        return await self._evaluate(prospect, application.application_data or {})

    async def _evaluate(self, prospect: Prospect, application_data: Dict[str, Any]) -> EvaluationResult:
        # Acquirer-specific data overrides the prospect's wizard data
        form_data = {**(prospect.form_data or {}), **application_data}
        result = evaluate(
            form_data,
            form_data.get("owners") or [],
            await self.signatures.owners_for(prospect.id),
            await self.signatures.signatures_for(prospect.id),
        )
        metrics.record_evaluation(result.is_valid)
        logger.info(
            "application_evaluated",
            prospect_id=prospect.id,
            is_valid=result.is_valid,
            error_count=len(result.errors),
        )
        return result
