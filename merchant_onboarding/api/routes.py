"""
API routes for the onboarding workflow.
"""
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from merchant_onboarding.core.callers import Caller
from merchant_onboarding.core.environment import EnvironmentConfig, get_environment_resolver
from merchant_onboarding.core.errors import ConflictError, ForbiddenError, NotFoundError
from merchant_onboarding.core.prospects import ProspectStore
from merchant_onboarding.core.signatures import SignatureService
from merchant_onboarding.core.workflow import WorkflowController
from merchant_onboarding.monitoring.health import HealthCheck
from merchant_onboarding.monitoring.metrics import metrics

from .dependencies import (
    get_environment,
    get_prospect_store,
    get_signature_service,
    get_workflow,
    require_admin,
    require_agent_or_admin,
)
from .schemas import (
    ApplicationResponse,
    CreateApplicationRequest,
    CreateProspectRequest,
    EnvironmentResponse,
    FormDataRequest,
    HealthCheckResponse,
    OwnerResponse,
    ProspectResponse,
    RecordSignatureRequest,
    RejectApplicationRequest,
    SaveProgressRequest,
    SetEnvironmentRequest,
    SetEnvironmentResponse,
    SignatureRequestRequest,
    SignatureResponse,
    SignatureStatusResponse,
    SubmitApplicationRequest,
    ValidationResultResponse,
)

logger = structlog.get_logger(__name__)

# Create routers
application_router = APIRouter(prefix="/prospect-applications", tags=["applications"])
prospect_router = APIRouter(prefix="/prospects", tags=["prospects"])
agent_router = APIRouter(prefix="/agents", tags=["agents"])
signature_router = APIRouter(prefix="/signatures", tags=["signatures"])
environment_router = APIRouter(tags=["environment"])
monitoring_router = APIRouter(tags=["monitoring"])

# Initialize services
health_check = HealthCheck()


@application_router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an application",
    description="Create a draft application of a prospect for one acquirer",
)
async def create_application(
    request: CreateApplicationRequest,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.create(
        prospect_id=request.prospect_id,
        acquirer_id=request.acquirer_id,
        template_id=request.template_id,
        caller=caller,
    )


@application_router.get("/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.get(application_id, caller)


@application_router.patch(
    "/{application_id}",
    response_model=ApplicationResponse,
    summary="Save progress",
    description="Autosave application data while the application is editable",
)
async def save_application_progress(
    application_id: int,
    request: SaveProgressRequest,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.save_progress(application_id, caller, request.application_data)


@application_router.get(
    "/{application_id}/validation",
    response_model=ValidationResultResponse,
    summary="Evaluate completeness",
)
async def validate_application(
    application_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.evaluate_application(application_id, caller)


@application_router.post(
    "/{application_id}/start",
    response_model=ApplicationResponse,
    summary="Start an application",
    description="Move a draft application to in_progress",
)
async def start_application(
    application_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.start(application_id, caller)


@application_router.post(
    "/{application_id}/submit",
    response_model=ApplicationResponse,
    summary="Submit an application",
    description="Move an in_progress application to submitted",
)
async def submit_application(
    application_id: int,
    request: Optional[SubmitApplicationRequest] = None,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    application_data = request.application_data if request else None
    return await workflow.submit(application_id, caller, application_data)


@application_router.post(
    "/{application_id}/approve",
    response_model=ApplicationResponse,
    summary="Approve an application",
)
async def approve_application(
    application_id: int,
    caller: Caller = Depends(require_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.approve(application_id, caller)


@application_router.post(
    "/{application_id}/reject",
    response_model=ApplicationResponse,
    summary="Reject an application",
)
async def reject_application(
    application_id: int,
    request: Optional[RejectApplicationRequest] = None,
    caller: Caller = Depends(require_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    reason = request.rejection_reason if request else None
    return await workflow.reject(application_id, caller, reason)


@prospect_router.post(
    "",
    response_model=ProspectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a prospect",
)
async def create_prospect(
    request: CreateProspectRequest,
    caller: Caller = Depends(require_agent_or_admin),
    prospects: ProspectStore = Depends(get_prospect_store),
) -> Any:
    """Agents are always assigned to the prospects they create."""
    if caller.is_admin:
        agent_id = request.agent_id
        if agent_id is not None and await prospects.get_agent(agent_id) is None:
            raise NotFoundError("Agent", agent_id)
    else:
        agent = await prospects.get_agent_by_user(caller.user_id)
        if agent is None:
            raise ForbiddenError("No agent profile for this user")
        agent_id = agent.id

    if await prospects.get_by_email(request.email) is not None:
        raise ConflictError("A prospect with this email already exists")

    prospect = await prospects.create(
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        agent_id=agent_id,
        phone=request.phone,
        notes=request.notes,
    )
    await prospects.db.commit()
    return prospect


@prospect_router.get("/{prospect_id}", response_model=ProspectResponse)
async def get_prospect(
    prospect_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.authorize_prospect(prospect_id, caller)


@prospect_router.put("/{prospect_id}/form-data", response_model=ProspectResponse)
async def update_prospect_form_data(
    prospect_id: int,
    request: FormDataRequest,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    prospect = await workflow.authorize_prospect(prospect_id, caller)
    prospect = await workflow.prospects.update_form_data(
        prospect, request.form_data, request.current_step
    )
    await workflow.db.commit()
    return prospect


@prospect_router.get(
    "/{prospect_id}/applications", response_model=List[ApplicationResponse]
)
async def list_prospect_applications(
    prospect_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.list_for_prospect(prospect_id, caller)


@prospect_router.post(
    "/{prospect_id}/signatures",
    response_model=SignatureResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record an owner signature",
)
async def record_signature(
    prospect_id: int,
    request: RecordSignatureRequest,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    await workflow.authorize_prospect(prospect_id, caller)
    signature = await workflow.signatures.record_signature(
        prospect_id=prospect_id,
        owner_name=request.owner_name,
        owner_email=request.owner_email,
        ownership_percentage=request.ownership_percentage,
        signature=request.signature,
        signature_type=request.signature_type,
    )
    await workflow.db.commit()
    return signature


@prospect_router.post(
    "/{prospect_id}/signature-requests",
    response_model=OwnerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request an owner signature",
)
async def request_signature(
    prospect_id: int,
    request: SignatureRequestRequest,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    await workflow.authorize_prospect(prospect_id, caller)
    owner = await workflow.signatures.request_signature(
        prospect_id=prospect_id,
        owner_name=request.owner_name,
        owner_email=request.owner_email,
        ownership_percentage=request.ownership_percentage,
    )
    await workflow.db.commit()
    return owner


@agent_router.get("/{agent_id}/applications", response_model=List[ApplicationResponse])
async def list_agent_applications(
    agent_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.list_for_agent(agent_id, caller)


@agent_router.get("/{agent_id}/prospects", response_model=List[ProspectResponse])
async def list_agent_prospects(
    agent_id: int,
    caller: Caller = Depends(require_agent_or_admin),
    workflow: WorkflowController = Depends(get_workflow),
) -> Any:
    return await workflow.list_prospects_for_agent(agent_id, caller)


@signature_router.get("/{token}", response_model=SignatureStatusResponse)
async def get_signature_status(
    token: str,
    signatures: SignatureService = Depends(get_signature_service),
) -> Any:
    """Public lookup used by the owner signing page."""
    return await signatures.get_by_token(token)


def _environment_body(env_config: EnvironmentConfig) -> Dict[str, Any]:
    body = env_config.to_dict()
    body["globalEnvironment"] = get_environment_resolver().global_environment.value
    return body


@environment_router.get("/environment", response_model=EnvironmentResponse)
async def get_current_environment(
    env_config: EnvironmentConfig = Depends(get_environment),
) -> Any:
    """Environment the current request resolved to."""
    return _environment_body(env_config)


@environment_router.get(
    "/admin/db-environment",
    response_model=EnvironmentResponse,
    include_in_schema=False,
)
async def get_current_environment_legacy(
    env_config: EnvironmentConfig = Depends(get_environment),
) -> Any:
    return _environment_body(env_config)


@environment_router.post(
    "/admin/environment",
    response_model=SetEnvironmentResponse,
    summary="Switch the global database environment",
    description="Select development or test for non-production hostnames",
)
async def set_global_environment(
    request: SetEnvironmentRequest,
    caller: Caller = Depends(require_admin),
    env_config: EnvironmentConfig = Depends(get_environment),
) -> Any:
    resolver = get_environment_resolver()
    environment = resolver.validate(request.environment)

    if env_config.is_production:
        logger.warning(
            "environment_change_blocked_on_production",
            requested=environment.value,
            user_id=caller.user_id,
        )
        raise ForbiddenError("Database environment cannot be changed on the production host")

    resolver.set_global_environment(environment)
    metrics.record_environment_change(environment.value)

    return {
        "environment": environment.value,
        "globalEnvironment": environment.value,
        "message": f"Database environment switched to {environment.value}",
    }


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check database connectivity of every configured environment",
)
async def health() -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    try:
        return await health_check.check_all()
    except Exception as e:
        logger.error("health_check_error", error=str(e))
        return {
            "status": "unhealthy",
            "checks": {"error": "health check failed"},
        }


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
)
async def liveness() -> Dict[str, Any]:
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
)
async def readiness() -> Dict[str, Any]:
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
