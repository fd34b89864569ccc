"""
Pydantic schemas for API request/response models.

JSON bodies use camelCase keys; Python attributes stay snake_case.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema with camelCase aliases and ORM attribute loading."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CreateApplicationRequest(CamelModel):
    """Request schema for creating an application."""

    prospect_id: int = Field(..., gt=0, description="Prospect identifier")
    acquirer_id: int = Field(..., gt=0, description="Acquirer identifier")
    template_id: int = Field(..., gt=0, description="Acquirer application template")

    model_config = ConfigDict(
        json_schema_extra={"examples": [{"prospectId": 12, "acquirerId": 1, "templateId": 3}]}
    )


class SubmitApplicationRequest(CamelModel):
    """Request schema for submitting an application."""

    application_data: Optional[Dict[str, Any]] = Field(
        default=None, description="Replaces the stored application data when provided"
    )


class SaveProgressRequest(CamelModel):
    """Request schema for autosaving wizard data."""

    application_data: Dict[str, Any] = Field(..., description="Application data")


class RejectApplicationRequest(CamelModel):
    """Request schema for rejecting an application."""

    rejection_reason: Optional[str] = Field(default=None, max_length=2000)


class ApplicationResponse(CamelModel):
    """Response schema for a prospect application."""

    id: int
    prospect_id: int
    acquirer_id: int
    template_id: int
    template_version: str
    status: str
    application_data: Dict[str, Any] = Field(default_factory=dict)
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    generated_pdf_path: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class MissingSignature(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    percentage: float


class ValidationResultResponse(CamelModel):
    """Completion/validation result for an application."""

    is_valid: bool
    errors: List[str]
    missing_signatures: List[MissingSignature]


class CreateProspectRequest(CamelModel):
    """Request schema for creating a prospect."""

    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = None
    agent_id: Optional[int] = Field(
        default=None, description="Assigned agent (admins only; agents are assigned to themselves)"
    )


class ProspectResponse(CamelModel):
    """Response schema for a prospect."""

    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    agent_id: Optional[int] = None
    status: str
    form_data: Optional[Dict[str, Any]] = None
    current_step: int
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class FormDataRequest(CamelModel):
    """Request schema for replacing a prospect's wizard form data."""

    form_data: Dict[str, Any]
    current_step: Optional[int] = Field(default=None, ge=0)


class SignatureRequestRequest(CamelModel):
    """Request schema for asking an owner to sign."""

    owner_name: str = Field(..., min_length=1, max_length=255)
    owner_email: str = Field(..., min_length=3, max_length=255)
    ownership_percentage: Union[Decimal, str] = Field(..., description="Declared ownership share")


class RecordSignatureRequest(SignatureRequestRequest):
    """Request schema for an inline signature."""

    signature: str = Field(..., description="Drawn image data or typed name")
    signature_type: str = Field(..., description="draw or type")


class OwnerResponse(CamelModel):
    """Response schema for a beneficial owner."""

    id: int
    prospect_id: int
    name: str
    email: str
    ownership_percentage: float
    signature_token: Optional[str] = None
    email_sent: bool
    email_sent_at: Optional[datetime] = None


class SignatureResponse(CamelModel):
    """Response schema for a stored signature."""

    id: int
    prospect_id: int
    owner_id: int
    signature_token: str
    signature_type: str
    submitted_at: datetime


class SignatureStatusResponse(CamelModel):
    """Public signature status."""

    prospect_id: int
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None
    signed: bool
    signature_type: Optional[str] = None
    submitted_at: Optional[datetime] = None


class EnvironmentResponse(CamelModel):
    """Environment the request resolved to."""

    environment: str
    is_production: bool
    url: str
    global_environment: str


class SetEnvironmentRequest(CamelModel):
    environment: str = Field(..., description="development or test")


class SetEnvironmentResponse(CamelModel):
    environment: str
    global_environment: str
    message: str


class HealthCheckResponse(BaseModel):
    """Response schema for health check."""

    status: str = Field(..., description="Overall health status")
    message: Optional[str] = Field(default=None, description="Status message")
    checks: Optional[Dict[str, Any]] = Field(default=None, description="Individual checks")
