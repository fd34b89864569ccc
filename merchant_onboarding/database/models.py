"""SQLAlchemy database models for merchant onboarding."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


APPLICATION_STATUSES = ("draft", "in_progress", "submitted", "approved", "rejected")


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class User(Base):
    """
    Authenticated users.

    Roles decide admin vs agent access to the workflow.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    roles: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=lambda: ["merchant"])
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, roles={self.roles}, status={self.status})>"


class Agent(Base):
    """Sales agents; each one is linked to exactly one user."""

    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="RESTRICT"), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    territory: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, user_id={self.user_id})>"


class Prospect(Base):
    """
    Business leads being onboarded.

    form_data accumulates the wizard payload across steps.
    """

    __tablename__ = "merchant_prospects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    agent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("agents.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    validation_token: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    application_started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    form_data: Mapped[Dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def __repr__(self) -> str:
        return f"<Prospect(id={self.id}, email={self.email}, agent_id={self.agent_id})>"


class Acquirer(Base):
    """Payment processors that require their own application forms."""

    __tablename__ = "acquirers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class AcquirerApplicationTemplate(Base):
    """Field configuration for one acquirer's application form."""

    __tablename__ = "acquirer_application_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    acquirer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("acquirers.id", ondelete="CASCADE"), nullable=False
    )
    template_name: Mapped[str] = mapped_column(String(255), nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False, default="1.0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    field_configuration: Mapped[Dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    required_fields: Mapped[List[str]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "acquirer_id", "template_name", "version", name="uq_acquirer_template_version"
        ),
    )


class ProspectApplication(Base):
    """
    Acquirer-specific application for a prospect.

    Status only moves forward: draft -> in_progress -> submitted -> approved|rejected.
    The check constraints hold the timestamp invariants at the database level.
    """

    __tablename__ = "prospect_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prospect_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("merchant_prospects.id", ondelete="CASCADE"), nullable=False
    )
    acquirer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("acquirers.id"), nullable=False
    )
    template_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("acquirer_application_templates.id"), nullable=False
    )
    template_version: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft", index=True)
    application_data: Mapped[Dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_pdf_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("prospect_id", "acquirer_id", name="uq_prospect_acquirer"),
        CheckConstraint(
            "status IN ('draft', 'in_progress', 'submitted', 'approved', 'rejected')",
            name="valid_application_status",
        ),
        CheckConstraint(
            "NOT (approved_at IS NOT NULL AND rejected_at IS NOT NULL)",
            name="single_decision",
        ),
        CheckConstraint(
            "(approved_at IS NULL AND rejected_at IS NULL) OR submitted_at IS NOT NULL",
            name="decision_after_submission",
        ),
        Index("idx_prospect_applications_prospect", "prospect_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProspectApplication(id={self.id}, prospect_id={self.prospect_id}, "
            f"status={self.status})>"
        )


class ProspectOwner(Base):
    """Beneficial owner of a prospect's business."""

    __tablename__ = "prospect_owners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prospect_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("merchant_prospects.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    ownership_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    signature_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (Index("idx_prospect_owners_prospect_email", "prospect_id", "email"),)


class ProspectSignature(Base):
    """
    Signature artifact for one owner.

    Immutable once written; re-signing adds a new row.
    """

    __tablename__ = "prospect_signatures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prospect_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("merchant_prospects.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("prospect_owners.id", ondelete="CASCADE"), nullable=False, index=True
    )
    signature_token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    signature: Mapped[str] = mapped_column(Text, nullable=False)
    signature_type: Mapped[str] = mapped_column(String(20), nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        CheckConstraint("signature_type IN ('draw', 'type')", name="valid_signature_type"),
    )


class OutboxEvent(Base):
    """
    Transactional outbox events table.

    Notification events are written in the same transaction as the workflow
    change, then published asynchronously by a background worker.
    """

    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    aggregate_id: Mapped[int] = mapped_column(Integer, nullable=False)
    aggregate_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "idx_outbox_unpublished",
            "published",
            "created_at",
            postgresql_where=text("NOT published"),
        ),
        Index("idx_outbox_aggregate", "aggregate_id", "aggregate_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<OutboxEvent(id={self.id}, type={self.event_type}, "
            f"published={self.published})>"
        )
