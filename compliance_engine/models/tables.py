"""
SQLAlchemy ORM models.
History tables are append-only: recomputation writes a new row pointing at the
row it replaces through `supersedes_id`.
"""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    event,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_engine.models.database import Base


JSONType = JSON().with_variant(JSONB, "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def canonical_timestamp(value: Optional[datetime]) -> Optional[str]:
    # Naive values are UTC (SQLite drops the offset on read)
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="microseconds")


# ────────────────────────────────────────────────────────────
# DOCUMENTS
# ────────────────────────────────────────────────────────────
class Document(Base):
    __tablename__ = "documents"

    document_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    raw_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    mime_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    # Supplied by the upstream ingest step; may legitimately be missing
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ingested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    entity_sets = relationship("ExtractedEntitySet", back_populates="document")
    risk_assessments = relationship("RiskAssessment", back_populates="document")
    compliance_checks = relationship("ComplianceCheck", back_populates="document")

    __table_args__ = (
        Index("idx_documents_ingested", "ingested_at"),
    )


# ────────────────────────────────────────────────────────────
# EXTRACTED ENTITY SETS
# ────────────────────────────────────────────────────────────
class ExtractedEntitySet(Base):
    __tablename__ = "extracted_entity_sets"

    entity_set_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.document_id"), nullable=False
    )
    amounts: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    dates: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    account_numbers: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    entity_names: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    tax_ids: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    overall_confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    validation_status: Mapped[str] = mapped_column(String(20), nullable=False)
    engine_version: Mapped[str] = mapped_column(Text, nullable=False)
    supersedes_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("extracted_entity_sets.entity_set_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    document = relationship("Document", back_populates="entity_sets")

    __table_args__ = (
        Index("idx_entity_sets_doc", "document_id", "created_at"),
    )

    def has_entities(self) -> bool:
        return any((self.amounts, self.dates, self.account_numbers, self.entity_names, self.tax_ids))


# ────────────────────────────────────────────────────────────
# RISK ASSESSMENTS
# ────────────────────────────────────────────────────────────
class RiskAssessment(Base):
    __tablename__ = "risk_assessments"

    assessment_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.document_id"), nullable=False
    )
    entity_set_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("extracted_entity_sets.entity_set_id"), nullable=True
    )
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    risk_category: Mapped[str] = mapped_column(String(20), nullable=False)
    factors: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    signals: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    anomalies: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    ai_confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    human_review_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supersedes_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("risk_assessments.assessment_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    document = relationship("Document", back_populates="risk_assessments")

    __table_args__ = (
        Index("idx_risk_doc", "document_id", "created_at"),
        Index("idx_risk_status", "status"),
    )


# ────────────────────────────────────────────────────────────
# COMPLIANCE FRAMEWORKS
# ────────────────────────────────────────────────────────────
class ComplianceFramework(Base):
    __tablename__ = "compliance_frameworks"

    framework_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    requirements: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    # Declarative score adjustment, see compliance.frameworks.resolve_adjustment
    adjustment: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


# ────────────────────────────────────────────────────────────
# COMPLIANCE CHECKS
# ────────────────────────────────────────────────────────────
class ComplianceCheck(Base):
    __tablename__ = "compliance_checks"

    check_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.document_id"), nullable=False
    )
    framework_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("compliance_frameworks.framework_id"), nullable=False
    )
    check_name: Mapped[str] = mapped_column(Text, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    exceptions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    reviewed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    supersedes_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("compliance_checks.check_id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    document = relationship("Document", back_populates="compliance_checks")
    framework = relationship("ComplianceFramework")

    __table_args__ = (
        Index("idx_checks_doc_framework", "document_id", "framework_id", "created_at"),
    )


# ────────────────────────────────────────────────────────────
# AUDIT TRAIL
# ────────────────────────────────────────────────────────────
class AuditEvent(Base):
    """Append-only. Guards below refuse ORM updates and deletes."""

    __tablename__ = "audit_trail"

    event_seq: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    session_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    document_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    table_name: Mapped[str] = mapped_column(String(64), nullable=False)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(20), nullable=False)
    old_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    new_values: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    changed_fields: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    risk_level: Mapped[str] = mapped_column(String(10), nullable=False, default="LOW")
    compliance_tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    integrity_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_audit_record", "record_id", "created_at"),
        Index("idx_audit_document", "document_id", "created_at"),
        Index("idx_audit_table", "table_name"),
    )

    def hash_payload(self) -> dict:
        """Fields covered by the integrity hash."""
        return {
            "request_id": self.request_id,
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "session_id": self.session_id,
            "document_id": self.document_id,
            "table_name": self.table_name,
            "record_id": self.record_id,
            "action_type": self.action_type,
            "old_values": self.old_values,
            "new_values": self.new_values,
            "changed_fields": self.changed_fields or [],
            "risk_level": self.risk_level,
            "compliance_tags": self.compliance_tags or [],
            "created_at": canonical_timestamp(self.created_at),
        }

    def compute_hash(self) -> str:
        canonical = json.dumps(self.hash_payload(), sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class AuditImmutableError(Exception):
    """Raised when code attempts to modify or delete a written audit event."""


@event.listens_for(AuditEvent, "before_insert")
def _seal_audit_event(mapper, connection, target):
    if target.created_at is None:
        target.created_at = utcnow()
    target.integrity_hash = target.compute_hash()


@event.listens_for(AuditEvent, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise AuditImmutableError(f"audit event {target.request_id} is append-only")


@event.listens_for(AuditEvent, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise AuditImmutableError(f"audit event {target.request_id} cannot be deleted")


# ────────────────────────────────────────────────────────────
# WORKFLOWS
# ────────────────────────────────────────────────────────────
class WorkflowInstance(Base):
    __tablename__ = "workflow_instances"

    instance_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.document_id"), nullable=False
    )
    workflow_name: Mapped[str] = mapped_column(Text, nullable=False)
    initiated_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    current_step: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    steps = relationship(
        "WorkflowStep",
        back_populates="instance",
        order_by="WorkflowStep.step_number",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_workflow_doc", "document_id"),
    )


class WorkflowStep(Base):
    __tablename__ = "workflow_steps"

    step_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    instance_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflow_instances.instance_id", ondelete="CASCADE"), nullable=False
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    step_name: Mapped[str] = mapped_column(Text, nullable=False)
    action_required: Mapped[str] = mapped_column(Text, nullable=False, default="")
    assigned_to: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    assigned_role: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    completed_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    instance = relationship("WorkflowInstance", back_populates="steps")

    __table_args__ = (
        Index("idx_steps_instance", "instance_id", "step_number"),
    )


# ────────────────────────────────────────────────────────────
# REVIEW COMMENTS
# ────────────────────────────────────────────────────────────
class ReviewComment(Base):
    __tablename__ = "review_comments"

    comment_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("documents.document_id"), nullable=False
    )
    parent_comment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("review_comments.comment_id"), nullable=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comment_text: Mapped[str] = mapped_column(Text, nullable=False)
    comment_type: Mapped[str] = mapped_column(String(20), nullable=False, default="GENERAL")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="LOW")
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_comments_doc", "document_id", "created_at"),
    )
