"""
Multi-framework compliance runner.

Each framework is evaluated inside its own SAVEPOINT. A framework that cannot
be evaluated produces a ComplianceFailure while its siblings still persist.
"""

import uuid
from typing import Optional

import structlog
from pydantic import BaseModel, ValidationError
from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from compliance_engine.audit.recorder import audit_recorder
from compliance_engine.compliance.frameworks import resolve_adjustment
from compliance_engine.models.enums import AuditAction, ComplianceStatus, RiskLevel
from compliance_engine.models.tables import (
    ComplianceCheck,
    ComplianceFramework,
    Document,
    ExtractedEntitySet,
)
from compliance_engine.observability import metrics
from compliance_engine.pipeline.compliance_scorer import ComplianceSubject, score_compliance
from compliance_engine.pipeline.orchestrator import latest_entity_set
from compliance_engine.schemas.audit import ActorContext

logger = structlog.get_logger(__name__)


# ── Failure codes ────────────────────────────────────────────
INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
FRAMEWORK_NOT_FOUND = "FRAMEWORK_NOT_FOUND"
FRAMEWORK_INACTIVE = "FRAMEWORK_INACTIVE"
INVALID_ADJUSTMENT = "INVALID_ADJUSTMENT"
EVALUATION_ERROR = "EVALUATION_ERROR"

STATUS_RISK_LEVEL = {
    ComplianceStatus.PASSED.value: RiskLevel.LOW,
    ComplianceStatus.MANUAL_REVIEW.value: RiskLevel.MEDIUM,
    ComplianceStatus.FAILED.value: RiskLevel.HIGH,
}


class ComplianceFailure(BaseModel):
    framework_id: str
    error_code: str
    message: str


class _FrameworkSkipped(Exception):
    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(message)


async def _latest_check(
    session: AsyncSession, document_id: uuid.UUID, framework_id: uuid.UUID
) -> Optional[ComplianceCheck]:
    newer = aliased(ComplianceCheck)
    result = await session.execute(
        select(ComplianceCheck)
        .where(
            ComplianceCheck.document_id == document_id,
            ComplianceCheck.framework_id == framework_id,
            ~exists().where(newer.supersedes_id == ComplianceCheck.check_id),
        )
        .order_by(ComplianceCheck.created_at.desc(), ComplianceCheck.check_id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def build_subject(document: Document, entity_set: Optional[ExtractedEntitySet]) -> ComplianceSubject:
    return ComplianceSubject(
        tags=list(document.tags or []),
        ocr_text=document.raw_text or "",
        has_entities=bool(entity_set and entity_set.has_entities()),
        created_at=document.created_at,
        file_size=document.file_size or 0,
    )


async def _evaluate_framework(
    session: AsyncSession,
    document: Document,
    subject: ComplianceSubject,
    framework_id: uuid.UUID,
    actor: ActorContext,
) -> ComplianceCheck:
    framework = await session.get(ComplianceFramework, framework_id)
    if framework is None:
        raise _FrameworkSkipped(FRAMEWORK_NOT_FOUND, f"Framework {framework_id} does not exist")
    if not framework.is_active:
        raise _FrameworkSkipped(FRAMEWORK_INACTIVE, f"Framework {framework.name} is inactive")

    try:
        adjustment = resolve_adjustment(framework.adjustment)
    except ValidationError as e:
        raise _FrameworkSkipped(INVALID_ADJUSTMENT, f"Framework {framework.name}: {e.error_count()} invalid adjustment field(s)")

    result = score_compliance(subject, adjustment)
    previous = await _latest_check(session, document.document_id, framework.framework_id)

    check = ComplianceCheck(
        document_id=document.document_id,
        framework_id=framework.framework_id,
        check_name=f"{framework.name} Compliance Check",
        score=result.score,
        status=result.status.value,
        details={
            "signals": result.signals,
            "adjustment": result.adjustment,
            "raw_score": result.raw_score,
            "requirements": framework.requirements,
        },
        exceptions=[name for name, points in result.signals.items() if points == 0],
        supersedes_id=previous.check_id if previous else None,
    )
    session.add(check)
    await session.flush()

    await audit_recorder.record(
        session,
        table_name="compliance_checks",
        record_id=check.check_id,
        action_type=AuditAction.CREATE,
        actor=actor,
        new_values={
            "framework": framework.name,
            "score": check.score,
            "status": check.status,
            "supersedes_id": check.supersedes_id,
        },
        risk_level=STATUS_RISK_LEVEL[check.status],
        compliance_tags=[framework.name],
        document_id=document.document_id,
    )
    metrics.compliance_checks_total.labels(framework=framework.name, status=check.status).inc()
    return check


async def run_compliance_checks(
    session: AsyncSession,
    document_id: uuid.UUID,
    framework_ids: list[uuid.UUID],
    actor: ActorContext,
) -> dict:
    """
    Evaluate a document against each framework.
    Returns {"checks": [...], "failures": [...]}. Never raises for a
    per-framework problem.
    """
    checks: list[ComplianceCheck] = []
    failures: list[ComplianceFailure] = []

    def fail(framework_id, error_code: str, message: str) -> None:
        failures.append(ComplianceFailure(
            framework_id=str(framework_id), error_code=error_code, message=message,
        ))
        metrics.compliance_failures_total.labels(error_code=error_code).inc()
        logger.warning(
            "compliance_check_failed",
            document_id=str(document_id),
            framework_id=str(framework_id),
            error_code=error_code,
            message=message,
        )

    document = await session.get(Document, document_id)
    if document is None:
        for framework_id in framework_ids:
            fail(framework_id, INSUFFICIENT_DATA, f"Document {document_id} not found")
        return {"checks": checks, "failures": failures}

    entity_set = await latest_entity_set(session, document.document_id)
    subject = build_subject(document, entity_set)

    for framework_id in framework_ids:
        try:
            async with session.begin_nested():
                check = await _evaluate_framework(session, document, subject, framework_id, actor)
            checks.append(check)
        except _FrameworkSkipped as e:
            fail(framework_id, e.error_code, e.message)
        except Exception as e:
            fail(framework_id, EVALUATION_ERROR, str(e))

    logger.info(
        "compliance_checks_completed",
        document_id=str(document_id),
        checks=len(checks),
        failures=len(failures),
    )
    return {"checks": checks, "failures": failures}


async def list_document_checks(
    session: AsyncSession,
    document_id: uuid.UUID,
    limit: int = 50,
    offset: int = 0,
) -> list[ComplianceCheck]:
    """All stored checks for a document, newest first."""
    result = await session.execute(
        select(ComplianceCheck)
        .where(ComplianceCheck.document_id == document_id)
        .order_by(ComplianceCheck.created_at.desc(), ComplianceCheck.check_id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def compliance_summary(session: AsyncSession) -> dict:
    """Average stored check score per framework name."""
    result = await session.execute(
        select(
            ComplianceFramework.name,
            func.avg(ComplianceCheck.score),
            func.count(ComplianceCheck.check_id),
        )
        .select_from(ComplianceCheck)
        .join(ComplianceFramework, ComplianceCheck.framework_id == ComplianceFramework.framework_id)
        .group_by(ComplianceFramework.name)
        .order_by(ComplianceFramework.name)
    )
    frameworks = {
        name: {"average_score": round(float(avg), 2), "check_count": count}
        for name, avg, count in result.all()
    }
    total = sum(f["check_count"] for f in frameworks.values())
    overall = None
    if total:
        overall = round(
            sum(f["average_score"] * f["check_count"] for f in frameworks.values()) / total, 2
        )
    return {"frameworks": frameworks, "overall_average": overall, "total_checks": total}
