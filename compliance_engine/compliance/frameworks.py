"""
Compliance framework registry.

Each framework carries a declarative `adjustment` config that resolves to a
scoring strategy (none / fixed_bonus / tag_penalty). Scoring never looks at
the framework's display name.
"""

from typing import Optional

import structlog
from pydantic import TypeAdapter
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.audit.recorder import audit_recorder
from compliance_engine.models.enums import AuditAction, RiskLevel
from compliance_engine.models.tables import ComplianceFramework
from compliance_engine.pipeline.compliance_scorer import FrameworkAdjustment, NoAdjustment
from compliance_engine.schemas.audit import ActorContext

logger = structlog.get_logger(__name__)

_adjustment_adapter = TypeAdapter(FrameworkAdjustment)


DEFAULT_FRAMEWORKS = [
    {
        "name": "SOX",
        "description": "Sarbanes-Oxley Act Compliance",
        "requirements": {
            "data_retention": "7_years",
            "audit_trail": "required",
            "digital_signatures": "required",
            "access_control": "required",
        },
        # Audit trail is always kept by this engine
        "adjustment": {"kind": "fixed_bonus", "points": 10},
    },
    {
        "name": "PCAOB",
        "description": "Public Company Accounting Oversight Board",
        "requirements": {
            "workpaper_retention": "7_years",
            "review_documentation": "required",
            "independence_verification": "required",
            "quality_control": "required",
        },
        "adjustment": {"kind": "none"},
    },
    {
        "name": "GDPR",
        "description": "General Data Protection Regulation",
        "requirements": {
            "consent_tracking": "required",
            "data_portability": "required",
            "right_to_erasure": "required",
            "privacy_by_design": "required",
        },
        "adjustment": {"kind": "tag_penalty", "tag": "personal_data", "points": 5},
    },
    {
        "name": "ISO_27001",
        "description": "Information Security Management",
        "requirements": {
            "access_control": "required",
            "encryption": "required",
            "audit_logging": "required",
            "incident_management": "required",
        },
        "adjustment": {"kind": "none"},
    },
]


def resolve_adjustment(config: Optional[dict]) -> FrameworkAdjustment:
    """Turn a stored adjustment config into a strategy. Raises on invalid config."""
    if not config:
        return NoAdjustment()
    return _adjustment_adapter.validate_python(config)


def framework_snapshot(framework: ComplianceFramework) -> dict:
    return {
        "framework_id": str(framework.framework_id),
        "name": framework.name,
        "description": framework.description,
        "requirements": framework.requirements,
        "adjustment": framework.adjustment,
        "is_active": framework.is_active,
    }


async def list_frameworks(session: AsyncSession, active_only: bool = True) -> list[ComplianceFramework]:
    query = select(ComplianceFramework).order_by(ComplianceFramework.name)
    if active_only:
        query = query.where(ComplianceFramework.is_active.is_(True))
    result = await session.execute(query)
    return list(result.scalars().all())


async def create_framework(
    session: AsyncSession,
    name: str,
    actor: ActorContext,
    description: Optional[str] = None,
    requirements: Optional[dict] = None,
    adjustment: Optional[dict] = None,
    is_active: bool = True,
) -> ComplianceFramework:
    """Create a framework. The adjustment config is validated before storing."""
    strategy = resolve_adjustment(adjustment)
    framework = ComplianceFramework(
        name=name,
        description=description,
        requirements={str(k): str(v) for k, v in (requirements or {}).items()},
        adjustment=strategy.model_dump(),
        is_active=is_active,
    )
    session.add(framework)
    await session.flush()

    await audit_recorder.record(
        session,
        table_name="compliance_frameworks",
        record_id=framework.framework_id,
        action_type=AuditAction.CREATE,
        actor=actor,
        new_values=framework_snapshot(framework),
        risk_level=RiskLevel.MEDIUM,
        compliance_tags=[name],
    )
    logger.info("framework_created", framework_id=str(framework.framework_id), name=name)
    return framework


async def seed_default_frameworks(session: AsyncSession, actor: ActorContext) -> list[ComplianceFramework]:
    """Upsert the built-in frameworks by name."""
    seeded = []
    for definition in DEFAULT_FRAMEWORKS:
        result = await session.execute(
            select(ComplianceFramework).where(ComplianceFramework.name == definition["name"])
        )
        existing = result.scalar_one_or_none()

        if existing is None:
            seeded.append(await create_framework(
                session,
                name=definition["name"],
                actor=actor,
                description=definition["description"],
                requirements=definition["requirements"],
                adjustment=definition["adjustment"],
            ))
            continue

        before = framework_snapshot(existing)
        existing.description = definition["description"]
        existing.requirements = dict(definition["requirements"])
        existing.adjustment = dict(definition["adjustment"])
        after = framework_snapshot(existing)
        if before != after:
            await session.flush()
            await audit_recorder.record(
                session,
                table_name="compliance_frameworks",
                record_id=existing.framework_id,
                action_type=AuditAction.UPDATE,
                actor=actor,
                old_values=before,
                new_values=after,
                risk_level=RiskLevel.MEDIUM,
                compliance_tags=[existing.name],
            )
        seeded.append(existing)

    logger.info("frameworks_seeded", count=len(seeded))
    return seeded
