"""
/api/v1/compliance endpoints: framework registry, check runs and summary.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.compliance.checks import compliance_summary, run_compliance_checks
from compliance_engine.compliance.frameworks import (
    create_framework,
    list_frameworks,
    seed_default_frameworks,
)
from compliance_engine.dependencies import get_actor, get_db, require_user, verify_api_key
from compliance_engine.errors import DuplicateRecordError
from compliance_engine.models.tables import ComplianceFramework
from compliance_engine.schemas.audit import ActorContext
from compliance_engine.schemas.compliance import (
    ComplianceCheckRequest,
    ComplianceCheckResponse,
    ComplianceRunResponse,
    ComplianceSummaryResponse,
    FrameworkCreate,
    FrameworkResponse,
)

router = APIRouter(prefix="/api/v1/compliance", tags=["compliance"], dependencies=[Depends(verify_api_key)])


@router.get("/frameworks", response_model=list[FrameworkResponse])
async def get_frameworks(
    include_inactive: bool = Query(False),
    session: AsyncSession = Depends(get_db),
):
    return await list_frameworks(session, active_only=not include_inactive)


@router.post("/frameworks", response_model=FrameworkResponse, status_code=status.HTTP_201_CREATED)
async def post_framework(
    body: FrameworkCreate,
    actor: ActorContext = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    existing = await session.execute(
        select(ComplianceFramework.framework_id).where(ComplianceFramework.name == body.name)
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateRecordError(f"Framework {body.name} already exists")

    return await create_framework(
        session,
        name=body.name,
        actor=actor,
        description=body.description,
        requirements=body.requirements,
        adjustment=body.adjustment.model_dump(),
        is_active=body.is_active,
    )


@router.post("/frameworks/seed", response_model=list[FrameworkResponse])
async def seed_frameworks(
    actor: ActorContext = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Create or refresh SOX, PCAOB, GDPR and ISO_27001."""
    return await seed_default_frameworks(session, actor)


@router.post("/checks", response_model=ComplianceRunResponse)
async def post_checks(
    body: ComplianceCheckRequest,
    actor: ActorContext = Depends(get_actor),
    session: AsyncSession = Depends(get_db),
):
    """
    Evaluate a document against the given frameworks (all active ones when
    none are named). Partial results come back alongside per-framework failures.
    """
    framework_ids = body.framework_ids
    if not framework_ids:
        framework_ids = [f.framework_id for f in await list_frameworks(session, active_only=True)]

    outcome = await run_compliance_checks(session, body.document_id, framework_ids, actor)
    return ComplianceRunResponse(
        checks=[ComplianceCheckResponse.model_validate(c) for c in outcome["checks"]],
        failures=[f.model_dump() for f in outcome["failures"]],
    )


@router.get("/summary", response_model=ComplianceSummaryResponse)
async def get_summary(session: AsyncSession = Depends(get_db)):
    return await compliance_summary(session)
