"""
/api/v1/audit endpoints: read-only access to the audit trail.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.audit.recorder import get_document_history, get_record_history, verify_event
from compliance_engine.dependencies import get_db, verify_api_key
from compliance_engine.schemas.audit import AuditEventResponse, AuditTrailResponse

router = APIRouter(prefix="/api/v1/audit", tags=["audit"], dependencies=[Depends(verify_api_key)])


def _trail(record_id: str, events: list, limit: int, offset: int) -> AuditTrailResponse:
    return AuditTrailResponse(
        record_id=record_id,
        events=[
            AuditEventResponse.model_validate(e).model_copy(update={"integrity_verified": verify_event(e)})
            for e in events
        ],
        limit=limit,
        offset=offset,
    )


@router.get("/records/{record_id}", response_model=AuditTrailResponse)
async def record_history(
    record_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    """Audit events for one record, newest first."""
    events = await get_record_history(session, record_id, limit=limit, offset=offset)
    return _trail(record_id, events, limit, offset)


@router.get("/documents/{document_id}", response_model=AuditTrailResponse)
async def document_history(
    document_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    """Every audit event tagged with a document, newest first."""
    events = await get_document_history(session, document_id, limit=limit, offset=offset)
    return _trail(document_id, events, limit, offset)
