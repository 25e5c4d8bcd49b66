"""
/api/v1/documents endpoints.
Handles ingest, reprocessing and the per-document history views.
"""

import uuid

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.compliance.checks import list_document_checks
from compliance_engine.dependencies import get_actor, get_db, get_pipeline, require_user, verify_api_key
from compliance_engine.errors import RecordNotFoundError
from compliance_engine.models.tables import Document
from compliance_engine.pipeline.orchestrator import DocumentPipeline, list_entity_sets
from compliance_engine.review.assessments import list_assessments
from compliance_engine.review.comments import add_review_comment, list_document_comments
from compliance_engine.review.workflow import initialize_review_workflow, list_document_workflows
from compliance_engine.schemas.audit import ActorContext
from compliance_engine.schemas.comments import ReviewCommentCreate, ReviewCommentResponse
from compliance_engine.schemas.compliance import ComplianceCheckResponse
from compliance_engine.schemas.documents import (
    DocumentIn,
    EntitySetResponse,
    PipelineResult,
    ReprocessRequest,
    ReprocessResponse,
)
from compliance_engine.schemas.risk import RiskAssessmentResponse
from compliance_engine.schemas.workflow import WorkflowCreateRequest, WorkflowInstanceResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/documents", tags=["documents"], dependencies=[Depends(verify_api_key)])


async def _require_document(session: AsyncSession, document_id: uuid.UUID) -> Document:
    document = await session.get(Document, document_id)
    if document is None:
        raise RecordNotFoundError(f"Document {document_id} not found")
    return document


@router.post("", response_model=PipelineResult, status_code=status.HTTP_201_CREATED)
async def ingest_document(
    body: DocumentIn,
    actor: ActorContext = Depends(get_actor),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """Store a document and run extraction plus risk scoring on it."""
    summary = await pipeline.ingest(body, actor)
    return PipelineResult(**summary)


@router.get("/{document_id}/entities", response_model=list[EntitySetResponse])
async def get_document_entities(
    document_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
):
    """Every extracted entity set for a document, newest first."""
    await _require_document(session, document_id)
    return await list_entity_sets(session, document_id)


@router.post("/{document_id}/reprocess", response_model=ReprocessResponse)
async def reprocess_document(
    document_id: uuid.UUID,
    body: ReprocessRequest = ReprocessRequest(),
    inline: bool = Query(False, description="Run in the request instead of the worker"),
    actor: ActorContext = Depends(get_actor),
    pipeline: DocumentPipeline = Depends(get_pipeline),
):
    """
    Queue a re-extraction and re-score. Falls back to running inline when the
    queue is unavailable.
    """
    if not inline:
        try:
            from compliance_engine.worker.jobs import enqueue_reprocess
            job_id = enqueue_reprocess(str(document_id), body.signals, actor.user_id)
            return ReprocessResponse(document_id=document_id, mode="queued", job_id=job_id)
        except Exception as enqueue_err:
            logger.warning("enqueue_failed", document_id=str(document_id), error=str(enqueue_err))

    summary = await pipeline.process(document_id, actor=actor, signal_overrides=body.signals)
    return ReprocessResponse(document_id=document_id, mode="inline", result=PipelineResult(**summary))


@router.get("/{document_id}/risk-assessments", response_model=list[RiskAssessmentResponse])
async def get_document_assessments(
    document_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    await _require_document(session, document_id)
    return await list_assessments(session, document_id, limit=limit, offset=offset)


@router.get("/{document_id}/compliance-checks", response_model=list[ComplianceCheckResponse])
async def get_document_checks(
    document_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    await _require_document(session, document_id)
    return await list_document_checks(session, document_id, limit=limit, offset=offset)


@router.post(
    "/{document_id}/workflows",
    response_model=WorkflowInstanceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_document_workflow(
    document_id: uuid.UUID,
    body: WorkflowCreateRequest = WorkflowCreateRequest(),
    actor: ActorContext = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Start the three-step review workflow for a document."""
    return await initialize_review_workflow(session, document_id, actor, assignees=body.assignees)


@router.get("/{document_id}/workflows", response_model=list[WorkflowInstanceResponse])
async def get_document_workflows(
    document_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
):
    await _require_document(session, document_id)
    return await list_document_workflows(session, document_id)


@router.post(
    "/{document_id}/comments",
    response_model=ReviewCommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_document_comment(
    document_id: uuid.UUID,
    body: ReviewCommentCreate,
    actor: ActorContext = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    return await add_review_comment(
        session,
        document_id,
        actor,
        body.comment_text,
        comment_type=body.comment_type,
        priority=body.priority,
        parent_comment_id=body.parent_comment_id,
        tags=body.tags,
    )


@router.get("/{document_id}/comments", response_model=list[ReviewCommentResponse])
async def get_document_comments(
    document_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
):
    """Comments on a document, oldest first."""
    await _require_document(session, document_id)
    return await list_document_comments(session, document_id)
