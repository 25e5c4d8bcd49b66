"""
Reviewer comments on a document. Comments are append-only and listed oldest first.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.audit.recorder import audit_recorder
from compliance_engine.errors import RecordNotFoundError
from compliance_engine.models.enums import AuditAction, CommentPriority, CommentType, RiskLevel
from compliance_engine.models.tables import Document, ReviewComment
from compliance_engine.observability import metrics
from compliance_engine.schemas.audit import ActorContext

logger = structlog.get_logger(__name__)


async def add_review_comment(
    session: AsyncSession,
    document_id: uuid.UUID,
    actor: ActorContext,
    comment_text: str,
    comment_type: CommentType = CommentType.GENERAL,
    priority: CommentPriority = CommentPriority.LOW,
    parent_comment_id: Optional[uuid.UUID] = None,
    tags: Optional[list[str]] = None,
) -> ReviewComment:
    """
    Attach a comment to a document. Urgent comments are audited at HIGH risk.
    A reply's parent must belong to the same document.
    """
    document = await session.get(Document, document_id)
    if document is None:
        raise RecordNotFoundError(f"Document {document_id} not found")

    if parent_comment_id is not None:
        parent = await session.get(ReviewComment, parent_comment_id)
        if parent is None or parent.document_id != document.document_id:
            raise RecordNotFoundError(
                f"Comment {parent_comment_id} not found on document {document_id}"
            )

    comment_type = CommentType(comment_type)
    priority = CommentPriority(priority)
    comment = ReviewComment(
        document_id=document.document_id,
        parent_comment_id=parent_comment_id,
        user_id=actor.user_id,
        comment_text=comment_text,
        comment_type=comment_type.value,
        priority=priority.value,
        tags=list(tags or []),
    )
    session.add(comment)
    await session.flush()

    await audit_recorder.record(
        session,
        table_name="review_comments",
        record_id=comment.comment_id,
        action_type=AuditAction.CREATE,
        actor=actor,
        new_values={
            "comment_text": comment.comment_text,
            "comment_type": comment.comment_type,
            "priority": comment.priority,
            "parent_comment_id": comment.parent_comment_id,
            "tags": comment.tags,
        },
        risk_level=RiskLevel.HIGH if priority == CommentPriority.URGENT else RiskLevel.LOW,
        document_id=document.document_id,
    )
    metrics.review_comments_total.labels(comment_type=comment.comment_type, priority=comment.priority).inc()
    logger.info(
        "review_comment_added",
        comment_id=str(comment.comment_id),
        document_id=str(document.document_id),
        comment_type=comment.comment_type,
        priority=comment.priority,
        user_id=actor.user_id,
    )
    return comment


async def list_document_comments(session: AsyncSession, document_id: uuid.UUID) -> list[ReviewComment]:
    result = await session.execute(
        select(ReviewComment)
        .where(ReviewComment.document_id == document_id)
        .order_by(ReviewComment.created_at, ReviewComment.comment_id)
    )
    return list(result.scalars().all())
