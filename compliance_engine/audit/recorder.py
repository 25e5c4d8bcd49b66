"""
Audit trail recorder.

Appends one immutable AuditEvent per state-changing action. Recording is
best-effort: a failed write is logged and counted but never raised, so an
audit gap can never block the primary operation.
"""

import json
import time
import uuid
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.models.enums import AuditAction, RiskLevel
from compliance_engine.models.tables import AuditEvent
from compliance_engine.observability import metrics
from compliance_engine.schemas.audit import SYSTEM_ACTOR, ActorContext

logger = structlog.get_logger(__name__)


def generate_request_id() -> str:
    return f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def json_safe(values: Optional[dict]) -> Optional[dict]:
    """Round-trip through JSON so UUIDs, datetimes and Decimals become strings."""
    if values is None:
        return None
    return json.loads(json.dumps(values, default=str))


def diff_fields(old_values: Optional[dict], new_values: Optional[dict]) -> list[str]:
    if not old_values or not new_values:
        return []
    keys = set(old_values) | set(new_values)
    return sorted(k for k in keys if old_values.get(k) != new_values.get(k))


class AuditRecorder:
    """Writes audit events inside a SAVEPOINT so failures stay local."""

    async def record(
        self,
        session: AsyncSession,
        *,
        table_name: str,
        record_id: Any,
        action_type: AuditAction,
        actor: Optional[ActorContext] = None,
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        changed_fields: Optional[list[str]] = None,
        risk_level: RiskLevel = RiskLevel.LOW,
        compliance_tags: Optional[Iterable[str]] = None,
        document_id: Any = None,
    ) -> Optional[AuditEvent]:
        """
        Append one audit event. Returns the event, or None when the write failed.
        """
        actor = actor or SYSTEM_ACTOR
        try:
            old_clean = json_safe(old_values)
            new_clean = json_safe(new_values)
            if changed_fields is None:
                changed_fields = diff_fields(old_clean, new_clean)

            event = AuditEvent(
                request_id=generate_request_id(),
                user_id=actor.user_id,
                ip_address=actor.ip_address,
                user_agent=actor.user_agent,
                session_id=actor.session_id,
                document_id=str(document_id) if document_id is not None else None,
                table_name=table_name,
                record_id=str(record_id),
                action_type=AuditAction(action_type).value,
                old_values=old_clean,
                new_values=new_clean,
                changed_fields=list(changed_fields),
                risk_level=RiskLevel(risk_level).value,
                compliance_tags=list(compliance_tags or []),
            )
            async with session.begin_nested():
                session.add(event)
        except Exception as e:
            logger.error(
                "audit_write_failed",
                table_name=table_name,
                record_id=str(record_id),
                action_type=getattr(action_type, "value", action_type),
                error=str(e),
            )
            metrics.audit_write_failures_total.labels(table_name=table_name).inc()
            return None

        metrics.audit_events_total.labels(
            table_name=table_name, action_type=event.action_type
        ).inc()
        logger.info(
            "audit_event_recorded",
            request_id=event.request_id,
            table_name=table_name,
            record_id=event.record_id,
            action_type=event.action_type,
            risk_level=event.risk_level,
        )
        return event


# Shared instance used by the services
audit_recorder = AuditRecorder()


async def get_record_history(
    session: AsyncSession,
    record_id: Any,
    limit: int = 50,
    offset: int = 0,
) -> list[AuditEvent]:
    """Events for one record, newest first."""
    result = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.record_id == str(record_id))
        .order_by(AuditEvent.created_at.desc(), AuditEvent.event_seq.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_document_history(
    session: AsyncSession,
    document_id: Any,
    limit: int = 50,
    offset: int = 0,
) -> list[AuditEvent]:
    """Every event tagged with a document, newest first."""
    result = await session.execute(
        select(AuditEvent)
        .where(AuditEvent.document_id == str(document_id))
        .order_by(AuditEvent.created_at.desc(), AuditEvent.event_seq.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


def verify_event(event: AuditEvent) -> bool:
    """Recompute the integrity hash; False means the stored row was altered."""
    return event.compute_hash() == event.integrity_hash
