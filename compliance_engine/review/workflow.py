"""
Workflow step gate.

Steps move PENDING -> IN_PROGRESS -> COMPLETED, with REJECTED / SKIPPED as
side exits from either non-terminal state. Only the assigned user or a holder
of the assigned role may move a step. Denied attempts are audited.
"""

import uuid
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from compliance_engine.audit.recorder import audit_recorder
from compliance_engine.config import settings
from compliance_engine.errors import (
    InvalidTransitionError,
    RecordNotFoundError,
    WorkflowAuthorizationError,
)
from compliance_engine.models.enums import AuditAction, RiskLevel, StepStatus, WorkflowStatus
from compliance_engine.models.tables import Document, WorkflowInstance, WorkflowStep, utcnow
from compliance_engine.observability import metrics
from compliance_engine.schemas.audit import ActorContext

logger = structlog.get_logger(__name__)


ALLOWED_TRANSITIONS = {
    StepStatus.PENDING: {StepStatus.IN_PROGRESS, StepStatus.REJECTED, StepStatus.SKIPPED},
    StepStatus.IN_PROGRESS: {StepStatus.COMPLETED, StepStatus.REJECTED, StepStatus.SKIPPED},
    StepStatus.COMPLETED: set(),
    StepStatus.REJECTED: set(),
    StepStatus.SKIPPED: set(),
}

TERMINAL_STEP_STATUSES = {StepStatus.COMPLETED, StepStatus.REJECTED, StepStatus.SKIPPED}
TERMINAL_INSTANCE_STATUSES = {
    WorkflowStatus.COMPLETED.value,
    WorkflowStatus.REJECTED.value,
    WorkflowStatus.CANCELLED.value,
}

DEFAULT_REVIEW_WORKFLOW = "default-audit-workflow"

# (name, action required, role, days until due)
DEFAULT_REVIEW_STEPS = [
    ("Initial Review", "Review document for completeness and accuracy", "reviewer", 2),
    ("Risk Assessment", "Perform risk analysis and flag any concerns", "risk_analyst", 4),
    ("Senior Partner Approval", "Final approval and sign-off", "senior_partner", 7),
]


def is_authorized(step: WorkflowStep, actor: ActorContext) -> bool:
    if actor.user_id and step.assigned_to and actor.user_id == step.assigned_to:
        return True
    if actor.role and step.assigned_role and actor.role == step.assigned_role:
        return True
    return False


def _step_snapshot(step: WorkflowStep) -> dict:
    return {
        "status": step.status,
        "comments": step.comments,
        "completed_by": step.completed_by,
        "started_at": step.started_at,
        "completed_at": step.completed_at,
    }


async def _load_instance(session: AsyncSession, instance_id: uuid.UUID) -> Optional[WorkflowInstance]:
    result = await session.execute(
        select(WorkflowInstance)
        .options(selectinload(WorkflowInstance.steps))
        .where(WorkflowInstance.instance_id == instance_id)
    )
    return result.scalar_one_or_none()


async def initialize_review_workflow(
    session: AsyncSession,
    document_id: uuid.UUID,
    actor: ActorContext,
    assignees: Optional[dict[int, str]] = None,
) -> WorkflowInstance:
    """
    Create the three-step review workflow for a document.
    `assignees` optionally maps step_number -> user id.
    """
    document = await session.get(Document, document_id)
    if document is None:
        raise RecordNotFoundError(f"Document {document_id} not found")

    assignees = assignees or {}
    now = utcnow()
    instance = WorkflowInstance(
        document_id=document.document_id,
        workflow_name=DEFAULT_REVIEW_WORKFLOW,
        initiated_by=actor.user_id,
        current_step=1,
        status=WorkflowStatus.PENDING.value,
        due_date=now + timedelta(days=settings.WORKFLOW_DUE_DAYS),
    )
    for number, (name, action, role, days) in enumerate(DEFAULT_REVIEW_STEPS, start=1):
        instance.steps.append(WorkflowStep(
            step_number=number,
            step_name=name,
            action_required=action,
            assigned_role=role,
            assigned_to=assignees.get(number),
            status=StepStatus.PENDING.value,
            due_date=now + timedelta(days=days),
        ))
    session.add(instance)
    await session.flush()

    await audit_recorder.record(
        session,
        table_name="workflow_instances",
        record_id=instance.instance_id,
        action_type=AuditAction.CREATE,
        actor=actor,
        new_values={
            "workflow_name": instance.workflow_name,
            "status": instance.status,
            "steps": [s.step_name for s in instance.steps],
            "due_date": instance.due_date,
        },
        document_id=document.document_id,
    )
    logger.info(
        "workflow_initialized",
        instance_id=str(instance.instance_id),
        document_id=str(document.document_id),
        steps=len(instance.steps),
    )
    return instance


async def get_workflow_steps(session: AsyncSession, instance_id: uuid.UUID) -> list[WorkflowStep]:
    instance = await _load_instance(session, instance_id)
    if instance is None:
        raise RecordNotFoundError(f"Workflow instance {instance_id} not found")
    return list(instance.steps)


async def list_document_workflows(session: AsyncSession, document_id: uuid.UUID) -> list[WorkflowInstance]:
    result = await session.execute(
        select(WorkflowInstance)
        .options(selectinload(WorkflowInstance.steps))
        .where(WorkflowInstance.document_id == document_id)
        .order_by(WorkflowInstance.created_at.desc())
    )
    return list(result.scalars().all())


async def _record_denial(
    session: AsyncSession,
    step: WorkflowStep,
    instance: WorkflowInstance,
    target: StepStatus,
    actor: ActorContext,
) -> None:
    """Record and commit the denial in a separate session; the caller's transaction is untouched."""
    async with AsyncSession(session.bind, expire_on_commit=False) as audit_session:
        event = await audit_recorder.record(
            audit_session,
            table_name="workflow_steps",
            record_id=step.step_id,
            action_type=AuditAction.REJECT,
            actor=actor,
            old_values={"status": step.status},
            new_values={
                "attempted_status": target.value,
                "assigned_to": step.assigned_to,
                "assigned_role": step.assigned_role,
                "actor_role": actor.role,
                "outcome": "denied",
            },
            changed_fields=[],
            risk_level=RiskLevel.HIGH,
            document_id=instance.document_id,
        )
        if event is not None:
            try:
                await audit_session.commit()
            except Exception as e:
                await audit_session.rollback()
                logger.error(
                    "audit_write_failed",
                    table_name="workflow_steps",
                    record_id=str(step.step_id),
                    action_type=AuditAction.REJECT.value,
                    error=str(e),
                )
                metrics.audit_write_failures_total.labels(table_name="workflow_steps").inc()

    metrics.workflow_denials_total.inc()
    logger.warning(
        "workflow_transition_denied",
        step_id=str(step.step_id),
        user_id=actor.user_id,
        role=actor.role,
        assigned_to=step.assigned_to,
        assigned_role=step.assigned_role,
        attempted_status=target.value,
    )


def _advance_instance(instance: WorkflowInstance, step: WorkflowStep, target: StepStatus) -> None:
    now = utcnow()
    if target == StepStatus.REJECTED:
        instance.status = WorkflowStatus.REJECTED.value
        instance.completed_at = now
        return

    if target == StepStatus.IN_PROGRESS:
        instance.status = WorkflowStatus.IN_PROGRESS.value
        instance.current_step = step.step_number
        return

    remaining = [
        s for s in instance.steps
        if StepStatus(s.status) not in TERMINAL_STEP_STATUSES
    ]
    if not remaining:
        instance.status = WorkflowStatus.COMPLETED.value
        instance.completed_at = now
        return

    instance.status = WorkflowStatus.IN_PROGRESS.value
    instance.current_step = min(s.step_number for s in remaining)


async def transition_step(
    session: AsyncSession,
    step_id: uuid.UUID,
    target_status: StepStatus,
    actor: ActorContext,
    comments: Optional[str] = None,
) -> WorkflowStep:
    """
    Move a step to `target_status` on behalf of `actor`.

    Raises:
        RecordNotFoundError: unknown step.
        WorkflowAuthorizationError: actor is neither the assignee nor holds the
            assigned role. The step is left unchanged and a denial event is
            written.
        InvalidTransitionError: the state machine does not allow the move.
    """
    # The gate must not flush the caller's pending work
    with session.no_autoflush:
        step = await session.get(WorkflowStep, step_id)
        if step is None:
            raise RecordNotFoundError(f"Workflow step {step_id} not found")
        instance = await _load_instance(session, step.instance_id)
    target = StepStatus(target_status)

    if not is_authorized(step, actor):
        await _record_denial(session, step, instance, target, actor)
        raise WorkflowAuthorizationError(
            f"User {actor.user_id or 'anonymous'} may not act on step {step.step_name}"
        )

    if instance.status in TERMINAL_INSTANCE_STATUSES:
        raise InvalidTransitionError(
            f"Workflow {instance.instance_id} is already {instance.status}"
        )

    current = StepStatus(step.status)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move step from {current.value} to {target.value}"
        )

    before = _step_snapshot(step)
    instance_before = {"status": instance.status, "current_step": instance.current_step}
    now = utcnow()

    step.status = target.value
    if comments is not None:
        step.comments = comments
    if target == StepStatus.IN_PROGRESS and step.started_at is None:
        step.started_at = now
    if target in TERMINAL_STEP_STATUSES:
        step.completed_at = now
        step.completed_by = actor.user_id

    _advance_instance(instance, step, target)
    await session.flush()

    await audit_recorder.record(
        session,
        table_name="workflow_steps",
        record_id=step.step_id,
        action_type=AuditAction.UPDATE,
        actor=actor,
        old_values=before,
        new_values=_step_snapshot(step),
        risk_level=RiskLevel.MEDIUM if target == StepStatus.REJECTED else RiskLevel.LOW,
        document_id=instance.document_id,
    )
    instance_after = {"status": instance.status, "current_step": instance.current_step}
    if instance_after != instance_before:
        await audit_recorder.record(
            session,
            table_name="workflow_instances",
            record_id=instance.instance_id,
            action_type=AuditAction.UPDATE,
            actor=actor,
            old_values=instance_before,
            new_values=instance_after,
            document_id=instance.document_id,
        )

    metrics.workflow_transitions_total.labels(status=target.value).inc()
    logger.info(
        "workflow_step_transitioned",
        step_id=str(step.step_id),
        from_status=current.value,
        to_status=target.value,
        instance_status=instance.status,
        user_id=actor.user_id,
    )
    return step
