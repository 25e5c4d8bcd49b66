"""
Workflow endpoints: step listing and the gated step transition.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from compliance_engine.dependencies import get_db, require_user, verify_api_key
from compliance_engine.review.workflow import get_workflow_steps, transition_step
from compliance_engine.schemas.audit import ActorContext
from compliance_engine.schemas.workflow import StepTransitionRequest, WorkflowStepResponse

router = APIRouter(prefix="/api/v1", tags=["workflow"], dependencies=[Depends(verify_api_key)])


@router.get("/workflows/{instance_id}/steps", response_model=list[WorkflowStepResponse])
async def list_steps(
    instance_id: uuid.UUID,
    session: AsyncSession = Depends(get_db),
):
    return await get_workflow_steps(session, instance_id)


@router.post("/workflow-steps/{step_id}/transition", response_model=WorkflowStepResponse)
async def post_transition(
    step_id: uuid.UUID,
    body: StepTransitionRequest,
    actor: ActorContext = Depends(require_user),
    session: AsyncSession = Depends(get_db),
):
    """Move a step; 403 when the caller is not the assignee or role holder."""
    return await transition_step(session, step_id, body.status, actor, comments=body.comments)
