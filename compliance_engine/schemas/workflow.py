"""
Workflow instance and step schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from compliance_engine.models.enums import StepStatus


class WorkflowStepResponse(BaseModel):
    step_id: uuid.UUID
    instance_id: uuid.UUID
    step_number: int
    step_name: str
    action_required: str
    assigned_to: Optional[str] = None
    assigned_role: Optional[str] = None
    status: str
    comments: Optional[str] = None
    completed_by: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None

    model_config = {"from_attributes": True}


class WorkflowInstanceResponse(BaseModel):
    instance_id: uuid.UUID
    document_id: uuid.UUID
    workflow_name: str
    initiated_by: Optional[str] = None
    current_step: int
    status: str
    due_date: Optional[datetime] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    steps: list[WorkflowStepResponse] = []

    model_config = {"from_attributes": True}


class WorkflowCreateRequest(BaseModel):
    # step_number -> user id
    assignees: dict[int, str] = {}


class StepTransitionRequest(BaseModel):
    status: StepStatus
    comments: Optional[str] = None
