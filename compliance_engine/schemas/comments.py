"""
Review comment schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from compliance_engine.models.enums import CommentPriority, CommentType


class ReviewCommentCreate(BaseModel):
    comment_text: str = Field(min_length=1)
    comment_type: CommentType = CommentType.GENERAL
    priority: CommentPriority = CommentPriority.LOW
    parent_comment_id: Optional[uuid.UUID] = None
    tags: list[str] = []


class ReviewCommentResponse(BaseModel):
    comment_id: uuid.UUID
    document_id: uuid.UUID
    parent_comment_id: Optional[uuid.UUID] = None
    user_id: Optional[str] = None
    comment_text: str
    comment_type: str
    priority: str
    tags: list[str] = []
    created_at: datetime

    model_config = {"from_attributes": True}
