"""
Actor context and audit trail response schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ActorContext(BaseModel):
    """Who is acting, passed explicitly into every mutating operation."""
    user_id: Optional[str] = None
    role: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None


SYSTEM_ACTOR = ActorContext(user_id="system", role="system")


class AuditEventResponse(BaseModel):
    event_seq: int
    request_id: str
    user_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    session_id: Optional[str] = None
    document_id: Optional[str] = None
    table_name: str
    record_id: str
    action_type: str
    old_values: Optional[dict] = None
    new_values: Optional[dict] = None
    changed_fields: list[str] = []
    risk_level: str
    compliance_tags: list[str] = []
    integrity_hash: str
    integrity_verified: bool = True
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditTrailResponse(BaseModel):
    record_id: str
    events: list[AuditEventResponse]
    limit: int
    offset: int
