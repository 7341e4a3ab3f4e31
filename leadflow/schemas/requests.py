"""
Request body schemas for the CRM endpoints.
Field-level validation lives here; cross-field rules are enforced by the
lifecycle services before any write.
"""
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class LeadCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=3, max_length=30)
    email: Optional[str] = None
    source: str = "manual"
    stage: str = "new"
    temperature: str = "warm"
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_location: Optional[str] = None
    notes: Optional[str] = None
    is_priority: bool = False
    assigned_to_id: Optional[uuid.UUID] = None
    next_followup_at: Optional[datetime] = None


class LeadPatch(BaseModel):
    """Manual lead edit. Only fields present in the request body are applied."""
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    source: Optional[str] = None
    stage: Optional[str] = None
    temperature: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_location: Optional[str] = None
    notes: Optional[str] = None
    lost_reason: Optional[str] = None
    is_priority: Optional[bool] = None
    assigned_to_id: Optional[uuid.UUID] = None
    next_followup_at: Optional[datetime] = None


class BulkAssignRequest(BaseModel):
    lead_ids: list[uuid.UUID] = Field(min_length=1)
    agent_id: uuid.UUID


class CallLogCreate(BaseModel):
    call_status: str
    duration_seconds: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    callback_scheduled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None


class CallLogCreateForLead(CallLogCreate):
    lead_id: uuid.UUID


class CallLogLifecyclePatch(BaseModel):
    lifecycle: str  # active (restore) or archived


class DialRequest(BaseModel):
    lead_id: uuid.UUID


class SiteVisitCreate(BaseModel):
    lead_id: uuid.UUID
    scheduled_at: datetime
    property_id: Optional[str] = None
    project_id: Optional[str] = None
    conducted_by: Optional[uuid.UUID] = None
    feedback: Optional[str] = None


class SiteVisitUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    feedback: Optional[str] = None
    next_stage: Optional[str] = None
    conducted_by: Optional[uuid.UUID] = None
