"""
API response schemas for the CRM endpoints.
Built from ORM rows with from_attributes.
"""
import uuid
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class LeadOut(_OrmModel):
    id: uuid.UUID
    name: str
    phone: str
    email: Optional[str] = None
    source: str
    stage: str
    temperature: str
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    preferred_location: Optional[str] = None
    notes: Optional[str] = None
    lost_reason: Optional[str] = None
    is_priority: bool = False
    assigned_to_id: Optional[uuid.UUID] = None
    next_followup_at: Optional[datetime] = None
    last_contacted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LeadListResponse(BaseModel):
    leads: list[LeadOut]
    total: int
    page: int
    pages: int


class CallLogOut(_OrmModel):
    id: uuid.UUID
    lead_id: uuid.UUID
    agent_id: uuid.UUID
    call_status: str
    call_date: datetime
    duration_seconds: Optional[int] = None
    notes: Optional[str] = None
    callback_scheduled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    provider_call_id: Optional[str] = None
    recording_url: Optional[str] = None
    lifecycle: str


class CallStats(BaseModel):
    total_calls: int
    connected_calls: int
    not_answered: int
    positive: int
    negative: int
    connect_rate: int  # percent, rounded


class SiteVisitOut(_OrmModel):
    id: uuid.UUID
    lead_id: uuid.UUID
    conducted_by: Optional[uuid.UUID] = None
    property_id: Optional[str] = None
    project_id: Optional[str] = None
    scheduled_at: datetime
    status: str
    rating: Optional[int] = None
    feedback: Optional[str] = None
    latest_feedback: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class FollowupTaskOut(_OrmModel):
    id: uuid.UUID
    lead_id: uuid.UUID
    agent_id: uuid.UUID
    task_type: str
    scheduled_at: datetime
    notes: Optional[str] = None
    status: str
    source_call_id: Optional[uuid.UUID] = None


class ActivityOut(_OrmModel):
    id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    action: str
    entity_type: str
    entity_id: Optional[uuid.UUID] = None
    lead_id: Optional[uuid.UUID] = None
    details: Optional[dict] = None
    created_at: datetime


class DashboardStats(BaseModel):
    missed_followups: int
    missed_visits: int
    stagnant_leads: int


class BulkAssignResponse(BaseModel):
    updated: int


class DialResponse(BaseModel):
    success: bool = True
    message: str
    data: Optional[dict] = None


class WebhookAck(BaseModel):
    status: str
    message: str
