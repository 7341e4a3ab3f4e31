"""
Lead endpoints - CRUD, priority flag, bulk assignment, agent dashboard counters.
"""
import logging
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.api.deps import get_current_actor
from leadflow.database import get_db
from leadflow.schemas.api_responses import (
    BulkAssignResponse,
    CallLogOut,
    DashboardStats,
    LeadListResponse,
    LeadOut,
)
from leadflow.schemas.requests import BulkAssignRequest, CallLogCreate, LeadCreate, LeadPatch
from leadflow.services import lifecycle, reporting
from leadflow.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(tags=["leads"])


@router.post("/api/v1/leads", response_model=LeadOut, status_code=201)
async def create_lead(
    payload: LeadCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await lifecycle.create_lead(db, actor, payload.model_dump())


@router.get("/api/v1/leads", response_model=LeadListResponse)
async def list_leads(
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=20, ge=1, le=100),
    stage: Optional[str] = None,
    temperature: Optional[str] = None,
    source: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    needs_followup: bool = False,
    phone: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Paginated lead list. Sales agents only see leads assigned to them."""
    leads, total = await reporting.list_leads(
        db, actor,
        stage=stage,
        temperature=temperature,
        source=source,
        assigned_to=assigned_to,
        needs_followup=needs_followup,
        phone=phone,
        search=search,
        page=page,
        per_page=per_page,
    )
    return LeadListResponse(
        leads=[LeadOut.model_validate(lead) for lead in leads],
        total=total,
        page=page,
        pages=max(1, (total + per_page - 1) // per_page),
    )


@router.get("/api/v1/leads/dashboard/stats", response_model=DashboardStats)
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Overdue follow-ups, missed visits and stagnant leads for the calling agent."""
    return await reporting.agent_dashboard_stats(db, actor)


@router.post("/api/v1/leads/bulk-assign", response_model=BulkAssignResponse)
async def bulk_assign(
    payload: BulkAssignRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    updated = await lifecycle.bulk_assign(db, actor, payload.lead_ids, payload.agent_id)
    return BulkAssignResponse(updated=updated)


@router.get("/api/v1/leads/{lead_id}", response_model=LeadOut)
async def get_lead(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await reporting.get_lead(db, actor, lead_id)


@router.patch("/api/v1/leads/{lead_id}", response_model=LeadOut)
async def edit_lead(
    lead_id: uuid.UUID,
    payload: LeadPatch,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Manual edit. Only fields present in the body are written."""
    return await lifecycle.edit_lead(db, actor, lead_id, payload.model_dump(exclude_unset=True))


@router.delete("/api/v1/leads/{lead_id}")
async def delete_lead(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    await lifecycle.delete_lead(db, actor, lead_id)
    return {"status": "deleted"}


@router.patch("/api/v1/leads/{lead_id}/priority", response_model=LeadOut)
async def toggle_priority(
    lead_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await lifecycle.toggle_priority(db, actor, lead_id)


@router.post("/api/v1/leads/{lead_id}/call-logs", response_model=CallLogOut, status_code=201)
async def log_call_for_lead(
    lead_id: uuid.UUID,
    payload: CallLogCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await lifecycle.record_call(db, actor, lead_id, **payload.model_dump())
