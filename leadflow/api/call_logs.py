"""
Call log endpoints - agent-entered calls, views, daily stats, archive / trash,
and the MCUBE click-to-call trigger.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.api.deps import get_current_actor
from leadflow.database import get_db
from leadflow.errors import EventValidationError
from leadflow.schemas.api_responses import CallLogOut, CallStats, DialResponse
from leadflow.schemas.requests import CallLogCreateForLead, CallLogLifecyclePatch, DialRequest
from leadflow.services import lifecycle, reporting
from leadflow.services.access import Actor
from leadflow.services.dialer import initiate_outbound_call
from leadflow.vocabulary import CallLifecycle

logger = logging.getLogger(__name__)
router = APIRouter(tags=["call-logs"])


@router.post("/api/v1/call-logs", response_model=CallLogOut, status_code=201)
async def log_call(
    payload: CallLogCreateForLead,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    fields = payload.model_dump()
    lead_id = fields.pop("lead_id")
    return await lifecycle.record_call(db, actor, lead_id, **fields)


@router.get("/api/v1/call-logs", response_model=list[CallLogOut])
async def list_call_logs(
    view: str = Query(default="all"),
    lead_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Views: all, missed, attended, qualified, unqualified, archive, deleted."""
    return await reporting.list_call_logs(db, actor, view=view, lead_id=lead_id, search=search)


@router.get("/api/v1/call-logs/stats", response_model=CallStats)
async def call_stats(
    agent_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await reporting.call_stats(db, actor, agent_id=agent_id, since=since)


@router.post("/api/v1/call-logs/dial", response_model=DialResponse)
async def dial(
    payload: DialRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Ask MCUBE to connect the calling agent to the lead. The outcome arrives via webhook."""
    data = await initiate_outbound_call(db, actor, payload.lead_id)
    return DialResponse(message="Call initiated via MCUBE", data=data)


@router.patch("/api/v1/call-logs/{call_id}", response_model=CallLogOut)
async def set_call_lifecycle(
    call_id: uuid.UUID,
    payload: CallLogLifecyclePatch,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Archive (lifecycle=archived) or restore (lifecycle=active) a call log."""
    if payload.lifecycle == CallLifecycle.ARCHIVED:
        return await lifecycle.archive_call_log(db, actor, call_id)
    if payload.lifecycle == CallLifecycle.ACTIVE:
        return await lifecycle.restore_call_log(db, actor, call_id)
    raise EventValidationError("lifecycle must be 'archived' or 'active'")


@router.delete("/api/v1/call-logs/{call_id}", response_model=CallLogOut)
async def delete_call_log(
    call_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Move a call log to the trash (soft delete)."""
    return await lifecycle.delete_call_log(db, actor, call_id)
