"""
Activity feed - read side of the audit trail.
"""
import logging
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.api.deps import get_current_actor
from leadflow.database import get_db
from leadflow.schemas.api_responses import ActivityOut
from leadflow.services.access import Actor
from leadflow.services.audit import list_activity

logger = logging.getLogger(__name__)
router = APIRouter(tags=["activity"])


@router.get("/api/v1/activity", response_model=list[ActivityOut])
async def get_activity(
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    lead_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    actor_id: Optional[uuid.UUID] = None,
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Most recent first. Sales agents only see their own actions."""
    return await list_activity(
        db, actor,
        entity_type=entity_type,
        entity_id=entity_id,
        lead_id=lead_id,
        action=action,
        actor_id=actor_id,
        limit=limit,
    )
