"""
Follow-up feed - pending tasks that are due, polled by the reminder service.
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.api.deps import get_current_actor
from leadflow.database import get_db
from leadflow.schemas.api_responses import FollowupTaskOut
from leadflow.services import reporting
from leadflow.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(tags=["followups"])


@router.get("/api/v1/followups/due", response_model=list[FollowupTaskOut])
async def due_followups(
    before: Optional[datetime] = None,
    limit: int = Query(default=200, ge=1, le=1000),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await reporting.due_followups(db, actor, before=before, limit=limit)
