"""
Site visit endpoints - booking, listing, completion / edits, deletion.
"""
import logging
import uuid
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.api.deps import get_current_actor
from leadflow.database import get_db
from leadflow.schemas.api_responses import SiteVisitOut
from leadflow.schemas.requests import SiteVisitCreate, SiteVisitUpdate
from leadflow.services import lifecycle, reporting
from leadflow.services.access import Actor

logger = logging.getLogger(__name__)
router = APIRouter(tags=["site-visits"])


@router.post("/api/v1/site-visits", response_model=SiteVisitOut, status_code=201)
async def schedule_site_visit(
    payload: SiteVisitCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    fields = payload.model_dump()
    lead_id = fields.pop("lead_id")
    return await lifecycle.schedule_site_visit(db, actor, lead_id, **fields)


@router.get("/api/v1/site-visits", response_model=list[SiteVisitOut])
async def list_site_visits(
    status: Optional[str] = None,
    lead_id: Optional[uuid.UUID] = None,
    property_id: Optional[str] = None,
    project_id: Optional[str] = None,
    conducted_by: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await reporting.list_site_visits(
        db, actor,
        status=status,
        lead_id=lead_id,
        property_id=property_id,
        project_id=project_id,
        conducted_by=conducted_by,
    )


@router.get("/api/v1/site-visits/{visit_id}", response_model=SiteVisitOut)
async def get_site_visit(
    visit_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    return await reporting.get_site_visit(db, actor, visit_id)


@router.patch("/api/v1/site-visits/{visit_id}", response_model=SiteVisitOut)
async def update_site_visit(
    visit_id: uuid.UUID,
    payload: SiteVisitUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Complete, reschedule, cancel, or edit rating / feedback of a visit."""
    return await lifecycle.update_site_visit(
        db, actor, visit_id, **payload.model_dump(exclude_unset=True)
    )


@router.delete("/api/v1/site-visits/{visit_id}")
async def delete_site_visit(
    visit_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    await lifecycle.delete_site_visit(db, actor, visit_id)
    return {"status": "deleted"}
