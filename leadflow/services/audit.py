"""
Audit recorder - append-only activity trail.

record_activity adds a row to the caller's unit of work and never commits:
the activity entry lands in the same transaction as the mutation it
describes, or not at all.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 50
MAX_ACTIVITY_LIMIT = 200


def _jsonable(value):
    if isinstance(value, uuid.UUID):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def record_activity(
    db: AsyncSession,
    actor_id: Optional[uuid.UUID],
    action: str,
    entity_type: str,
    entity_id: Optional[uuid.UUID] = None,
    lead_id: Optional[uuid.UUID] = None,
    details: Optional[dict] = None,
) -> ActivityLog:
    entry = ActivityLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        lead_id=lead_id,
        details=_jsonable(details or {}),
    )
    db.add(entry)
    return entry


async def list_activity(
    db: AsyncSession,
    actor,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    lead_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    actor_id: Optional[uuid.UUID] = None,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> list[ActivityLog]:
    """Most recent activity first. Sales agents only see their own entries."""
    stmt = select(ActivityLog)
    if entity_type:
        stmt = stmt.where(ActivityLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(ActivityLog.entity_id == entity_id)
    if lead_id:
        stmt = stmt.where(ActivityLog.lead_id == lead_id)
    if action:
        stmt = stmt.where(ActivityLog.action == action)

    if not actor.is_privileged:
        stmt = stmt.where(ActivityLog.actor_id == actor.agent_id)
    elif actor_id:
        stmt = stmt.where(ActivityLog.actor_id == actor_id)

    limit = max(1, min(limit, MAX_ACTIVITY_LIMIT))
    stmt = stmt.order_by(ActivityLog.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())
