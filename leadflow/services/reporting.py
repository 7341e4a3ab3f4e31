"""
Read-side queries for the CRM: lead lists, call log views, call statistics,
site visit lists, due follow-ups and the agent dashboard counters.

Every query is scoped by the access guard, so a sales agent only ever sees
their own leads, visits and calls.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.config import get_settings
from leadflow.errors import EventValidationError, NotFoundError
from leadflow.models.call_log import CallLog
from leadflow.models.followup import FollowupTask
from leadflow.models.lead import Lead
from leadflow.models.site_visit import SiteVisit
from leadflow.services.access import (
    Actor,
    ensure_can_access_lead,
    ensure_can_access_visit,
    scope_calls_query,
    scope_leads_query,
    scope_visits_query,
)
from leadflow.utils.phone import digits_only, phone_match_key
from leadflow.vocabulary import CallLifecycle, CallOutcome, Stage, TaskStatus, VisitStatus

logger = logging.getLogger(__name__)

CALL_LOG_VIEWS = ("all", "missed", "attended", "qualified", "unqualified", "archive", "deleted")
CALL_LOG_LIMIT = 100

# Stages that no longer count as stagnant
_NOT_STAGNANT = Stage.TERMINAL | {Stage.TOKEN}


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")


# === LEADS ===

async def list_leads(
    db: AsyncSession,
    actor: Actor,
    stage: Optional[str] = None,
    temperature: Optional[str] = None,
    source: Optional[str] = None,
    assigned_to: Optional[uuid.UUID] = None,
    needs_followup: bool = False,
    phone: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
    now: Optional[datetime] = None,
) -> tuple[list[Lead], int]:
    """Paginated lead list with filters. Returns (leads, total)."""
    query = scope_leads_query(select(Lead), actor)

    if stage:
        query = query.where(Lead.stage == stage)
    if temperature:
        query = query.where(Lead.temperature == temperature)
    if source:
        query = query.where(Lead.source == source)
    if assigned_to and actor.is_privileged:
        query = query.where(Lead.assigned_to_id == assigned_to)
    if needs_followup:
        now = now or datetime.now(timezone.utc)
        query = query.where(
            Lead.next_followup_at.is_not(None),
            Lead.next_followup_at <= now,
            Lead.stage.not_in(sorted(Stage.TERMINAL)),
        )
    if phone:
        key = phone_match_key(phone)
        if key:
            query = query.where(Lead.phone_key.contains(key, autoescape=True))
    if search:
        pattern = f"%{_escape_like(search)}%"
        query = query.where(
            Lead.name.ilike(pattern, escape="\\")
            | Lead.phone.ilike(pattern, escape="\\")
            | Lead.email.ilike(pattern, escape="\\")
            | Lead.preferred_location.ilike(pattern, escape="\\")
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = (
        query.order_by(desc(Lead.is_priority), desc(Lead.created_at))
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_lead(db: AsyncSession, actor: Actor, lead_id: uuid.UUID) -> Lead:
    lead = await db.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead not found")
    ensure_can_access_lead(actor, lead)
    return lead


# === CALL LOGS ===

async def list_call_logs(
    db: AsyncSession,
    actor: Actor,
    view: str = "all",
    lead_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    limit: int = CALL_LOG_LIMIT,
) -> list[CallLog]:
    """
    Call log views:
    - all: everything except deleted (archived included)
    - missed / attended / qualified / unqualified: by call status, deleted excluded
    - archive: archived only
    - deleted: the trash
    """
    if view not in CALL_LOG_VIEWS:
        raise EventValidationError(f"Unknown call log view: {view!r}")

    query = scope_calls_query(select(CallLog), actor)

    if view == "deleted":
        query = query.where(CallLog.lifecycle == CallLifecycle.DELETED)
    elif view == "archive":
        query = query.where(CallLog.lifecycle == CallLifecycle.ARCHIVED)
    else:
        query = query.where(CallLog.lifecycle != CallLifecycle.DELETED)

    if view == "missed":
        query = query.where(CallLog.call_status == CallOutcome.NOT_CONNECTED)
    elif view == "attended":
        query = query.where(CallLog.call_status.in_(sorted(CallOutcome.ATTENDED)))
    elif view == "qualified":
        query = query.where(CallLog.call_status == CallOutcome.CONNECTED_POSITIVE)
    elif view == "unqualified":
        query = query.where(CallLog.call_status == CallOutcome.NOT_INTERESTED)

    if lead_id:
        query = query.where(CallLog.lead_id == lead_id)
    if search:
        pattern = f"%{_escape_like(search)}%"
        condition = Lead.name.ilike(pattern, escape="\\") | Lead.phone.ilike(pattern, escape="\\")
        digits = digits_only(search)
        if digits:
            condition = condition | Lead.phone_key.contains(digits, autoescape=True)
        query = query.where(CallLog.lead_id.in_(select(Lead.id).where(condition)))

    query = query.order_by(desc(CallLog.call_date)).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def call_stats(
    db: AsyncSession,
    actor: Actor,
    agent_id: Optional[uuid.UUID] = None,
    since: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Call counts per outcome since `since` (default: start of today, UTC).
    Sales agents always get their own numbers; managers may pick an agent.
    """
    now = now or datetime.now(timezone.utc)
    since = since or _start_of_day(now)

    query = (
        select(CallLog.call_status, func.count())
        .where(CallLog.call_date >= since, CallLog.lifecycle != CallLifecycle.DELETED)
        .group_by(CallLog.call_status)
    )
    query = scope_calls_query(query, actor)
    if agent_id and actor.is_privileged:
        query = query.where(CallLog.agent_id == agent_id)

    counts = {status: count for status, count in (await db.execute(query)).all()}
    total = sum(counts.values())
    connected = sum(c for s, c in counts.items() if s.startswith("connected"))

    return {
        "total_calls": total,
        "connected_calls": connected,
        "not_answered": counts.get(CallOutcome.NOT_CONNECTED, 0),
        "positive": counts.get(CallOutcome.CONNECTED_POSITIVE, 0),
        "negative": counts.get(CallOutcome.NOT_INTERESTED, 0),
        "connect_rate": round(connected / total * 100) if total else 0,
    }


# === SITE VISITS ===

async def list_site_visits(
    db: AsyncSession,
    actor: Actor,
    status: Optional[str] = None,
    lead_id: Optional[uuid.UUID] = None,
    property_id: Optional[str] = None,
    project_id: Optional[str] = None,
    conducted_by: Optional[uuid.UUID] = None,
) -> list[SiteVisit]:
    query = scope_visits_query(select(SiteVisit), actor)
    if status:
        query = query.where(SiteVisit.status == status)
    if lead_id:
        query = query.where(SiteVisit.lead_id == lead_id)
    if property_id:
        query = query.where(SiteVisit.property_id == property_id)
    if project_id:
        query = query.where(SiteVisit.project_id == project_id)
    if conducted_by and actor.is_privileged:
        query = query.where(SiteVisit.conducted_by == conducted_by)

    result = await db.execute(query.order_by(SiteVisit.scheduled_at))
    return list(result.scalars().all())


async def get_site_visit(db: AsyncSession, actor: Actor, visit_id: uuid.UUID) -> SiteVisit:
    visit = await db.get(SiteVisit, visit_id)
    if visit is None:
        raise NotFoundError("Site visit not found")
    lead = await db.get(Lead, visit.lead_id)
    ensure_can_access_visit(actor, visit, lead)
    return visit


# === FOLLOW-UPS ===

async def due_followups(
    db: AsyncSession,
    actor: Actor,
    before: Optional[datetime] = None,
    limit: int = 200,
) -> list[FollowupTask]:
    """Pending follow-up tasks due before `before` (default: now), oldest first.

    Polled by the reminder service; this module never executes tasks.
    """
    before = before or datetime.now(timezone.utc)
    query = select(FollowupTask).where(
        FollowupTask.status == TaskStatus.PENDING,
        FollowupTask.scheduled_at <= before,
    )
    if not actor.is_privileged:
        query = query.where(FollowupTask.agent_id == actor.agent_id)
    query = query.order_by(FollowupTask.scheduled_at).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


# === DASHBOARD ===

async def agent_dashboard_stats(
    db: AsyncSession, actor: Actor, now: Optional[datetime] = None
) -> dict:
    """Counters for the acting agent's dashboard: overdue follow-ups, missed visits, stagnant leads."""
    now = now or datetime.now(timezone.utc)
    stagnant_before = now - timedelta(days=get_settings().stagnant_lead_days)
    agent_id = actor.agent_id

    missed_followups = await db.scalar(
        select(func.count(Lead.id)).where(
            Lead.assigned_to_id == agent_id,
            Lead.next_followup_at < now,
            Lead.stage.not_in(sorted(Stage.TERMINAL)),
        )
    )

    own_leads = select(Lead.id).where(Lead.assigned_to_id == agent_id)
    missed_visits = await db.scalar(
        select(func.count(SiteVisit.id)).where(
            or_(SiteVisit.conducted_by == agent_id, SiteVisit.lead_id.in_(own_leads)),
            SiteVisit.status == VisitStatus.SCHEDULED,
            SiteVisit.scheduled_at < now,
        )
    )

    stagnant_leads = await db.scalar(
        select(func.count(Lead.id)).where(
            Lead.assigned_to_id == agent_id,
            Lead.updated_at < stagnant_before,
            Lead.stage.not_in(sorted(_NOT_STAGNANT)),
        )
    )

    return {
        "missed_followups": missed_followups or 0,
        "missed_visits": missed_visits or 0,
        "stagnant_leads": stagnant_leads or 0,
    }
