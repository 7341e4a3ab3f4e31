"""
Lead lifecycle orchestrator - the transactional coordinator for every event
that can move a lead.

Each public coroutine is one atomic unit:
1. Load the rows it acts on (NotFoundError, nothing written)
2. Authorize the actor (ForbiddenError, nothing written)
3. Validate the event (EventValidationError, nothing written)
4. Compute the next lead state (StagePolicy) and follow-up effects (FollowupScheduler)
5. Stage the lead mutation, the triggering row, any follow-up task and the
   activity entry, then commit once

A store failure during commit rolls everything back and surfaces as
PersistenceConflictError. Readers never see a call log or site visit without
the lead change it caused.

The telephony webhook path (record_webhook_call) never raises: every outcome,
including failures, is recorded on a WebhookEvent row and returned as a
WebhookOutcome.
"""
import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.config import get_settings
from leadflow.errors import (
    EventValidationError,
    ForbiddenError,
    LifecycleError,
    NotFoundError,
    PersistenceConflictError,
)
from leadflow.models.agent import Agent
from leadflow.models.call_log import CallLog
from leadflow.models.followup import FollowupTask
from leadflow.models.lead import Lead
from leadflow.models.site_visit import SiteVisit
from leadflow.models.webhook_event import WebhookEvent
from leadflow.schemas.events import (
    RatingEdited,
    VisitCompleted,
    VisitScheduled,
    event_for_call,
)
from leadflow.schemas.webhook_payloads import McubeCallPayload
from leadflow.services.access import (
    Actor,
    check_lead_patch_fields,
    ensure_can_access_call,
    ensure_can_access_lead,
    ensure_can_access_visit,
    ensure_can_delete_visit,
    ensure_privileged,
)
from leadflow.services.audit import record_activity
from leadflow.services.disposition import (
    build_webhook_call_notes,
    call_outcome_from_status,
    map_dialstatus,
    parse_duration,
)
from leadflow.services.followup_scheduler import FollowupScheduler, append_visit_feedback
from leadflow.services.stage_policy import (
    LeadState,
    StagePolicy,
    validate_outcome_stage,
    validate_stage,
)
from leadflow.utils.logging import get_correlation_id
from leadflow.utils.phone import format_e164, mask_phone, phone_match_key
from leadflow.vocabulary import (
    CallLifecycle,
    CallOutcome,
    Role,
    TaskStatus,
    Temperature,
    VisitStatus,
)

logger = logging.getLogger(__name__)

WEBHOOK_SOURCE = "mcube"
WEBHOOK_EVENT_TYPE = "call_completed"


class WebhookOutcome:
    """Result of one telephony webhook delivery."""

    def __init__(
        self,
        status: str,
        message: str = "",
        call_log_id: Optional[uuid.UUID] = None,
        lead_id: Optional[uuid.UUID] = None,
    ):
        self.status = status  # processed, duplicate, unmatched, ambiguous, failed
        self.message = message
        self.call_log_id = call_log_id
        self.lead_id = lead_id

    @property
    def applied(self) -> bool:
        return self.status == "processed"

    def __repr__(self) -> str:
        return f"<WebhookOutcome {self.status} call_log={self.call_log_id}>"


# === HELPERS ===

def _now() -> datetime:
    return datetime.now(timezone.utc)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. Naive input is taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _policy() -> StagePolicy:
    return StagePolicy.from_settings(get_settings())


def _scheduler() -> FollowupScheduler:
    return FollowupScheduler.from_settings(get_settings())


async def _commit(db: AsyncSession, what: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(
            "Could not persist %s: %s", what, str(e),
            extra={"error_code": PersistenceConflictError.error_code},
        )
        raise PersistenceConflictError(f"Could not persist {what}") from e


async def _load_lead(db: AsyncSession, lead_id: uuid.UUID) -> Lead:
    lead = await db.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead not found")
    return lead


async def _load_visit(db: AsyncSession, visit_id: uuid.UUID) -> tuple[SiteVisit, Lead]:
    visit = await db.get(SiteVisit, visit_id)
    if visit is None:
        raise NotFoundError("Site visit not found")
    lead = await _load_lead(db, visit.lead_id)
    return visit, lead


async def _load_call(db: AsyncSession, call_id: uuid.UUID) -> CallLog:
    call = await db.get(CallLog, call_id)
    if call is None:
        raise NotFoundError("Call log not found")
    return call


async def _load_agent(db: AsyncSession, agent_id: uuid.UUID) -> Agent:
    agent = await db.get(Agent, agent_id)
    if agent is None or not agent.is_active:
        raise NotFoundError("Agent not found")
    return agent


def _apply_state(lead: Lead, state: LeadState) -> None:
    lead.stage = state.stage
    lead.temperature = state.temperature
    lead.lost_reason = state.lost_reason


def _state_details(before: LeadState, after: LeadState) -> dict:
    details = {"stage": after.stage, "temperature": after.temperature}
    if before.stage != after.stage:
        details["previous_stage"] = before.stage
    if before.temperature != after.temperature:
        details["previous_temperature"] = before.temperature
    return details


def _stage_call(
    db: AsyncSession,
    lead: Lead,
    agent_id: uuid.UUID,
    outcome: str,
    event,
    actor_id: Optional[uuid.UUID],
    duration_seconds: Optional[int] = None,
    notes: Optional[str] = None,
    callback_at: Optional[datetime] = None,
    rejection_reason: Optional[str] = None,
    provider_call_id: Optional[str] = None,
    recording_url: Optional[str] = None,
    via: Optional[str] = None,
) -> tuple[CallLog, Optional[FollowupTask]]:
    """Stage everything one call produces. Shared by agent-entered and webhook calls."""
    before = LeadState.of(lead)
    after = _policy().next_state(before, event)
    plan = _scheduler().schedule(event)

    call = CallLog(
        id=uuid.uuid4(),
        lead_id=lead.id,
        agent_id=agent_id,
        call_status=outcome,
        call_date=event.occurred_at,
        duration_seconds=duration_seconds,
        notes=notes,
        callback_scheduled_at=callback_at,
        rejection_reason=rejection_reason,
        provider_call_id=provider_call_id,
        recording_url=recording_url,
        lifecycle=CallLifecycle.ACTIVE,
    )
    db.add(call)

    task = None
    if plan.task is not None:
        task = FollowupTask(
            lead_id=lead.id,
            agent_id=agent_id,
            source_call_id=call.id,
            task_type=plan.task.task_type,
            scheduled_at=plan.task.scheduled_at,
            notes=plan.task.notes,
            status=TaskStatus.PENDING,
        )
        db.add(task)

    _apply_state(lead, after)
    if plan.update_next_followup:
        lead.next_followup_at = plan.next_followup_at
    if plan.touch_last_contacted:
        lead.last_contacted_at = event.occurred_at

    details = {"lead_name": lead.name, "call_status": outcome, **_state_details(before, after)}
    if task is not None:
        details["followup_at"] = task.scheduled_at
    if via:
        details["via"] = via
    record_activity(db, actor_id, "call_logged", "call_log", call.id, lead.id, details)
    return call, task


# === CALLS ===

async def record_call(
    db: AsyncSession,
    actor: Actor,
    lead_id: uuid.UUID,
    call_status: str,
    duration_seconds: Optional[int] = None,
    notes: Optional[str] = None,
    callback_scheduled_at: Optional[datetime] = None,
    rejection_reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CallLog:
    """Record an agent-entered call outcome and apply its consequences to the lead."""
    lead = await _load_lead(db, lead_id)
    ensure_can_access_lead(actor, lead)

    outcome = call_outcome_from_status(call_status)
    if duration_seconds is not None and duration_seconds < 0:
        raise EventValidationError("duration_seconds cannot be negative")
    if callback_scheduled_at is not None and outcome != CallOutcome.CONNECTED_CALLBACK:
        raise EventValidationError("callback_scheduled_at only applies to connected_callback")
    if rejection_reason and outcome != CallOutcome.NOT_INTERESTED:
        raise EventValidationError("rejection_reason only applies to not_interested")

    occurred_at = _utc(now) or _now()
    callback_at = _utc(callback_scheduled_at)
    event = event_for_call(
        outcome, occurred_at,
        callback_at=callback_at, rejection_reason=rejection_reason, notes=notes,
    )

    call, task = _stage_call(
        db, lead, actor.agent_id, outcome, event, actor.agent_id,
        duration_seconds=duration_seconds,
        notes=notes,
        callback_at=callback_at,
        rejection_reason=rejection_reason,
    )
    await _commit(db, "call log")

    logger.info(
        "Call logged for lead %s: %s → stage=%s",
        str(lead.id)[:8], outcome, lead.stage,
        extra={
            "lead_id": str(lead.id),
            "agent_id": str(actor.agent_id),
            "call_id": str(call.id),
            "event": "call_logged",
            "outcome": outcome,
        },
    )
    return call


def _payload_hash(raw: dict) -> str:
    return hashlib.sha256(json.dumps(raw, sort_keys=True, default=str).encode()).hexdigest()


def _as_text_payload(raw: dict) -> dict:
    """MCUBE sometimes sends numeric ids. Coerce scalars to text before validation."""
    return {
        k: (str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v)
        for k, v in raw.items()
    }


async def _already_processed(
    db: AsyncSession, provider_call_id: Optional[str], payload_hash: str
) -> bool:
    stmt = select(WebhookEvent.id).where(
        WebhookEvent.source == WEBHOOK_SOURCE,
        WebhookEvent.processing_status == "processed",
    )
    if provider_call_id:
        stmt = stmt.where(WebhookEvent.provider_call_id == provider_call_id)
    else:
        stmt = stmt.where(WebhookEvent.payload_hash == payload_hash)
    result = await db.execute(stmt.limit(1))
    return result.first() is not None


async def _match_by_phone(db: AsyncSession, model, phone: Optional[str]) -> list:
    key = phone_match_key(phone)
    if not key:
        return []
    stmt = select(model).where(model.phone_key == key)
    if model is Agent:
        stmt = stmt.where(Agent.is_active.is_(True))
    stmt = stmt.order_by(model.created_at).limit(5)
    result = await db.execute(stmt)
    return list(result.scalars().all())


def _pick(matches: list, policy: str):
    """Return (row, status). status is None when a single row was resolved."""
    if not matches:
        return None, "unmatched"
    if len(matches) > 1 and policy != "first":
        return None, "ambiguous"
    return matches[0], None


def _finish_event(event: WebhookEvent, status: str, error_message: Optional[str] = None) -> None:
    event.processing_status = status
    event.error_message = error_message
    event.processed_at = _now()


async def record_webhook_call(
    db: AsyncSession,
    raw_payload: dict,
    now: Optional[datetime] = None,
) -> WebhookOutcome:
    """
    Apply an MCUBE end-of-call callback.

    Lead and agent are resolved by phone-suffix equality. A callback that
    matches no lead/agent, or several when the ambiguous-match policy is
    "reject", is stored for manual reconciliation and produces no CRM change.
    A provider call id that was already processed is a duplicate and is not
    applied again.
    """
    settings = get_settings()
    raw = dict(raw_payload or {})
    payload_hash = _payload_hash(raw)
    callid = raw.get("callid")
    provider_call_id = str(callid) if callid not in (None, "") else None

    event_row = WebhookEvent(
        source=WEBHOOK_SOURCE,
        event_type=WEBHOOK_EVENT_TYPE,
        payload_hash=payload_hash,
        provider_call_id=provider_call_id,
        raw_payload=raw,
        processing_status="received",
        correlation_id=get_correlation_id(),
    )

    try:
        db.add(event_row)
        payload = McubeCallPayload.model_validate(_as_text_payload(raw))

        if await _already_processed(db, provider_call_id, payload_hash):
            _finish_event(event_row, "duplicate", "Already processed")
            await _commit(db, "webhook event")
            logger.info(
                "Duplicate MCUBE callback ignored (callid=%s)", provider_call_id,
                extra={"event": "webhook_duplicate"},
            )
            return WebhookOutcome("duplicate", "Already processed")

        policy = settings.webhook_ambiguous_match_policy
        lead, lead_problem = _pick(await _match_by_phone(db, Lead, payload.callto), policy)
        agent, agent_problem = _pick(await _match_by_phone(db, Agent, payload.emp_phone), policy)
        problem = lead_problem or agent_problem
        if problem:
            what = "lead" if lead_problem else "agent"
            message = f"No single {what} matches the call ({problem})"
            _finish_event(event_row, problem, message)
            await _commit(db, "webhook event")
            logger.warning(
                "MCUBE callback not applied: %s (callto=%s emp_phone=%s)",
                message, mask_phone(payload.callto), mask_phone(payload.emp_phone),
                extra={"event": "webhook_" + problem},
            )
            return WebhookOutcome(problem, message)

        outcome = map_dialstatus(payload.dialstatus)
        occurred_at = _utc(now) or _now()
        event = event_for_call(outcome, occurred_at)
        call, _task = _stage_call(
            db, lead, agent.id, outcome, event, agent.id,
            duration_seconds=parse_duration(payload.answeredtime),
            notes=build_webhook_call_notes(payload.callid, payload.filename),
            provider_call_id=provider_call_id,
            recording_url=payload.filename or None,
            via=WEBHOOK_SOURCE,
        )
        event_row.call_log_id = call.id
        _finish_event(event_row, "processed")
        await _commit(db, "webhook call")

        logger.info(
            "MCUBE call logged for lead %s: %s → stage=%s",
            str(lead.id)[:8], outcome, lead.stage,
            extra={
                "lead_id": str(lead.id),
                "agent_id": str(agent.id),
                "call_id": str(call.id),
                "event": "webhook_call_logged",
                "outcome": outcome,
            },
        )
        return WebhookOutcome("processed", "Webhook processed successfully", call.id, lead.id)

    except (ValidationError, LifecycleError, SQLAlchemyError) as e:
        return await _record_failed_webhook(db, raw, payload_hash, provider_call_id, str(e))


async def _record_failed_webhook(
    db: AsyncSession,
    raw: dict,
    payload_hash: str,
    provider_call_id: Optional[str],
    error: str,
) -> WebhookOutcome:
    """Everything staged so far is discarded; only a failed audit row is kept."""
    logger.error(
        "MCUBE callback processing failed: %s", error,
        extra={"event": "webhook_failed", "error_code": "webhook_failed"},
    )
    try:
        await db.rollback()
        failed = WebhookEvent(
            source=WEBHOOK_SOURCE,
            event_type=WEBHOOK_EVENT_TYPE,
            payload_hash=payload_hash,
            provider_call_id=provider_call_id,
            raw_payload=raw,
            correlation_id=get_correlation_id(),
        )
        _finish_event(failed, "failed", error[:500])
        db.add(failed)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Could not record failed MCUBE callback: %s", str(e))
    return WebhookOutcome("failed", "Webhook received")


# === SITE VISITS ===

async def schedule_site_visit(
    db: AsyncSession,
    actor: Actor,
    lead_id: uuid.UUID,
    scheduled_at: datetime,
    property_id: Optional[str] = None,
    project_id: Optional[str] = None,
    conducted_by: Optional[uuid.UUID] = None,
    feedback: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SiteVisit:
    """Book a site visit. A lead still at new/contacted moves to site_visit."""
    lead = await _load_lead(db, lead_id)
    ensure_can_access_lead(actor, lead)

    conducted_by = conducted_by or actor.agent_id
    if conducted_by != actor.agent_id:
        if not actor.is_privileged:
            raise ForbiddenError("Agents can only schedule visits they conduct")
        await _load_agent(db, conducted_by)

    occurred_at = _utc(now) or _now()
    event = VisitScheduled(occurred_at=occurred_at, scheduled_at=_utc(scheduled_at))

    before = LeadState.of(lead)
    after = _policy().next_state(before, event)

    visit = SiteVisit(
        id=uuid.uuid4(),
        lead_id=lead.id,
        conducted_by=conducted_by,
        property_id=property_id,
        project_id=project_id,
        scheduled_at=event.scheduled_at,
        status=VisitStatus.SCHEDULED,
        latest_feedback=feedback,
    )
    db.add(visit)
    _apply_state(lead, after)

    record_activity(
        db, actor.agent_id, "site_visit_scheduled", "site_visit", visit.id, lead.id,
        {"lead_name": lead.name, "scheduled_at": event.scheduled_at, **_state_details(before, after)},
    )
    await _commit(db, "site visit")

    logger.info(
        "Site visit scheduled for lead %s at %s",
        str(lead.id)[:8], event.scheduled_at.isoformat(),
        extra={"lead_id": str(lead.id), "visit_id": str(visit.id), "event": "site_visit_scheduled"},
    )
    return visit


async def update_site_visit(
    db: AsyncSession,
    actor: Actor,
    visit_id: uuid.UUID,
    status: Optional[str] = None,
    scheduled_at: Optional[datetime] = None,
    rating: Optional[int] = None,
    feedback: Optional[str] = None,
    next_stage: Optional[str] = None,
    conducted_by: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> SiteVisit:
    """
    Edit a site visit. Arguments left as None are not changed.

    - status → completed on a not-yet-completed visit: completion event. Any
      feedback is appended to the visit history as a timestamped block.
    - new rating on an already-completed visit: rating edit. Temperature is
      recomputed, stage only moves when next_stage is given. Feedback replaces
      the current note only, never the history.
    - status → rescheduled / cancelled: logged, the lead is not touched.
    """
    visit, lead = await _load_visit(db, visit_id)
    ensure_can_access_visit(actor, visit, lead)

    if status is not None and status not in VisitStatus.ALL:
        raise EventValidationError(f"Unknown site visit status: {status!r}")
    if rating is not None and not 1 <= rating <= 5:
        raise EventValidationError("rating must be between 1 and 5")
    if next_stage is not None:
        validate_outcome_stage(next_stage)
    if conducted_by is not None and conducted_by != visit.conducted_by:
        if not actor.is_privileged and conducted_by != actor.agent_id:
            raise ForbiddenError("Agents can only assign visits to themselves")
        await _load_agent(db, conducted_by)

    was_completed = visit.status == VisitStatus.COMPLETED
    completing = status == VisitStatus.COMPLETED and not was_completed
    rating_edit = was_completed and rating is not None and rating != visit.rating
    if next_stage is not None and not (completing or rating_edit):
        raise EventValidationError(
            "next_stage only applies when completing a visit or changing its rating"
        )

    occurred_at = _utc(now) or _now()
    settings = get_settings()

    if feedback is not None:
        if completing and feedback:
            visit.feedback = append_visit_feedback(
                visit.feedback, feedback, occurred_at, settings.feedback_timezone
            )
        visit.latest_feedback = feedback

    previous_status = visit.status
    if status is not None:
        visit.status = status
    if scheduled_at is not None:
        visit.scheduled_at = _utc(scheduled_at)
    if rating is not None:
        visit.rating = rating
    if conducted_by is not None:
        visit.conducted_by = conducted_by

    before = LeadState.of(lead)
    action = "site_visit_updated"
    details = {"lead_name": lead.name}

    if completing:
        visit.completed_at = occurred_at
        event = VisitCompleted(occurred_at=occurred_at, rating=rating, next_stage=next_stage)
        after = _policy().next_state(before, event)
        _apply_state(lead, after)
        action = "site_visit_completed"
        details.update({"rating": rating, **_state_details(before, after)})
    elif rating_edit:
        event = RatingEdited(occurred_at=occurred_at, rating=rating, next_stage=next_stage)
        after = _policy().next_state(before, event)
        _apply_state(lead, after)
        action = "site_visit_rating_updated"
        details.update({"rating": rating, **_state_details(before, after)})
    elif status == VisitStatus.RESCHEDULED:
        action = "site_visit_rescheduled"
        details["new_date"] = visit.scheduled_at
    elif status == VisitStatus.CANCELLED and previous_status != VisitStatus.CANCELLED:
        action = "site_visit_cancelled"

    record_activity(db, actor.agent_id, action, "site_visit", visit.id, lead.id, details)
    await _commit(db, "site visit")

    logger.info(
        "Site visit %s: %s (lead stage=%s)",
        str(visit.id)[:8], action, lead.stage,
        extra={"lead_id": str(lead.id), "visit_id": str(visit.id), "event": action},
    )
    return visit


async def complete_site_visit(
    db: AsyncSession,
    actor: Actor,
    visit_id: uuid.UUID,
    rating: Optional[int] = None,
    feedback: Optional[str] = None,
    next_stage: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SiteVisit:
    return await update_site_visit(
        db, actor, visit_id,
        status=VisitStatus.COMPLETED,
        rating=rating,
        feedback=feedback,
        next_stage=next_stage,
        now=now,
    )


async def delete_site_visit(db: AsyncSession, actor: Actor, visit_id: uuid.UUID) -> None:
    visit, lead = await _load_visit(db, visit_id)
    ensure_can_delete_visit(actor, visit)

    record_activity(
        db, actor.agent_id, "site_visit_deleted", "site_visit", visit.id, lead.id,
        {"lead_name": lead.name, "status": visit.status},
    )
    await db.delete(visit)
    await _commit(db, "site visit deletion")
    logger.info(
        "Site visit %s deleted", str(visit.id)[:8],
        extra={"lead_id": str(lead.id), "visit_id": str(visit.id), "event": "site_visit_deleted"},
    )


# === LEADS ===

# Columns a manual edit may not clear
_REQUIRED_LEAD_FIELDS = ("name", "phone", "source", "stage", "temperature", "is_priority")


def _validate_lead_values(values: dict) -> None:
    cleared = [field for field in _REQUIRED_LEAD_FIELDS if field in values and values[field] is None]
    if cleared:
        raise EventValidationError(f"{', '.join(cleared)} cannot be null")
    if values.get("stage") is not None:
        validate_stage(values["stage"])
    if values.get("temperature") is not None and values["temperature"] not in Temperature.ALL:
        raise EventValidationError(f"Unknown temperature: {values['temperature']!r}")
    budget_min = values.get("budget_min")
    budget_max = values.get("budget_max")
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise EventValidationError("budget_min cannot exceed budget_max")


def _normalize_phone(phone: str) -> str:
    formatted = format_e164(phone, get_settings().phone_default_region)
    if formatted is None:
        raise EventValidationError("Invalid phone number")
    return formatted


async def create_lead(db: AsyncSession, actor: Actor, values: dict) -> Lead:
    """Manual lead intake. Sales agents can only create leads assigned to themselves."""
    values = dict(values)
    assigned_to_id = values.get("assigned_to_id")
    if actor.role == Role.SALES_AGENT:
        if assigned_to_id is not None and assigned_to_id != actor.agent_id:
            raise ForbiddenError("Agents can only create leads assigned to themselves")
        values["assigned_to_id"] = actor.agent_id
    elif assigned_to_id is not None:
        await _load_agent(db, assigned_to_id)

    _validate_lead_values(values)
    values["phone"] = _normalize_phone(values["phone"])
    if values.get("next_followup_at") is not None:
        values["next_followup_at"] = _utc(values["next_followup_at"])

    lead = Lead(id=uuid.uuid4(), **values)
    db.add(lead)
    record_activity(
        db, actor.agent_id, "lead_created", "lead", lead.id, lead.id,
        {"lead_name": lead.name, "source": lead.source},
    )
    await _commit(db, "lead")

    logger.info(
        "Lead created: %s (source=%s)", mask_phone(lead.phone), lead.source,
        extra={"lead_id": str(lead.id), "agent_id": str(actor.agent_id), "event": "lead_created"},
    )
    return lead


async def edit_lead(db: AsyncSession, actor: Actor, lead_id: uuid.UUID, changes: dict) -> Lead:
    """
    Manual lead edit. Bypasses the stage policy: whatever stage/temperature the
    caller writes is stored as-is. Sales agents are limited to the editable
    field allow-list.
    """
    lead = await _load_lead(db, lead_id)
    ensure_can_access_lead(actor, lead)
    check_lead_patch_fields(actor, changes.keys())

    changes = dict(changes)
    _validate_lead_values(changes)
    if changes.get("phone") is not None:
        changes["phone"] = _normalize_phone(changes["phone"])
    if changes.get("next_followup_at") is not None:
        changes["next_followup_at"] = _utc(changes["next_followup_at"])
    if changes.get("assigned_to_id") is not None and changes["assigned_to_id"] != lead.assigned_to_id:
        await _load_agent(db, changes["assigned_to_id"])

    changed = sorted(field for field, value in changes.items() if getattr(lead, field) != value)
    for field in changed:
        setattr(lead, field, changes[field])

    if changed:
        record_activity(
            db, actor.agent_id, "lead_updated", "lead", lead.id, lead.id,
            {"lead_name": lead.name, "fields": changed},
        )
    await _commit(db, "lead")

    logger.info(
        "Lead %s edited: %s", str(lead.id)[:8], ", ".join(changed) or "no changes",
        extra={"lead_id": str(lead.id), "agent_id": str(actor.agent_id), "event": "lead_updated"},
    )
    return lead


async def toggle_priority(db: AsyncSession, actor: Actor, lead_id: uuid.UUID) -> Lead:
    lead = await _load_lead(db, lead_id)
    ensure_can_access_lead(actor, lead)

    lead.is_priority = not lead.is_priority
    record_activity(
        db, actor.agent_id, "lead_priority_toggled", "lead", lead.id, lead.id,
        {"lead_name": lead.name, "is_priority": lead.is_priority},
    )
    await _commit(db, "lead")
    return lead


async def bulk_assign(
    db: AsyncSession, actor: Actor, lead_ids: list[uuid.UUID], agent_id: uuid.UUID
) -> int:
    """Reassign many leads at once (admin / sales_manager). Returns rows updated."""
    ensure_privileged(actor)
    agent = await _load_agent(db, agent_id)

    result = await db.execute(
        update(Lead)
        .where(Lead.id.in_(lead_ids))
        .values(assigned_to_id=agent.id, updated_at=_now())
        .returning(Lead.id)
    )
    count = len(result.scalars().all())
    record_activity(
        db, actor.agent_id, "leads_bulk_assigned", "lead", None, None,
        {"agent_id": agent.id, "agent_name": agent.full_name, "count": count},
    )
    await _commit(db, "lead assignment")

    logger.info(
        "Bulk-assigned %d leads to %s", count, agent.full_name,
        extra={"agent_id": str(agent.id), "event": "leads_bulk_assigned"},
    )
    return count


async def delete_lead(db: AsyncSession, actor: Actor, lead_id: uuid.UUID) -> None:
    """Hard delete (admin / sales_manager). Owned rows go with the lead; the activity trail stays."""
    ensure_privileged(actor)
    lead = await _load_lead(db, lead_id)

    await db.execute(delete(FollowupTask).where(FollowupTask.lead_id == lead.id))
    call_ids = select(CallLog.id).where(CallLog.lead_id == lead.id)
    await db.execute(
        update(WebhookEvent)
        .where(WebhookEvent.call_log_id.in_(call_ids))
        .values(call_log_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(CallLog).where(CallLog.lead_id == lead.id))
    await db.execute(delete(SiteVisit).where(SiteVisit.lead_id == lead.id))
    record_activity(
        db, actor.agent_id, "lead_deleted", "lead", lead.id, lead.id, {"lead_name": lead.name}
    )
    await db.delete(lead)
    await _commit(db, "lead deletion")

    logger.info(
        "Lead %s deleted", str(lead.id)[:8],
        extra={"lead_id": str(lead.id), "agent_id": str(actor.agent_id), "event": "lead_deleted"},
    )


# === CALL LOG LIFECYCLE ===

async def _set_call_lifecycle(
    db: AsyncSession, actor: Actor, call_id: uuid.UUID, target: str, action: str
) -> CallLog:
    call = await _load_call(db, call_id)
    ensure_can_access_call(actor, call)

    if target == CallLifecycle.ARCHIVED and call.lifecycle == CallLifecycle.DELETED:
        raise EventValidationError("Restore a deleted call log before archiving it")

    if call.lifecycle != target:
        previous = call.lifecycle
        call.lifecycle = target
        call.lifecycle_changed_at = _now()
        record_activity(
            db, actor.agent_id, action, "call_log", call.id, call.lead_id,
            {"from": previous, "to": target},
        )
    await _commit(db, "call log")
    return call


async def archive_call_log(db: AsyncSession, actor: Actor, call_id: uuid.UUID) -> CallLog:
    return await _set_call_lifecycle(db, actor, call_id, CallLifecycle.ARCHIVED, "call_log_archived")


async def restore_call_log(db: AsyncSession, actor: Actor, call_id: uuid.UUID) -> CallLog:
    return await _set_call_lifecycle(db, actor, call_id, CallLifecycle.ACTIVE, "call_log_restored")


async def delete_call_log(db: AsyncSession, actor: Actor, call_id: uuid.UUID) -> CallLog:
    """Soft delete: the row moves to the trash view and out of every other view."""
    return await _set_call_lifecycle(db, actor, call_id, CallLifecycle.DELETED, "call_log_deleted")
