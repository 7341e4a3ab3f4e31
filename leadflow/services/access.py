"""
Access guard - row-level authorization for CRM actions.

admin and sales_manager may act on anything. A sales_agent may only act on
leads assigned to them, visits they conduct (or that belong to their leads),
and calls they logged. Every failure raises ForbiddenError before any write.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import or_, select

from leadflow.errors import ForbiddenError
from leadflow.models.call_log import CallLog
from leadflow.models.lead import Lead
from leadflow.models.site_visit import SiteVisit
from leadflow.vocabulary import Role

logger = logging.getLogger(__name__)

# Fields a sales_agent may write through a manual lead edit
AGENT_EDITABLE_LEAD_FIELDS = frozenset({
    "notes",
    "stage",
    "temperature",
    "budget_min",
    "budget_max",
    "preferred_location",
    "next_followup_at",
    "lost_reason",
})


class Actor:
    """Identity context for one request, as supplied by the identity service."""

    def __init__(self, agent_id: uuid.UUID, role: str):
        self.agent_id = agent_id
        self.role = role

    @property
    def is_privileged(self) -> bool:
        return self.role in Role.PRIVILEGED

    def __repr__(self) -> str:
        return f"<Actor {self.agent_id} role={self.role}>"


def _deny(actor: Actor, what: str):
    logger.info(
        "Access denied: %s",
        what,
        extra={"agent_id": str(actor.agent_id), "error_code": ForbiddenError.error_code},
    )
    raise ForbiddenError(f"Access denied to {what}")


def ensure_privileged(actor: Actor) -> None:
    if not actor.is_privileged:
        _deny(actor, "this operation")


def ensure_can_access_lead(actor: Actor, lead: Lead) -> None:
    if actor.is_privileged:
        return
    if lead.assigned_to_id != actor.agent_id:
        _deny(actor, "lead")


def ensure_can_access_visit(actor: Actor, visit: SiteVisit, lead: Optional[Lead] = None) -> None:
    if actor.is_privileged:
        return
    if visit.conducted_by == actor.agent_id:
        return
    if lead is not None and lead.assigned_to_id == actor.agent_id:
        return
    _deny(actor, "site visit")


def ensure_can_delete_visit(actor: Actor, visit: SiteVisit) -> None:
    if actor.is_privileged:
        return
    if visit.conducted_by != actor.agent_id:
        _deny(actor, "site visit")


def ensure_can_access_call(actor: Actor, call: CallLog) -> None:
    if actor.is_privileged:
        return
    if call.agent_id != actor.agent_id:
        _deny(actor, "call log")


def check_lead_patch_fields(actor: Actor, fields) -> None:
    """Raise ForbiddenError if a sales_agent tries to write a field outside the allow-list."""
    if actor.is_privileged:
        return
    blocked = sorted(set(fields) - AGENT_EDITABLE_LEAD_FIELDS)
    if blocked:
        _deny(actor, f"fields {', '.join(blocked)}")


def scope_leads_query(stmt, actor: Actor):
    if actor.is_privileged:
        return stmt
    return stmt.where(Lead.assigned_to_id == actor.agent_id)


def scope_visits_query(stmt, actor: Actor):
    if actor.is_privileged:
        return stmt
    own_leads = select(Lead.id).where(Lead.assigned_to_id == actor.agent_id)
    return stmt.where(
        or_(SiteVisit.conducted_by == actor.agent_id, SiteVisit.lead_id.in_(own_leads))
    )


def scope_calls_query(stmt, actor: Actor):
    if actor.is_privileged:
        return stmt
    return stmt.where(CallLog.agent_id == actor.agent_id)
