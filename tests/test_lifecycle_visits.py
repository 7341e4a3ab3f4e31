"""
Tests for site visit operations in leadflow/services/lifecycle.py.

Covers:
- Scheduling moves early-stage leads to site_visit
- Completion with rating / without rating / with explicit next stage
- Rating edits recompute temperature and keep the feedback history
- Reschedule, cancel, delete
- Authorization and validation
"""
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from leadflow.errors import EventValidationError, ForbiddenError, NotFoundError
from leadflow.models import ActivityLog, FollowupTask, SiteVisit
from leadflow.services import lifecycle

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)


def _naive(value):
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def _count(db, model, *where):
    return await db.scalar(select(func.count()).select_from(model).where(*where))


@pytest.fixture
def make_visit(db):
    """Persist a visit directly, bypassing scheduling."""
    async def _make(lead, agent, status="scheduled", **kwargs) -> SiteVisit:
        visit = SiteVisit(
            lead_id=lead.id,
            conducted_by=agent.id,
            scheduled_at=kwargs.pop("scheduled_at", NOW + timedelta(days=1)),
            status=status,
            **kwargs,
        )
        db.add(visit)
        await db.commit()
        return visit
    return _make


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------

class TestScheduleSiteVisit:
    async def test_new_lead_moves_to_site_visit(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="new", temperature="cold")
        when = NOW + timedelta(days=2)

        visit = await lifecycle.schedule_site_visit(
            db, as_actor(agent), lead.id, when, property_id="P-7", now=NOW
        )

        assert visit.status == "scheduled"
        assert visit.conducted_by == agent.id
        assert visit.property_id == "P-7"
        assert _naive(visit.scheduled_at) == _naive(when)
        assert lead.stage == "site_visit"
        assert lead.temperature == "warm"

        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "site_visit_scheduled"
        assert entry.entity_id == visit.id

    async def test_later_stage_untouched(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="negotiation", temperature="hot")

        await lifecycle.schedule_site_visit(db, as_actor(agent), lead.id, NOW, now=NOW)

        assert lead.stage == "negotiation"
        assert lead.temperature == "hot"

    async def test_agent_cannot_schedule_for_colleague(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        colleague = await make_agent()
        lead = await make_lead(assigned_to=agent)

        with pytest.raises(ForbiddenError):
            await lifecycle.schedule_site_visit(
                db, as_actor(agent), lead.id, NOW, conducted_by=colleague.id
            )
        assert await _count(db, SiteVisit) == 0

    async def test_manager_assigns_conductor(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="sales_manager")
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)

        visit = await lifecycle.schedule_site_visit(
            db, as_actor(manager), lead.id, NOW, conducted_by=agent.id, now=NOW
        )
        assert visit.conducted_by == agent.id

    async def test_manager_unknown_conductor(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="admin")
        lead = await make_lead()

        with pytest.raises(NotFoundError):
            await lifecycle.schedule_site_visit(
                db, as_actor(manager), lead.id, NOW, conducted_by=uuid.uuid4()
            )


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------

class TestCompleteSiteVisit:
    async def test_rating_five_completes_hot(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit", temperature="warm")
        visit = await make_visit(lead, agent)

        await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, rating=5, now=NOW)

        assert visit.status == "completed"
        assert visit.rating == 5
        assert _naive(visit.completed_at) == _naive(NOW)
        assert lead.stage == "completed"
        assert lead.temperature == "hot"

    @pytest.mark.parametrize("rating,temperature", [(4, "hot"), (3, "warm"), (2, "cold")])
    async def test_rating_thresholds(self, db, make_agent, make_lead, make_visit, as_actor, rating, temperature):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)

        await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, rating=rating, now=NOW)

        assert lead.temperature == temperature

    async def test_explicit_next_stage(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit", temperature="warm")
        visit = await make_visit(lead, agent)

        await lifecycle.complete_site_visit(
            db, as_actor(agent), visit.id, rating=2, next_stage="negotiation", now=NOW
        )

        assert lead.stage == "negotiation"
        assert lead.temperature == "hot"
        assert await _count(db, ActivityLog) == 1
        assert await _count(db, FollowupTask) == 0
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "site_visit_completed"
        assert entry.details["previous_stage"] == "site_visit"

    async def test_next_stage_without_rating(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit", temperature="warm")
        visit = await make_visit(lead, agent)

        await lifecycle.complete_site_visit(
            db, as_actor(agent), visit.id, rating=None, next_stage="negotiation", now=NOW
        )

        assert lead.stage == "negotiation"
        assert lead.temperature == "hot"
        assert visit.rating is None
        assert await _count(db, ActivityLog) == 1
        assert await _count(db, FollowupTask) == 0

    async def test_next_stage_new_rejected(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)

        with pytest.raises(EventValidationError):
            await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, next_stage="new", now=NOW)

        assert visit.status == "scheduled"
        assert lead.stage == "site_visit"
        assert await _count(db, ActivityLog) == 0

    async def test_feedback_history_block(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent, feedback="Prior note")

        await lifecycle.complete_site_visit(
            db, as_actor(agent), visit.id, rating=4, feedback="Liked the layout", now=NOW
        )

        assert visit.feedback == (
            "Prior note\n\n"
            "--- COMPLETED [02/03/2026, 03:00:00 PM] ---\n"
            "Outcome: Liked the layout"
        )
        assert visit.latest_feedback == "Liked the layout"

    async def test_rescheduled_is_not_a_stage(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)

        with pytest.raises(EventValidationError):
            await lifecycle.complete_site_visit(
                db, as_actor(agent), visit.id, rating=4, next_stage="rescheduled"
            )
        assert visit.status == "scheduled"
        assert lead.stage == "site_visit"

    async def test_rating_out_of_range(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        visit = await make_visit(lead, agent)

        with pytest.raises(EventValidationError):
            await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, rating=6)


# ---------------------------------------------------------------------------
# Rating edits
# ---------------------------------------------------------------------------

class TestRatingEdit:
    async def test_edit_recomputes_temperature_keeps_stage(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)
        await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, rating=5, now=NOW)
        assert (lead.stage, lead.temperature) == ("completed", "hot")

        await lifecycle.update_site_visit(db, as_actor(agent), visit.id, rating=2, now=NOW)

        assert visit.rating == 2
        assert lead.stage == "completed"
        assert lead.temperature == "cold"
        actions = (await db.execute(select(ActivityLog.action))).scalars().all()
        assert sorted(actions) == ["site_visit_completed", "site_visit_rating_updated"]

    async def test_edit_with_next_stage(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)
        await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, rating=2, now=NOW)

        await lifecycle.update_site_visit(
            db, as_actor(agent), visit.id, rating=5, next_stage="token", now=NOW
        )

        assert (lead.stage, lead.temperature) == ("token", "hot")

    async def test_feedback_history_survives_rating_edit(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)
        await lifecycle.complete_site_visit(
            db, as_actor(agent), visit.id, rating=4, feedback="Great view", now=NOW
        )
        history = visit.feedback

        await lifecycle.update_site_visit(
            db, as_actor(agent), visit.id, rating=3, feedback="Second thoughts on price",
            now=NOW + timedelta(days=1),
        )

        assert visit.feedback == history
        assert "--- COMPLETED [" in visit.feedback
        assert "Outcome: Great view" in visit.feedback
        assert visit.latest_feedback == "Second thoughts on price"
        assert lead.temperature == "warm"

    async def test_same_rating_is_not_an_edit(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)
        await lifecycle.complete_site_visit(db, as_actor(agent), visit.id, rating=4, now=NOW)

        with pytest.raises(EventValidationError):
            await lifecycle.update_site_visit(
                db, as_actor(agent), visit.id, rating=4, next_stage="token"
            )
        assert lead.stage == "completed"


# ---------------------------------------------------------------------------
# Other edits
# ---------------------------------------------------------------------------

class TestOtherVisitEdits:
    async def test_reschedule_leaves_lead(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit", temperature="warm")
        visit = await make_visit(lead, agent)
        new_date = NOW + timedelta(days=5)

        await lifecycle.update_site_visit(
            db, as_actor(agent), visit.id, status="rescheduled", scheduled_at=new_date, now=NOW
        )

        assert visit.status == "rescheduled"
        assert _naive(visit.scheduled_at) == _naive(new_date)
        assert (lead.stage, lead.temperature) == ("site_visit", "warm")
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "site_visit_rescheduled"
        assert "new_date" in entry.details

    async def test_cancel(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)

        await lifecycle.update_site_visit(db, as_actor(agent), visit.id, status="cancelled")

        assert visit.status == "cancelled"
        assert lead.stage == "site_visit"
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "site_visit_cancelled"

    async def test_next_stage_on_plain_edit_rejected(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        visit = await make_visit(lead, agent)

        with pytest.raises(EventValidationError):
            await lifecycle.update_site_visit(db, as_actor(agent), visit.id, next_stage="token")

    async def test_unknown_status(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        visit = await make_visit(lead, agent)

        with pytest.raises(EventValidationError):
            await lifecycle.update_site_visit(db, as_actor(agent), visit.id, status="done")

    async def test_lead_owner_may_edit_colleagues_visit(self, db, make_agent, make_lead, make_visit, as_actor):
        owner = await make_agent()
        colleague = await make_agent()
        lead = await make_lead(assigned_to=owner, stage="site_visit")
        visit = await make_visit(lead, colleague)

        await lifecycle.complete_site_visit(db, as_actor(owner), visit.id, rating=4, now=NOW)
        assert lead.stage == "completed"

    async def test_stranger_denied(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        stranger = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="site_visit")
        visit = await make_visit(lead, agent)

        with pytest.raises(ForbiddenError):
            await lifecycle.complete_site_visit(db, as_actor(stranger), visit.id, rating=5)
        assert lead.stage == "site_visit"

    async def test_unknown_visit(self, db, make_agent, as_actor):
        agent = await make_agent()
        with pytest.raises(NotFoundError):
            await lifecycle.update_site_visit(db, as_actor(agent), uuid.uuid4(), status="cancelled")


class TestDeleteSiteVisit:
    async def test_conductor_deletes(self, db, make_agent, make_lead, make_visit, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        visit = await make_visit(lead, agent)
        visit_id = visit.id

        await lifecycle.delete_site_visit(db, as_actor(agent), visit_id)

        assert await db.get(SiteVisit, visit_id) is None
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "site_visit_deleted"
        assert entry.entity_id == visit_id

    async def test_lead_owner_cannot_delete_colleagues_visit(self, db, make_agent, make_lead, make_visit, as_actor):
        owner = await make_agent()
        colleague = await make_agent()
        lead = await make_lead(assigned_to=owner)
        visit = await make_visit(lead, colleague)

        with pytest.raises(ForbiddenError):
            await lifecycle.delete_site_visit(db, as_actor(owner), visit.id)
