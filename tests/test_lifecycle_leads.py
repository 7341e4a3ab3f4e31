"""
Tests for lead operations in leadflow/services/lifecycle.py:
create, manual edit, priority flag, bulk assignment, deletion.
"""
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from leadflow.errors import EventValidationError, ForbiddenError, NotFoundError
from leadflow.models import ActivityLog, CallLog, FollowupTask, Lead, SiteVisit, WebhookEvent
from leadflow.services import lifecycle

NOW = datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc)


async def _count(db, model, *where):
    return await db.scalar(select(func.count()).select_from(model).where(*where))


class TestCreateLead:
    async def test_agent_lead_assigned_to_self(self, db, make_agent, as_actor):
        agent = await make_agent()

        lead = await lifecycle.create_lead(
            db, as_actor(agent), {"name": "Ravi", "phone": "98765 43210", "source": "walk_in"}
        )

        assert lead.assigned_to_id == agent.id
        assert lead.phone == "+919876543210"
        assert lead.phone_key == "9876543210"
        assert lead.stage == "new"
        assert lead.temperature == "warm"
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "lead_created"
        assert entry.lead_id == lead.id

    async def test_agent_cannot_assign_to_colleague(self, db, make_agent, as_actor):
        agent = await make_agent()
        colleague = await make_agent()

        with pytest.raises(ForbiddenError):
            await lifecycle.create_lead(
                db, as_actor(agent),
                {"name": "Ravi", "phone": "9876543210", "assigned_to_id": colleague.id},
            )
        assert await _count(db, Lead) == 0

    async def test_manager_assigns(self, db, make_agent, as_actor):
        manager = await make_agent(role="sales_manager")
        agent = await make_agent()

        lead = await lifecycle.create_lead(
            db, as_actor(manager), {"name": "Ravi", "phone": "9876543210", "assigned_to_id": agent.id}
        )
        assert lead.assigned_to_id == agent.id

    async def test_manager_unassigned_lead(self, db, make_agent, as_actor):
        manager = await make_agent(role="admin")
        lead = await lifecycle.create_lead(db, as_actor(manager), {"name": "Ravi", "phone": "9876543210"})
        assert lead.assigned_to_id is None

    @pytest.mark.parametrize("values", [
        {"name": "X", "phone": "not a phone"},
        {"name": "X", "phone": "9876543210", "stage": "won"},
        {"name": "X", "phone": "9876543210", "temperature": "lukewarm"},
        {"name": "X", "phone": "9876543210", "budget_min": 90.0, "budget_max": 50.0},
    ])
    async def test_invalid_values(self, db, make_agent, as_actor, values):
        agent = await make_agent()
        with pytest.raises(EventValidationError):
            await lifecycle.create_lead(db, as_actor(agent), values)
        assert await _count(db, Lead) == 0


class TestEditLead:
    async def test_manual_stage_bypasses_policy(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="new")

        await lifecycle.edit_lead(
            db, as_actor(agent), lead.id, {"stage": "token", "temperature": "cold", "notes": "Paid token"}
        )

        assert lead.stage == "token"
        assert lead.temperature == "cold"
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "lead_updated"
        assert entry.details["fields"] == ["notes", "stage", "temperature"]

    async def test_no_change_no_activity(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="new")

        await lifecycle.edit_lead(db, as_actor(agent), lead.id, {"stage": "new"})

        assert await _count(db, ActivityLog) == 0

    async def test_agent_field_allow_list(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)

        with pytest.raises(ForbiddenError):
            await lifecycle.edit_lead(db, as_actor(agent), lead.id, {"assigned_to_id": uuid.uuid4()})

    async def test_manager_reassigns_and_rephones(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="sales_manager")
        agent = await make_agent()
        lead = await make_lead()

        await lifecycle.edit_lead(
            db, as_actor(manager), lead.id, {"assigned_to_id": agent.id, "phone": "+91 99887 76655"}
        )

        assert lead.assigned_to_id == agent.id
        assert lead.phone == "+919988776655"
        assert lead.phone_key == "9988776655"

    async def test_reassign_to_unknown_agent(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="admin")
        lead = await make_lead()

        with pytest.raises(NotFoundError):
            await lifecycle.edit_lead(db, as_actor(manager), lead.id, {"assigned_to_id": uuid.uuid4()})

    async def test_invalid_stage(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        with pytest.raises(EventValidationError):
            await lifecycle.edit_lead(db, as_actor(agent), lead.id, {"stage": "rescheduled"})

    async def test_null_on_required_field_rejected(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="sales_manager")
        lead = await make_lead(name="Ravi", stage="contacted")

        with pytest.raises(EventValidationError):
            await lifecycle.edit_lead(db, as_actor(manager), lead.id, {"name": None})
        with pytest.raises(EventValidationError):
            await lifecycle.edit_lead(db, as_actor(manager), lead.id, {"stage": None, "notes": "x"})

        assert lead.name == "Ravi"
        assert lead.stage == "contacted"
        assert lead.notes is None
        assert await _count(db, ActivityLog) == 0

    async def test_null_on_optional_field_clears_it(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, notes="old note")

        await lifecycle.edit_lead(db, as_actor(agent), lead.id, {"notes": None})

        assert lead.notes is None


class TestPriorityAndAssignment:
    async def test_toggle_priority(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)

        await lifecycle.toggle_priority(db, as_actor(agent), lead.id)
        assert lead.is_priority is True
        await lifecycle.toggle_priority(db, as_actor(agent), lead.id)
        assert lead.is_priority is False

    async def test_bulk_assign(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="sales_manager")
        agent = await make_agent()
        leads = [await make_lead() for _ in range(3)]

        updated = await lifecycle.bulk_assign(db, as_actor(manager), [l.id for l in leads[:2]], agent.id)

        assert updated == 2
        assigned = (await db.execute(
            select(Lead.id).where(Lead.assigned_to_id == agent.id)
        )).scalars().all()
        assert sorted(assigned) == sorted(l.id for l in leads[:2])
        entry = (await db.execute(select(ActivityLog))).scalar_one()
        assert entry.action == "leads_bulk_assigned"
        assert entry.details["count"] == 2

    async def test_bulk_assign_agent_forbidden(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead()
        with pytest.raises(ForbiddenError):
            await lifecycle.bulk_assign(db, as_actor(agent), [lead.id], agent.id)

    async def test_bulk_assign_unknown_agent(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="admin")
        lead = await make_lead()
        with pytest.raises(NotFoundError):
            await lifecycle.bulk_assign(db, as_actor(manager), [lead.id], uuid.uuid4())


class TestDeleteLead:
    async def test_removes_owned_rows_keeps_trail(self, db, make_agent, make_lead, as_actor):
        manager = await make_agent(role="sales_manager")
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        lead_id = lead.id
        await lifecycle.record_call(db, as_actor(agent), lead_id, "not_connected", now=NOW)
        await lifecycle.schedule_site_visit(db, as_actor(agent), lead_id, NOW, now=NOW)
        outcome = await lifecycle.record_webhook_call(
            db, {"callto": lead.phone_key, "emp_phone": agent.phone, "dialstatus": "ANSWER", "callid": "X1"},
            now=NOW,
        )
        assert outcome.applied

        await lifecycle.delete_lead(db, as_actor(manager), lead_id)

        assert await db.get(Lead, lead_id) is None
        assert await _count(db, CallLog) == 0
        assert await _count(db, FollowupTask) == 0
        assert await _count(db, SiteVisit) == 0
        linked = (await db.execute(select(WebhookEvent.call_log_id))).scalar_one()
        assert linked is None
        actions = (await db.execute(
            select(ActivityLog.action).where(ActivityLog.lead_id == lead_id)
        )).scalars().all()
        assert "lead_deleted" in actions
        assert "call_logged" in actions

    async def test_agent_cannot_delete(self, db, make_agent, make_lead, as_actor):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        with pytest.raises(ForbiddenError):
            await lifecycle.delete_lead(db, as_actor(agent), lead.id)

    async def test_unknown_lead(self, db, make_agent, as_actor):
        manager = await make_agent(role="admin")
        with pytest.raises(NotFoundError):
            await lifecycle.delete_lead(db, as_actor(manager), uuid.uuid4())
