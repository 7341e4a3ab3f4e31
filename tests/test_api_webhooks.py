"""
Tests for leadflow/api/webhooks.py - MCUBE end-of-call callback.

Covers:
- JSON and form-encoded deliveries
- Always 200, with the processing status in the body
- Duplicate and unmatched deliveries
- Unreadable bodies
"""
from sqlalchemy import func, select

from leadflow.models import CallLog, WebhookEvent

URL = "/api/v1/webhook/mcube"


async def _count(db, model):
    return await db.scalar(select(func.count()).select_from(model))


class TestMcubeWebhook:
    async def test_json_delivery_applied(self, client, db, make_agent, make_lead):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent, stage="new")

        response = await client.post(URL, json={
            "callto": "91" + lead.phone_key,
            "emp_phone": agent.phone,
            "dialstatus": "ANSWER",
            "answeredtime": "00:02:00",
            "callid": "MC-77",
        })

        assert response.status_code == 200
        assert response.json() == {"status": "processed", "message": "Webhook processed successfully"}
        call = (await db.execute(select(CallLog))).scalar_one()
        assert call.duration_seconds == 120
        assert lead.stage == "contacted"

    async def test_form_delivery_applied(self, client, db, make_agent, make_lead):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)

        response = await client.post(URL, data={
            "callto": lead.phone_key,
            "emp_phone": agent.phone,
            "dialstatus": "NoAnswer",
            "callid": "MC-78",
        })

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        call = (await db.execute(select(CallLog))).scalar_one()
        assert call.call_status == "not_connected"

    async def test_duplicate_acknowledged(self, client, db, make_agent, make_lead):
        agent = await make_agent()
        lead = await make_lead(assigned_to=agent)
        payload = {"callto": lead.phone_key, "emp_phone": agent.phone, "dialstatus": "ANSWER", "callid": "MC-79"}

        await client.post(URL, json=payload)
        second = await client.post(URL, json=payload)

        assert second.status_code == 200
        assert second.json()["status"] == "duplicate"
        assert await _count(db, CallLog) == 1

    async def test_unmatched_acknowledged(self, client, db):
        response = await client.post(URL, json={
            "callto": "9111111111", "emp_phone": "8111111111", "dialstatus": "ANSWER",
        })

        assert response.status_code == 200
        assert response.json()["status"] == "unmatched"
        assert await _count(db, CallLog) == 0
        assert await _count(db, WebhookEvent) == 1

    async def test_garbage_body_acknowledged(self, client, db):
        response = await client.post(
            URL, content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "unmatched"

    async def test_broken_multipart_acknowledged(self, client, db):
        response = await client.post(
            URL, content=b"--xyz\r\nbroken", headers={"Content-Type": "multipart/form-data"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "unmatched"
        assert await _count(db, CallLog) == 0
        assert await _count(db, WebhookEvent) == 1

    async def test_no_auth_required(self, client):
        response = await client.post(URL, json={})
        assert response.status_code == 200
