"""
Webhook endpoints - end-of-call callbacks from the MCUBE telephony provider.

MCUBE retries until it gets a 200, so this endpoint acknowledges every
delivery. Whatever happened (applied, duplicate, unmatched, ambiguous,
failed) is recorded on the webhook_events table and reported in the body.
"""
import json
import logging

from fastapi import APIRouter, Request, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from leadflow.database import get_db
from leadflow.schemas.api_responses import WebhookAck
from leadflow.services.lifecycle import record_webhook_call

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/webhook", tags=["webhooks"])


async def _read_payload(request: Request) -> dict:
    """MCUBE posts JSON or form-encoded bodies depending on account setup."""
    content_type = request.headers.get("content-type", "")
    try:
        if "application/json" in content_type:
            body = await request.json()
            return body if isinstance(body, dict) else {"body": body}
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    except (ValueError, json.JSONDecodeError, HTTPException, MultiPartException) as e:
        logger.warning("Unreadable MCUBE callback body: %s", str(e))
        return {}


@router.post("/mcube", response_model=WebhookAck)
async def mcube_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """MCUBE end-of-call webhook. Always 200."""
    payload = await _read_payload(request)
    outcome = await record_webhook_call(db, payload)
    return WebhookAck(status=outcome.status, message=outcome.message or "Webhook received")
