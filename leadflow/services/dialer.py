"""
MCUBE outbound dialer - click-to-call from the CRM.

MCUBE rings the agent's phone first (exenumber), then bridges to the lead
(custnumber). The call result comes back later through the MCUBE webhook.
No CRM state is touched here: a dispatch failure is reported to the caller
and nothing needs rolling back.

All calls have a 10-second timeout by default (mcube_timeout_seconds).
"""
import logging
import uuid
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from leadflow.config import get_settings
from leadflow.errors import EventValidationError, ExternalDispatchError, NotFoundError
from leadflow.models.agent import Agent
from leadflow.models.lead import Lead
from leadflow.services.access import Actor, ensure_can_access_lead
from leadflow.utils.phone import mask_phone

logger = logging.getLogger(__name__)


class McubeDialer:
    """MCUBE outbound-calls REST client."""

    def __init__(
        self,
        api_url: str,
        token: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings=None) -> "McubeDialer":
        settings = settings or get_settings()
        return cls(settings.mcube_api_url, settings.mcube_token, settings.mcube_timeout_seconds)

    async def dial(self, agent_phone: str, lead_phone: str) -> dict:
        """Ask MCUBE to bridge agent_phone to lead_phone. Raises ExternalDispatchError."""
        if not self.token:
            raise ExternalDispatchError("MCUBE token is not configured")

        payload = {
            "HTTP_AUTHORIZATION": self.token,
            "exenumber": agent_phone,
            "custnumber": lead_phone,
            "refurl": "1",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "MCUBE rejected outbound call to %s: HTTP %d",
                mask_phone(lead_phone), e.response.status_code,
                extra={"error_code": ExternalDispatchError.error_code},
            )
            raise ExternalDispatchError(
                f"MCUBE rejected the call (HTTP {e.response.status_code})"
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "MCUBE unreachable for outbound call to %s: %s",
                mask_phone(lead_phone), str(e),
                extra={"error_code": ExternalDispatchError.error_code},
            )
            raise ExternalDispatchError("Failed to initiate call via MCUBE") from e

        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}


async def initiate_outbound_call(
    db: AsyncSession,
    actor: Actor,
    lead_id: uuid.UUID,
    dialer: Optional[McubeDialer] = None,
) -> dict:
    """Trigger an MCUBE call from the acting agent's phone to the lead."""
    lead = await db.get(Lead, lead_id)
    if lead is None:
        raise NotFoundError("Lead not found")
    ensure_can_access_lead(actor, lead)

    agent = await db.get(Agent, actor.agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    if not agent.phone:
        raise EventValidationError("Agent phone number not found")

    dialer = dialer or McubeDialer.from_settings()
    data = await dialer.dial(agent.phone, lead.phone)
    logger.info(
        "Outbound call initiated to %s",
        mask_phone(lead.phone),
        extra={"lead_id": str(lead.id), "agent_id": str(agent.id), "event": "dial"},
    )
    return data
