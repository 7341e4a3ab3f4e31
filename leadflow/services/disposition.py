"""
Disposition mapper - telephony provider vocabulary to CRM call outcomes.

MCUBE reports ANSWER / Busy / NoAnswer / CANCEL. Anything the mapper does not
recognise (including an empty status) is treated as not_connected.
"""
import logging
from typing import Optional

from leadflow.errors import EventValidationError
from leadflow.vocabulary import CallOutcome

logger = logging.getLogger(__name__)

# Provider dialstatus (normalized: upper-case, no separators) → CRM outcome
DIALSTATUS_MAP = {
    "ANSWER": CallOutcome.CONNECTED_POSITIVE,
    "ANSWERED": CallOutcome.CONNECTED_POSITIVE,
    "BUSY": CallOutcome.NOT_CONNECTED,
    "NOANSWER": CallOutcome.NOT_CONNECTED,
    "CANCEL": CallOutcome.NOT_CONNECTED,
    "CANCELLED": CallOutcome.NOT_CONNECTED,
}


def _normalize_status(raw: str) -> str:
    return "".join(ch for ch in raw.upper() if ch.isalnum())


def map_dialstatus(raw: Optional[str]) -> str:
    """Map a provider dialstatus to a CallOutcome. Never raises."""
    if not raw or not raw.strip():
        return CallOutcome.NOT_CONNECTED
    outcome = DIALSTATUS_MAP.get(_normalize_status(raw))
    if outcome is None:
        logger.info("Unrecognised dialstatus %r, treating as not_connected", raw)
        return CallOutcome.NOT_CONNECTED
    return outcome


def parse_duration(raw: Optional[str]) -> Optional[int]:
    """
    Convert a provider HH:MM:SS duration to whole seconds.

    - "00:00:04" → 4
    - "01:02:03" → 3723
    - None / "" / "4" / "aa:bb:cc" / "00:-1:00" → None
    """
    if not raw:
        return None
    parts = str(raw).strip().split(":")
    if len(parts) != 3:
        return None
    try:
        hours, minutes, seconds = (int(p) for p in parts)
    except ValueError:
        return None
    if hours < 0 or minutes < 0 or seconds < 0:
        return None
    return hours * 3600 + minutes * 60 + seconds


def build_webhook_call_notes(callid: Optional[str], filename: Optional[str]) -> str:
    """Note attached to every call log created by the telephony webhook."""
    return (
        "System Auto-Logged via MCUBE.\n"
        f"Call ID: {callid or 'N/A'}\n"
        f"Recording: {filename or 'No recording provided'}"
    )


def call_outcome_from_status(raw: Optional[str]) -> str:
    """Validate an agent-entered call status. Raises EventValidationError."""
    status = (raw or "").strip().lower()
    if status not in CallOutcome.ALL:
        raise EventValidationError(
            f"call_status must be one of {sorted(CallOutcome.ALL)}, got {raw!r}"
        )
    return status
