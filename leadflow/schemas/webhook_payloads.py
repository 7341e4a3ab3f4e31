"""
Webhook payload schemas - raw input from the telephony provider.
MCUBE posts the call summary once the call ends. Every field is optional at
this layer: a malformed delivery is still acknowledged and recorded.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict


class McubeCallPayload(BaseModel):
    """MCUBE end-of-call callback."""
    model_config = ConfigDict(extra="allow")

    callto: Optional[str] = None  # customer (lead) number
    emp_phone: Optional[str] = None  # agent number
    dialstatus: Optional[str] = None  # ANSWER, Busy, NoAnswer, CANCEL
    filename: Optional[str] = None  # recording URL
    answeredtime: Optional[str] = None  # HH:MM:SS
    callid: Optional[str] = None
