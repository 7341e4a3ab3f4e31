"""
Telephony callback ledger. Every MCUBE delivery gets a row, whatever happened
to it. A provider call id already marked processed is never applied again;
unmatched and ambiguous deliveries wait here for manual reconciliation.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from leadflow.database import Base


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    source: Mapped[str] = mapped_column(String(50), nullable=False)  # mcube
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_call_id: Mapped[Optional[str]] = mapped_column(String(100))
    raw_payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    call_log_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("call_logs.id", ondelete="SET NULL")
    )
    # received | processed | duplicate | unmatched | ambiguous | failed
    processing_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="received", server_default="received"
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    correlation_id: Mapped[Optional[str]] = mapped_column(String(64))

    __table_args__ = (
        Index("ix_webhook_events_dedupe_call", "source", "provider_call_id", "processing_status"),
        Index("ix_webhook_events_dedupe_hash", "source", "payload_hash", "processing_status"),
        Index("ix_webhook_events_received_at", "received_at"),
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent {self.source} {self.processing_status} call={self.provider_call_id}>"
