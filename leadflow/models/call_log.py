"""
Call log model - immutable record of one call attempt.
Created by an agent or by the telephony webhook. The only mutation allowed
afterwards is the lifecycle state (active → archived / deleted and back).
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from leadflow.database import Base


class CallLog(Base):
    __tablename__ = "call_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )

    call_status: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # connected_positive, connected_callback, not_connected, not_interested
    call_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    callback_scheduled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Telephony provider references (webhook-created calls only)
    provider_call_id: Mapped[Optional[str]] = mapped_column(String(100))
    recording_url: Mapped[Optional[str]] = mapped_column(Text)

    lifecycle: Mapped[str] = mapped_column(
        String(20), default="active", nullable=False
    )  # active, archived, deleted
    lifecycle_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    lead: Mapped["Lead"] = relationship(back_populates="call_logs")
    agent: Mapped["Agent"] = relationship(lazy="select")

    __table_args__ = (
        Index("ix_call_logs_lead_id", "lead_id"),
        Index("ix_call_logs_agent_date", "agent_id", "call_date"),
        Index("ix_call_logs_status", "call_status"),
        Index("ix_call_logs_lifecycle", "lifecycle"),
        Index("ix_call_logs_provider_call_id", "provider_call_id"),
    )

    def __repr__(self) -> str:
        return f"<CallLog {self.call_status} lifecycle={self.lifecycle}>"
