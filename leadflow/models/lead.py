"""
Lead model - the aggregate root of the sales pipeline.
Tracks lifecycle: new → contacted → site_visit → negotiation → token → completed.
Terminal states: completed, closed, lost.

Stage and temperature are mutated by the lifecycle orchestrator (automated
transitions) or by direct agent edits. Never hard-deleted except by a privileged role.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Float, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from leadflow.database import Base
from leadflow.utils.phone import phone_match_key


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )

    # Contact info
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    phone_key: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    email: Mapped[Optional[str]] = mapped_column(String(255))
    source: Mapped[str] = mapped_column(String(50), nullable=False, default="manual")

    # Pipeline
    stage: Mapped[str] = mapped_column(String(30), default="new", nullable=False)
    temperature: Mapped[str] = mapped_column(
        String(10), default="warm", nullable=False
    )  # hot, warm, cold
    lost_reason: Mapped[Optional[str]] = mapped_column(Text)
    is_priority: Mapped[bool] = mapped_column(Boolean, default=False)

    # Requirements
    budget_min: Mapped[Optional[float]] = mapped_column(Float)
    budget_max: Mapped[Optional[float]] = mapped_column(Float)
    preferred_location: Mapped[Optional[str]] = mapped_column(String(255))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Ownership
    assigned_to_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    # Follow-up tracking
    next_followup_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_contacted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    assigned_to: Mapped[Optional["Agent"]] = relationship(lazy="select")
    call_logs: Mapped[list["CallLog"]] = relationship(
        back_populates="lead", lazy="select", order_by="CallLog.call_date", passive_deletes=True
    )
    site_visits: Mapped[list["SiteVisit"]] = relationship(
        back_populates="lead", lazy="select", order_by="SiteVisit.scheduled_at", passive_deletes=True
    )
    followup_tasks: Mapped[list["FollowupTask"]] = relationship(
        back_populates="lead", lazy="select", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_leads_phone_key", "phone_key"),
        Index("ix_leads_stage", "stage"),
        Index("ix_leads_assigned_to", "assigned_to_id"),
        Index("ix_leads_created_at", "created_at"),
        Index("ix_leads_next_followup", "next_followup_at"),
    )

    @validates("phone")
    def _sync_phone_key(self, key, value):
        self.phone_key = phone_match_key(value)
        return value

    def __repr__(self) -> str:
        masked = self.phone[:6] + "***" if self.phone else "unknown"
        return f"<Lead {masked} stage={self.stage} temperature={self.temperature}>"
