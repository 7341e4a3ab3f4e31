"""
Site visit model - scheduled or completed physical visit tied to a lead.

feedback holds the append-only history (one block per completion);
latest_feedback holds the current free-text note and is the only feedback
field later edits may replace.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from leadflow.database import Base


class SiteVisit(Base):
    __tablename__ = "site_visits"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id", ondelete="CASCADE"), nullable=False
    )
    conducted_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    # Inventory references (owned by the catalogue collaborator)
    property_id: Mapped[Optional[str]] = mapped_column(String(64))
    project_id: Mapped[Optional[str]] = mapped_column(String(64))

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default="scheduled", nullable=False
    )  # scheduled, completed, cancelled, rescheduled
    rating: Mapped[Optional[int]] = mapped_column(Integer)

    feedback: Mapped[Optional[str]] = mapped_column(Text)
    latest_feedback: Mapped[Optional[str]] = mapped_column(Text)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    lead: Mapped["Lead"] = relationship(back_populates="site_visits")

    __table_args__ = (
        Index("ix_site_visits_lead_id", "lead_id"),
        Index("ix_site_visits_conducted_by", "conducted_by"),
        Index("ix_site_visits_status_scheduled", "status", "scheduled_at"),
    )

    def __repr__(self) -> str:
        return f"<SiteVisit {self.scheduled_at} status={self.status} rating={self.rating}>"
