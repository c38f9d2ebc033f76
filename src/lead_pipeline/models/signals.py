"""IntentSignal SQLAlchemy model for behavioral buying signals."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class IntentSignal(Base):
    """SQLAlchemy model representing a detected intent signal.

    Attributes:
        id: Unique identifier (UUID).
        lead_id: Scraped lead the signal belongs to.
        signal_type: e.g. recent_funding, rapid_growth, hot_lead_alert.
        signal_source: Where the signal came from (enrichment_data, ...).
        signal_data: Signal-specific details.
        confidence_score: Confidence in the signal (0-100).
        detected_at: When the signal was recorded.
    """

    __tablename__ = "intent_signals"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    lead_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("scraped_leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    signal_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    signal_source: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    signal_data: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    confidence_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        index=True
    )

    def __repr__(self) -> str:
        return f"<IntentSignal(lead_id={self.lead_id!r}, signal_type={self.signal_type!r})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert signal to dictionary representation."""
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "signal_type": self.signal_type,
            "signal_source": self.signal_source,
            "signal_data": self.signal_data or {},
            "confidence_score": self.confidence_score,
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
        }
