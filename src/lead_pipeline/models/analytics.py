"""SourceAnalytics model: per-source performance snapshots."""

import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import Date, DateTime, Float, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class SourceAnalytics(Base):
    """Aggregated metrics for one lead source over a reporting period.

    Rows are upserted on (source_type, source_identifier, period_start), so rerunning
    a report for the same window overwrites the previous snapshot.
    """

    __tablename__ = "source_analytics"
    __table_args__ = (
        UniqueConstraint(
            "source_type", "source_identifier", "period_start",
            name="uq_source_analytics_period",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    source_type: Mapped[str] = mapped_column(String(100), nullable=False)
    source_identifier: Mapped[str] = mapped_column(String(255), nullable=False, default="all")
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)

    leads_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leads_enriched: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leads_verified: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leads_assigned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    leads_converted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    avg_confidence_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    avg_lead_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    total_cost_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cost_per_lead: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    cost_per_conversion: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    conversion_rate: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    def __repr__(self) -> str:
        return (
            f"<SourceAnalytics(source_type={self.source_type!r}, "
            f"period_start={self.period_start!r})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source_type": self.source_type,
            "source_identifier": self.source_identifier,
            "period_start": self.period_start.isoformat() if self.period_start else None,
            "period_end": self.period_end.isoformat() if self.period_end else None,
            "leads_generated": self.leads_generated,
            "leads_enriched": self.leads_enriched,
            "leads_verified": self.leads_verified,
            "leads_assigned": self.leads_assigned,
            "leads_converted": self.leads_converted,
            "avg_confidence_score": self.avg_confidence_score,
            "avg_lead_score": self.avg_lead_score,
            "total_cost_usd": self.total_cost_usd,
            "cost_per_lead": self.cost_per_lead,
            "cost_per_conversion": self.cost_per_conversion,
            "conversion_rate": self.conversion_rate,
        }
