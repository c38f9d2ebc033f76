"""LeadDuplicate model: detected duplicate pairs of scraped leads."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class LeadDuplicate(Base):
    """A (primary, duplicate) pair and the index that matched them."""

    __tablename__ = "lead_duplicates"
    __table_args__ = (
        UniqueConstraint("primary_lead_id", "duplicate_lead_id", name="uq_lead_duplicate_pair"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    primary_lead_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    duplicate_lead_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    match_reason: Mapped[str] = mapped_column(String(50), nullable=False)
    merged_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<LeadDuplicate(primary={self.primary_lead_id!r}, "
            f"duplicate={self.duplicate_lead_id!r}, reason={self.match_reason!r})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "primary_lead_id": self.primary_lead_id,
            "duplicate_lead_id": self.duplicate_lead_id,
            "match_reason": self.match_reason,
            "merged_at": self.merged_at.isoformat() if self.merged_at else None,
        }
