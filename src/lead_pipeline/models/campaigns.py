"""Email nurture campaigns and CRM lead enrollments."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Enum as SQLEnum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class EnrollmentStatus(str, Enum):
    """Status of a lead inside a drip campaign."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    UNSUBSCRIBED = "unsubscribed"


class EmailCampaign(Base):
    """A drip email campaign leads can be enrolled in."""

    __tablename__ = "email_campaigns"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<EmailCampaign(id={self.id!r}, name={self.name!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class LeadCampaignEnrollment(Base):
    """SQLAlchemy model linking a CRM lead to a campaign.

    Attributes:
        id: Unique identifier (UUID).
        lead_id: CRM lead (``leads.id``) being nurtured.
        campaign_id: Campaign the lead is enrolled in.
        status: EnrollmentStatus.
        next_send_at: When the next campaign step is due.
        enrolled_at: Enrollment timestamp.
    """

    __tablename__ = "lead_campaign_enrollments"
    __table_args__ = (
        UniqueConstraint("lead_id", "campaign_id", name="uq_enrollment_lead_campaign"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    lead_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    campaign_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("email_campaigns.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        SQLEnum(
            EnrollmentStatus,
            name="enrollment_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
        default=EnrollmentStatus.ACTIVE
    )
    next_send_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<LeadCampaignEnrollment(lead_id={self.lead_id!r}, "
            f"campaign_id={self.campaign_id!r})>"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "campaign_id": self.campaign_id,
            "status": self.status.value if isinstance(self.status, Enum) else self.status,
            "next_send_at": self.next_send_at.isoformat() if self.next_send_at else None,
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
        }
