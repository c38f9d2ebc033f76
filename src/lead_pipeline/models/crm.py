"""CRM lead models: client-owned leads, their conversation history and won deals."""

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, utcnow


class CrmLead(Base):
    """SQLAlchemy model representing a lead in a client's CRM.

    Attributes:
        id: Unique identifier (UUID).
        client_id: Owning user id; only the owner or an admin may score it.
        business_name: Company name.
        contact_name: Primary contact.
        email: Contact email.
        phone: Contact phone.
        industry: Industry label.
        status: CRM status (new, contacted, qualified, converted, ...).
        notes: Free-form notes.
        lead_score: Last AI score (0-100).
        contacted_at: Last outreach timestamp.
    """

    __tablename__ = "leads"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    client_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    industry: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="new")
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    lead_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    contacted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    conversation_logs: Mapped[list["ConversationLog"]] = relationship(
        "ConversationLog",
        back_populates="lead",
        cascade="all, delete-orphan",
        lazy="noload"
    )

    def __repr__(self) -> str:
        return f"<CrmLead(id={self.id!r}, business_name={self.business_name!r})>"

    def to_dict(self) -> dict[str, Any]:
        """Convert CRM lead to dictionary representation."""
        return {
            "id": self.id,
            "client_id": self.client_id,
            "business_name": self.business_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "industry": self.industry,
            "status": self.status,
            "notes": self.notes,
            "lead_score": self.lead_score,
            "contacted_at": self.contacted_at.isoformat() if self.contacted_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ConversationLog(Base):
    """A single interaction (call, email, sms) with a CRM lead."""

    __tablename__ = "conversation_logs"

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
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    direction: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    lead: Mapped["CrmLead"] = relationship("CrmLead", back_populates="conversation_logs")

    def __repr__(self) -> str:
        return f"<ConversationLog(id={self.id!r}, type={self.type!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "type": self.type,
            "direction": self.direction,
            "content": self.content,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class ConversionEvent(Base):
    """Outcome recorded against a scraped lead (won, lost, meeting booked)."""

    __tablename__ = "conversion_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    lead_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    value_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<ConversionEvent(lead_id={self.lead_id!r}, event_type={self.event_type!r})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lead_id": self.lead_id,
            "event_type": self.event_type,
            "value_usd": self.value_usd,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
        }
