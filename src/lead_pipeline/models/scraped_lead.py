"""ScrapedLead SQLAlchemy model, the record every pipeline stage enriches."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from . import Base, utcnow


class ScrapedLeadStatus(str, Enum):
    """Status of a scraped lead in the review and sales workflow."""

    NEW = "new"
    REVIEW = "review"
    APPROVED = "approved"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    WON = "won"
    LOST = "lost"
    REJECTED = "rejected"


class ValidationStatus(str, Enum):
    """Outcome of validating an email address or phone number."""

    UNVERIFIED = "unverified"
    LIKELY_VALID = "likely_valid"
    VERIFIED = "verified"
    INVALID = "invalid"


# Statuses a lead can still be worked in
ACTIVE_STATUSES = [
    ScrapedLeadStatus.NEW,
    ScrapedLeadStatus.REVIEW,
    ScrapedLeadStatus.APPROVED,
    ScrapedLeadStatus.ASSIGNED,
    ScrapedLeadStatus.IN_PROGRESS,
]


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


# Shared by the email and phone columns so the type is created once
VALIDATION_STATUS_TYPE = SQLEnum(
    ValidationStatus, name="validation_status", values_callable=_enum_values
)


class ScrapedLead(Base):
    """SQLAlchemy model representing a scraped or imported lead.

    Contact fields hold the best known value; ``all_emails`` and
    ``all_phones`` keep every value seen. Provider output is merged into the
    ``enrichment_data`` document and page-derived data into ``schema_data``.

    JSON columns are replaced, never mutated in place, so that changes are
    picked up by the session.

    Attributes:
        id: Unique identifier for the lead (UUID).
        job_id: Scrape job that produced the lead.
        domain: Company domain without scheme.
        source_type: Scraper or import source name.
        status: Current workflow status.
        full_name: Primary contact name.
        best_email: Primary contact email.
        best_phone: Primary contact phone.
        confidence_score: Data confidence (0-100).
        lead_score: Composite or AI score (0-100).
        priority: high, medium or low.
        email_validation_status: ValidationStatus of best_email.
        phone_validation_status: ValidationStatus of best_phone.
        assigned_to_org: Organization the lead was handed to.
    """

    __tablename__ = "scraped_leads"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )

    job_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    source_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    source_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ScrapedLeadStatus] = mapped_column(
        SQLEnum(
            ScrapedLeadStatus,
            name="scraped_lead_status",
            values_callable=_enum_values,
        ),
        nullable=False,
        default=ScrapedLeadStatus.NEW,
        index=True
    )

    # Contact data
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    best_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    best_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    all_emails: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    all_phones: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    linkedin_search_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Documents
    schema_data: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Page-derived data: company_name, job_title, city, contacts"
    )
    enrichment_data: Mapped[Optional[dict]] = mapped_column(
        JSON,
        nullable=True,
        comment="Provider-derived data: technologies, revenue, funding"
    )
    enrichment_providers_used: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)

    # Scores
    confidence_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=0)
    lead_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    priority: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    # Validation
    email_validation_status: Mapped[Optional[ValidationStatus]] = mapped_column(
        VALIDATION_STATUS_TYPE,
        nullable=True,
        default=ValidationStatus.UNVERIFIED
    )
    email_validation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_validation_status: Mapped[Optional[ValidationStatus]] = mapped_column(
        VALIDATION_STATUS_TYPE,
        nullable=True,
        default=ValidationStatus.UNVERIFIED
    )
    phone_validation_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone_line_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Review and assignment
    assigned_to_org: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    qc_flag: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    qc_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow
    )

    def __repr__(self) -> str:
        """Return string representation of the lead."""
        status = self.status.value if isinstance(self.status, Enum) else self.status
        return f"<ScrapedLead(id={self.id!r}, domain={self.domain!r}, status={status!r})>"

    @property
    def company_name(self) -> Optional[str]:
        """Company name from schema_data, if known."""
        return (self.schema_data or {}).get("company_name")

    @property
    def job_title(self) -> Optional[str]:
        """Primary contact job title from schema_data, if known."""
        return (self.schema_data or {}).get("job_title")

    @property
    def is_verified(self) -> bool:
        """Check if either contact channel has been verified."""
        return ValidationStatus.VERIFIED in (
            self.email_validation_status,
            self.phone_validation_status,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert lead to dictionary representation.

        Returns:
            Dictionary with all lead fields.
        """
        return {
            "id": self.id,
            "job_id": self.job_id,
            "domain": self.domain,
            "source_type": self.source_type,
            "source_url": self.source_url,
            "status": _value(self.status),
            "full_name": self.full_name,
            "best_email": self.best_email,
            "best_phone": self.best_phone,
            "all_emails": self.all_emails or [],
            "all_phones": self.all_phones or [],
            "linkedin_search_url": self.linkedin_search_url,
            "schema_data": self.schema_data or {},
            "enrichment_data": self.enrichment_data or {},
            "enrichment_providers_used": self.enrichment_providers_used or [],
            "confidence_score": self.confidence_score,
            "lead_score": self.lead_score,
            "priority": self.priority,
            "email_validation_status": _value(self.email_validation_status),
            "email_validation_notes": self.email_validation_notes,
            "phone_validation_status": _value(self.phone_validation_status),
            "phone_validation_notes": self.phone_validation_notes,
            "phone_line_type": self.phone_line_type,
            "assigned_to_org": self.assigned_to_org,
            "qc_flag": self.qc_flag,
            "qc_notes": self.qc_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _value(member: Any) -> Any:
    return member.value if isinstance(member, Enum) else member


def as_employee_count(value: Any) -> Optional[int]:
    """Read an employee count from JSON lead data.

    Imported rows often carry counts as strings (``"50"``, ``"1,200"``).
    Anything that is not a whole number, such as ``"11-50"``, yields None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if text.isdigit():
            return int(text)
    return None
