"""Lead Pipeline Database Models.

This module contains SQLAlchemy models for scraped leads, CRM leads and the
log, signal and automation tables the pipeline writes.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def utcnow() -> datetime:
    """Naive UTC timestamp used for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Import models to register them with Base metadata
from .scraped_lead import (
    ACTIVE_STATUSES,
    ScrapedLead,
    ScrapedLeadStatus,
    ValidationStatus,
    as_employee_count,
)
from .crm import CrmLead, ConversationLog, ConversionEvent
from .signals import IntentSignal
from .logs import AuditLog, EnrichmentLog, ValidationLog, WebhookDeliveryLog
from .notifications import ClientWebhook, NotificationChannel
from .campaigns import EmailCampaign, EnrollmentStatus, LeadCampaignEnrollment
from .analytics import SourceAnalytics
from .duplicates import LeadDuplicate

# Import database utilities
from .database import (
    DatabaseManager,
    get_db_session,
    get_db,
    init_database,
    close_database,
)

__all__ = [
    # Base class
    "Base",
    "utcnow",
    # Models
    "ScrapedLead",
    "ScrapedLeadStatus",
    "ACTIVE_STATUSES",
    "ValidationStatus",
    "as_employee_count",
    "CrmLead",
    "ConversationLog",
    "ConversionEvent",
    "IntentSignal",
    "AuditLog",
    "EnrichmentLog",
    "ValidationLog",
    "WebhookDeliveryLog",
    "ClientWebhook",
    "NotificationChannel",
    "EmailCampaign",
    "EnrollmentStatus",
    "LeadCampaignEnrollment",
    "SourceAnalytics",
    "LeadDuplicate",
    # Database utilities
    "DatabaseManager",
    "get_db_session",
    "get_db",
    "init_database",
    "close_database",
]
