"""Data access for the pipeline.

``LeadRepository`` wraps an ``AsyncSession`` and exposes the queries and
writes the pipeline services need. Services never build SQL themselves,
which keeps them testable against a mocked repository.

Writes are flushed, not committed; the caller owning the session (the API
request scope or the CLI) commits.
"""

import logging
from datetime import date, datetime
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import and_, exists, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AuditLog,
    ClientWebhook,
    ConversationLog,
    ConversionEvent,
    CrmLead,
    EmailCampaign,
    EnrichmentLog,
    EnrollmentStatus,
    IntentSignal,
    LeadCampaignEnrollment,
    LeadDuplicate,
    NotificationChannel,
    ScrapedLead,
    ScrapedLeadStatus,
    SourceAnalytics,
    ValidationLog,
    WebhookDeliveryLog,
    utcnow,
)

logger = logging.getLogger(__name__)

HOT_LEAD_SIGNAL = "hot_lead_alert"


class LeadRepository:
    """Async queries and writes over the pipeline tables.

    Attributes:
        session: The SQLAlchemy async session all operations run in.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    # ------------------------------------------------------------------
    # Scraped leads
    # ------------------------------------------------------------------

    async def get_scraped_lead(self, lead_id: str) -> Optional[ScrapedLead]:
        return await self.session.get(ScrapedLead, lead_id)

    async def get_scraped_leads(self, lead_ids: Sequence[str]) -> list[ScrapedLead]:
        """Fetch leads by id, returned in the order of ``lead_ids``."""
        if not lead_ids:
            return []
        result = await self.session.execute(
            select(ScrapedLead).where(ScrapedLead.id.in_(list(lead_ids)))
        )
        by_id = {lead.id: lead for lead in result.scalars().all()}
        return [by_id[lead_id] for lead_id in lead_ids if lead_id in by_id]

    async def update_scraped_lead(self, lead: ScrapedLead, updates: dict[str, Any]) -> ScrapedLead:
        """Apply ``updates`` to the lead and flush.

        JSON columns must be passed as new objects so the change is tracked.
        """
        for key, value in updates.items():
            setattr(lead, key, value)
        lead.updated_at = utcnow()
        await self.session.flush()
        return lead

    async def list_hot_leads(self, min_score: int = 80, limit: int = 50) -> list[ScrapedLead]:
        """Unassigned new leads at or above ``min_score`` not yet alerted on."""
        already_alerted = exists().where(
            and_(
                IntentSignal.lead_id == ScrapedLead.id,
                IntentSignal.signal_type == HOT_LEAD_SIGNAL,
            )
        )
        stmt = (
            select(ScrapedLead)
            .where(
                ScrapedLead.lead_score >= min_score,
                ScrapedLead.status == ScrapedLeadStatus.NEW,
                ScrapedLead.assigned_to_org.is_(None),
                ~already_alerted,
            )
            .order_by(ScrapedLead.lead_score.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_warm_leads(self, min_score: int = 60, limit: int = 100) -> list[ScrapedLead]:
        """New leads with an email at or above ``min_score``."""
        stmt = (
            select(ScrapedLead)
            .where(
                ScrapedLead.lead_score >= min_score,
                ScrapedLead.best_email.is_not(None),
                ScrapedLead.status == ScrapedLeadStatus.NEW,
            )
            .order_by(ScrapedLead.lead_score.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_stale_leads(
        self,
        older_than: datetime,
        statuses: Iterable[ScrapedLeadStatus],
        limit: int = 25,
    ) -> list[ScrapedLead]:
        """Previously enriched leads last updated before ``older_than``, oldest first."""
        stmt = (
            select(ScrapedLead)
            .where(
                ScrapedLead.updated_at < older_than,
                ScrapedLead.status.in_(list(statuses)),
                ScrapedLead.enrichment_providers_used.is_not(None),
            )
            .order_by(ScrapedLead.updated_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_leads_by_job(self, job_id: str) -> list[ScrapedLead]:
        result = await self.session.execute(
            select(ScrapedLead)
            .where(ScrapedLead.job_id == job_id)
            .order_by(ScrapedLead.created_at.asc())
        )
        return list(result.scalars().all())

    async def list_active_leads(self, limit: int = 1000) -> list[ScrapedLead]:
        """Leads that are not rejected, oldest first."""
        result = await self.session.execute(
            select(ScrapedLead)
            .where(ScrapedLead.status != ScrapedLeadStatus.REJECTED)
            .order_by(ScrapedLead.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_cross_job_candidates(
        self,
        exclude_ids: Sequence[str],
        domains: Sequence[str],
        limit: int = 500,
    ) -> list[ScrapedLead]:
        """Non-rejected leads outside ``exclude_ids`` sharing one of ``domains``."""
        if not domains:
            return []
        stmt = select(ScrapedLead).where(
            ScrapedLead.status != ScrapedLeadStatus.REJECTED,
            ScrapedLead.domain.in_(list(domains)),
        )
        if exclude_ids:
            stmt = stmt.where(ScrapedLead.id.not_in(list(exclude_ids)))
        result = await self.session.execute(stmt.limit(limit))
        return list(result.scalars().all())

    async def list_leads_created_between(
        self,
        start: datetime,
        end: datetime,
        source_type: Optional[str] = None,
    ) -> list[ScrapedLead]:
        stmt = select(ScrapedLead).where(
            ScrapedLead.created_at >= start,
            ScrapedLead.created_at <= end,
        )
        if source_type:
            stmt = stmt.where(ScrapedLead.source_type == source_type)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # CRM leads
    # ------------------------------------------------------------------

    async def get_crm_lead(self, lead_id: str) -> Optional[CrmLead]:
        return await self.session.get(CrmLead, lead_id)

    async def find_crm_lead_by_email(self, email: str) -> Optional[CrmLead]:
        result = await self.session.execute(
            select(CrmLead).where(func.lower(CrmLead.email) == email.lower()).limit(1)
        )
        return result.scalars().first()

    async def list_conversation_logs(self, lead_id: str) -> list[ConversationLog]:
        """Interaction history for a CRM lead, newest first."""
        result = await self.session.execute(
            select(ConversationLog)
            .where(ConversationLog.lead_id == lead_id)
            .order_by(ConversationLog.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_crm_lead_score(self, lead: CrmLead, score: int) -> CrmLead:
        lead.lead_score = score
        lead.updated_at = utcnow()
        await self.session.flush()
        return lead

    # ------------------------------------------------------------------
    # Intent signals
    # ------------------------------------------------------------------

    async def add_intent_signal(
        self,
        lead_id: str,
        signal_type: str,
        signal_source: str,
        signal_data: dict[str, Any],
        confidence_score: int,
    ) -> IntentSignal:
        signal = IntentSignal(
            lead_id=lead_id,
            signal_type=signal_type,
            signal_source=signal_source,
            signal_data=signal_data,
            confidence_score=confidence_score,
        )
        self.session.add(signal)
        await self.session.flush()
        return signal

    async def list_intent_signals(self, lead_id: str, limit: Optional[int] = None) -> list[IntentSignal]:
        """Signals for a lead, most recent first."""
        stmt = (
            select(IntentSignal)
            .where(IntentSignal.lead_id == lead_id)
            .order_by(IntentSignal.detected_at.desc())
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Logs
    # ------------------------------------------------------------------

    async def add_validation_log(self, **fields: Any) -> ValidationLog:
        entry = ValidationLog(**fields)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def add_enrichment_log(self, **fields: Any) -> EnrichmentLog:
        entry = EnrichmentLog(**fields)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def add_webhook_delivery(self, **fields: Any) -> WebhookDeliveryLog:
        entry = WebhookDeliveryLog(**fields)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def add_audit_log(self, **fields: Any) -> AuditLog:
        entry = AuditLog(**fields)
        self.session.add(entry)
        await self.session.flush()
        return entry

    # ------------------------------------------------------------------
    # Analytics inputs
    # ------------------------------------------------------------------

    async def list_enrichment_costs(self, start: datetime, end: datetime) -> list[tuple[str, float]]:
        """(lead_id, cost_usd) pairs for provider calls logged in the window."""
        result = await self.session.execute(
            select(EnrichmentLog.lead_id, EnrichmentLog.cost_usd).where(
                EnrichmentLog.created_at >= start,
                EnrichmentLog.created_at <= end,
            )
        )
        return [(row.lead_id, row.cost_usd or 0.0) for row in result.all()]

    async def list_converted_lead_ids(self, start: datetime, end: datetime) -> set[str]:
        result = await self.session.execute(
            select(ConversionEvent.lead_id).where(
                ConversionEvent.event_type == "won",
                ConversionEvent.recorded_at >= start,
                ConversionEvent.recorded_at <= end,
            )
        )
        return {row.lead_id for row in result.all()}

    async def upsert_source_analytics(
        self,
        source_type: str,
        period_start: date,
        period_end: date,
        metrics: dict[str, Any],
        source_identifier: str = "all",
    ) -> None:
        """Insert or overwrite the snapshot for (source, identifier, period_start)."""
        values = {
            "source_type": source_type,
            "source_identifier": source_identifier,
            "period_start": period_start,
            "period_end": period_end,
            "updated_at": utcnow(),
            **metrics,
        }
        stmt = pg_insert(SourceAnalytics).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["source_type", "source_identifier", "period_start"],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in ("source_type", "source_identifier", "period_start")
            },
        )
        await self.session.execute(stmt)

    # ------------------------------------------------------------------
    # Notification channels and client webhooks
    # ------------------------------------------------------------------

    async def list_alert_channels(self) -> list[NotificationChannel]:
        """Active channels subscribed to hot lead alerts."""
        result = await self.session.execute(
            select(NotificationChannel).where(
                NotificationChannel.is_active.is_(True),
                NotificationChannel.notify_on_high_value_lead.is_(True),
            )
        )
        return list(result.scalars().all())

    async def mark_channel_triggered(self, channel: NotificationChannel) -> None:
        channel.last_triggered_at = utcnow()
        await self.session.flush()

    async def increment_channel_failures(self, channel: NotificationChannel) -> None:
        await self.session.execute(
            update(NotificationChannel)
            .where(NotificationChannel.id == channel.id)
            .values(failure_count=NotificationChannel.failure_count + 1)
        )

    async def list_active_client_webhooks(self) -> list[ClientWebhook]:
        result = await self.session.execute(
            select(ClientWebhook).where(ClientWebhook.is_active.is_(True))
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    async def get_active_campaign(self) -> Optional[EmailCampaign]:
        result = await self.session.execute(
            select(EmailCampaign)
            .where(EmailCampaign.is_active.is_(True))
            .order_by(EmailCampaign.created_at.asc())
            .limit(1)
        )
        return result.scalars().first()

    async def is_enrolled(self, crm_lead_id: str, campaign_id: str) -> bool:
        result = await self.session.execute(
            select(LeadCampaignEnrollment.id).where(
                LeadCampaignEnrollment.lead_id == crm_lead_id,
                LeadCampaignEnrollment.campaign_id == campaign_id,
            )
        )
        return result.first() is not None

    async def enroll_lead(
        self,
        crm_lead_id: str,
        campaign_id: str,
        next_send_at: datetime,
    ) -> LeadCampaignEnrollment:
        enrollment = LeadCampaignEnrollment(
            lead_id=crm_lead_id,
            campaign_id=campaign_id,
            status=EnrollmentStatus.ACTIVE,
            next_send_at=next_send_at,
        )
        self.session.add(enrollment)
        await self.session.flush()
        return enrollment

    # ------------------------------------------------------------------
    # Duplicates
    # ------------------------------------------------------------------

    async def duplicate_exists(self, lead_a: str, lead_b: str) -> bool:
        """True if the pair was recorded in either direction."""
        result = await self.session.execute(
            select(LeadDuplicate.id).where(
                or_(
                    and_(
                        LeadDuplicate.primary_lead_id == lead_a,
                        LeadDuplicate.duplicate_lead_id == lead_b,
                    ),
                    and_(
                        LeadDuplicate.primary_lead_id == lead_b,
                        LeadDuplicate.duplicate_lead_id == lead_a,
                    ),
                )
            )
        )
        return result.first() is not None

    async def add_duplicate(
        self,
        primary_lead_id: str,
        duplicate_lead_id: str,
        match_reason: str,
    ) -> LeadDuplicate:
        record = LeadDuplicate(
            primary_lead_id=primary_lead_id,
            duplicate_lead_id=duplicate_lead_id,
            match_reason=match_reason,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def mark_duplicate_merged(self, primary_lead_id: str, duplicate_lead_id: str) -> None:
        await self.session.execute(
            update(LeadDuplicate)
            .where(
                LeadDuplicate.primary_lead_id == primary_lead_id,
                LeadDuplicate.duplicate_lead_id == duplicate_lead_id,
            )
            .values(merged_at=utcnow())
        )
