"""Hot lead alerts and automatic drip-campaign enrollment.

Run on a schedule. Hot leads (score 80+) are pushed to every subscribed
notification channel once; warm leads (score 60+) with an email are
enrolled in the first active campaign through their CRM lead.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from ..errors import ValidationFailed
from ..models import ScrapedLead, utcnow
from ..repository import HOT_LEAD_SIGNAL

logger = logging.getLogger(__name__)

HOT_LEAD_THRESHOLD = 80
WARM_LEAD_THRESHOLD = 60
HOT_LEAD_LIMIT = 50
WARM_LEAD_LIMIT = 100
FIRST_SEND_DELAY = timedelta(hours=24)

MODES = ("auto", "alerts_only", "nurture_only")


@dataclass
class NurtureResults:
    hot_lead_alerts: int = 0
    nurture_enrolled: int = 0
    webhooks_fired: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def hot_lead_payload(lead: ScrapedLead) -> dict[str, Any]:
    return {
        "event": "hot_lead_detected",
        "timestamp": utcnow().isoformat(),
        "lead": {
            "id": lead.id,
            "domain": lead.domain,
            "name": lead.full_name,
            "email": lead.best_email,
            "phone": lead.best_phone,
            "score": lead.lead_score,
            "confidence": lead.confidence_score,
        },
    }


class AutoNurture:
    """Sends hot lead alerts and enrolls warm leads in nurture campaigns.

    Args:
        repository: LeadRepository.
        webhooks: WebhookSender used for channel alerts.
    """

    def __init__(self, repository, webhooks) -> None:
        self.repository = repository
        self.webhooks = webhooks

    async def send_alerts(self, results: NurtureResults) -> None:
        hot_leads = await self.repository.list_hot_leads(HOT_LEAD_THRESHOLD, HOT_LEAD_LIMIT)
        if not hot_leads:
            return

        logger.info("Found %d hot leads to alert", len(hot_leads))
        channels = await self.repository.list_alert_channels()

        for lead in hot_leads:
            payload = hot_lead_payload(lead)
            for channel in channels:
                if not channel.webhook_url:
                    continue
                delivery = await self.webhooks.post_json(channel.webhook_url, payload)
                if delivery.status is None:
                    logger.error(
                        "Webhook failed for channel %s: %s", channel.name, delivery.error,
                        extra={"channel_id": channel.id},
                    )
                    await self.repository.increment_channel_failures(channel)
                    continue
                if delivery.success:
                    results.webhooks_fired += 1
                await self.repository.mark_channel_triggered(channel)

            await self.repository.add_intent_signal(
                lead.id,
                HOT_LEAD_SIGNAL,
                "auto_nurture_system",
                {
                    "score": lead.lead_score,
                    "confidence": lead.confidence_score,
                    "alerted_at": utcnow().isoformat(),
                },
                95,
            )
            results.hot_lead_alerts += 1

    async def enroll_warm_leads(self, results: NurtureResults) -> None:
        warm_leads = await self.repository.list_warm_leads(WARM_LEAD_THRESHOLD, WARM_LEAD_LIMIT)
        if not warm_leads:
            return

        campaign = await self.repository.get_active_campaign()
        if campaign is None:
            logger.info("No active email campaign; skipping nurture enrollment")
            return

        for lead in warm_leads:
            crm_lead = await self.repository.find_crm_lead_by_email(lead.best_email)
            if crm_lead is None:
                continue
            if await self.repository.is_enrolled(crm_lead.id, campaign.id):
                continue
            await self.repository.enroll_lead(
                crm_lead.id, campaign.id, utcnow() + FIRST_SEND_DELAY
            )
            results.nurture_enrolled += 1

    async def run(self, mode: str = "auto") -> dict[str, Any]:
        """Run alerts, enrollment or both.

        Raises:
            ValidationFailed: On an unknown mode.
        """
        if mode not in MODES:
            raise ValidationFailed(f"Invalid mode: {mode}")

        results = NurtureResults()
        if mode in ("auto", "alerts_only"):
            await self.send_alerts(results)
        if mode in ("auto", "nurture_only"):
            await self.enroll_warm_leads(results)

        logger.info(
            "Results: %d alerts, %d enrolled, %d webhooks",
            results.hot_lead_alerts, results.nurture_enrolled, results.webhooks_fired,
        )
        return {"success": True, **results.to_dict()}
