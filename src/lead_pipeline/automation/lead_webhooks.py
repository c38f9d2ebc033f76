"""Push scraped leads to client webhooks with an HMAC-signed payload."""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..errors import PipelineError, ValidationFailed
from ..models import ScrapedLead, utcnow

logger = logging.getLogger(__name__)

MANUAL_WEBHOOK_ID = "manual"
RECENT_SIGNALS = 5


@dataclass
class WebhookTarget:
    id: str
    webhook_url: str
    secret: Optional[str] = None


def build_payload(
    lead: ScrapedLead,
    signals: Sequence[Any],
    event_type: str,
    trigger_reason: str,
) -> dict[str, Any]:
    return {
        "event": event_type,
        "timestamp": utcnow().isoformat(),
        "lead": {
            "id": lead.id,
            "domain": lead.domain,
            "full_name": lead.full_name,
            "email": lead.best_email,
            "phone": lead.best_phone,
            "score": lead.lead_score,
            "priority": lead.priority,
            "source": lead.source_type,
            "company_data": lead.enrichment_data or {},
            "intent_signals": [
                {"type": s.signal_type, "data": s.signal_data} for s in signals
            ],
        },
        "trigger_reason": trigger_reason,
    }


class LeadWebhookTrigger:
    """Delivers lead payloads to every active client webhook.

    Args:
        repository: LeadRepository.
        webhooks: WebhookSender.
    """

    def __init__(self, repository, webhooks) -> None:
        self.repository = repository
        self.webhooks = webhooks

    async def _targets(self, webhook_url: Optional[str]) -> list[WebhookTarget]:
        if webhook_url:
            return [WebhookTarget(MANUAL_WEBHOOK_ID, webhook_url)]
        return [
            WebhookTarget(hook.id, hook.webhook_url, hook.secret_hash or None)
            for hook in await self.repository.list_active_client_webhooks()
        ]

    async def _deliver(
        self,
        lead: ScrapedLead,
        targets: list[WebhookTarget],
        event_type: str,
        trigger_reason: str,
    ) -> dict[str, Any]:
        signals = await self.repository.list_intent_signals(lead.id, limit=RECENT_SIGNALS)
        payload = build_payload(lead, signals, event_type, trigger_reason)

        details = []
        triggered = 0
        for target in targets:
            result = await self.webhooks.post_json(target.webhook_url, payload, target.secret)
            details.append({"webhook_id": target.id, **result.to_dict()})

            await self.repository.add_webhook_delivery(
                webhook_id=None if target.id == MANUAL_WEBHOOK_ID else target.id,
                event_type=event_type,
                payload=payload,
                success=result.success,
                response_status=result.status,
                error_message=result.error,
            )
            if result.success:
                triggered += 1

        return {"lead_id": lead.id, "webhooks_triggered": triggered, "details": details}

    async def run(
        self,
        lead_id: Optional[str] = None,
        lead_ids: Optional[Sequence[str]] = None,
        event_type: str = "high_priority_lead",
        trigger_reason: str = "manual",
        webhook_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """Send each lead to the override URL or every active client webhook.

        Raises:
            ValidationFailed: If no lead ids were given.
            PipelineError: With a generic message on any unexpected failure.
        """
        ids = list(lead_ids) if lead_ids else ([lead_id] if lead_id else [])
        if not ids:
            raise ValidationFailed("No lead IDs provided")

        try:
            targets = await self._targets(webhook_url)
            if not targets:
                return {"success": True, "message": "No webhooks configured", "sent": 0}

            logger.info("Triggering %d webhook(s) for %d lead(s)", len(targets), len(ids))
            results = []
            for current_id in ids:
                lead = await self.repository.get_scraped_lead(current_id)
                if lead is None:
                    results.append(
                        {"lead_id": current_id, "webhooks_triggered": 0, "details": ["lead_not_found"]}
                    )
                    continue
                results.append(await self._deliver(lead, targets, event_type, trigger_reason))
        except Exception as e:
            logger.exception("Error in trigger-lead-webhook")
            raise PipelineError("An error occurred processing your request") from e

        return {
            "success": True,
            "total_webhooks_triggered": sum(r["webhooks_triggered"] for r in results),
            "results": results,
        }
