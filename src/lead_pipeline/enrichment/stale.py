"""Periodic re-enrichment of leads whose provider data has gone stale."""

import logging
from datetime import timedelta
from typing import Any, Optional, Sequence

from ..integrations.firecrawl import FirecrawlError
from ..integrations.http import ProviderError
from ..models import ACTIVE_STATUSES, ScrapedLead, utcnow

logger = logging.getLogger(__name__)

STALE_THRESHOLD_DAYS = 30
MAX_LEADS_PER_RUN = 25


def snapshot_for_change_detection(lead: ScrapedLead) -> dict[str, Any]:
    """Enrichment document with the current tech stack and headcount set aside.

    The snapshot feeds technology and growth signal detection; technologies
    are cleared so the next technographics pass rescans the site.
    """
    enrichment = dict(lead.enrichment_data or {})
    if enrichment.get("technologies"):
        enrichment["previous_technologies"] = list(enrichment["technologies"])
    if enrichment.get("employee_count"):
        enrichment["previous_employee_count"] = enrichment["employee_count"]
    enrichment["technologies"] = []
    return enrichment


class StaleLeadReEnricher:
    """Re-runs enrichment for leads not updated within a threshold.

    Args:
        repository: LeadRepository for reads and writes.
        enricher: LeadEnricher used for the provider pass.
        technographics: Optional TechnographicsEnricher for a fresh site scan.
    """

    def __init__(self, repository, enricher, technographics=None) -> None:
        self.repository = repository
        self.enricher = enricher
        self.technographics = technographics

    async def _re_enrich(self, lead: ScrapedLead) -> None:
        await self.repository.update_scraped_lead(
            lead, {"enrichment_data": snapshot_for_change_detection(lead)}
        )
        await self.enricher.enrich_lead(lead)
        if self.technographics is not None:
            await self.technographics.enrich_lead(lead)

    async def run(
        self,
        threshold_days: int = STALE_THRESHOLD_DAYS,
        max_leads: int = MAX_LEADS_PER_RUN,
        lead_ids: Optional[Sequence[str]] = None,
    ) -> dict[str, Any]:
        if lead_ids:
            stale = await self.repository.get_scraped_leads(list(lead_ids))
        else:
            cutoff = utcnow() - timedelta(days=threshold_days)
            stale = await self.repository.list_stale_leads(cutoff, ACTIVE_STATUSES, max_leads)

        if not stale:
            return {"success": True, "message": "No stale leads found", "re_enriched": 0}

        logger.info("Processing %d stale leads", len(stale))
        re_enriched = 0
        errors: list[str] = []

        for lead in stale:
            try:
                await self._re_enrich(lead)
            except (ProviderError, FirecrawlError) as e:
                logger.error("Re-enrichment failed: %s", e, extra={"lead_id": lead.id})
                errors.append(f"Lead {lead.id}: {e}")
                continue

            re_enriched += 1
            await self.repository.add_audit_log(
                table_name="scraped_leads",
                record_id=lead.id,
                action="update",
                field_name="enrichment_data",
                old_value="stale",
                new_value="re-enriched",
                reason=f"Auto re-enrichment (data was {threshold_days}+ days old)",
            )

        logger.info("Re-enrichment completed: %d/%d", re_enriched, len(stale))
        result: dict[str, Any] = {
            "success": True,
            "re_enriched": re_enriched,
            "total_stale": len(stale),
        }
        if errors:
            result["errors"] = errors
        return result
