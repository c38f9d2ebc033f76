"""Gap-filling enrichment of scraped leads from Apollo, Hunter and Clearbit.

Only fields the lead is missing are requested and written. Every provider
call that returns data is logged to ``enrichment_logs`` and recorded in
``enrichment_providers_used``.
"""

import logging
from typing import Any, Optional, Sequence
from urllib.parse import quote

from ..errors import ValidationFailed
from ..integrations.apollo import DECISION_MAKER_TITLES, pick_best_person
from ..integrations.http import ProviderError
from ..models import ScrapedLead, utcnow

logger = logging.getLogger(__name__)

LINKEDIN_PEOPLE_SEARCH = "https://www.linkedin.com/search/results/people/?keywords="
BASE_CONFIDENCE = 30
MAX_CONFIDENCE = 100


def linkedin_search_url(
    company_name: Optional[str],
    full_name: Optional[str],
    job_title: Optional[str],
) -> str:
    """People-search URL for ``name company title``."""
    query = " ".join(part for part in (full_name, company_name, job_title) if part)
    return LINKEDIN_PEOPLE_SEARCH + quote(query, safe="!~*'()")


def recalculate_confidence(current: Optional[int], updates: dict[str, Any]) -> int:
    """Bump confidence for each contact field the enrichment filled."""
    score = current or BASE_CONFIDENCE
    if updates.get("best_email"):
        score += 15
    if updates.get("best_phone"):
        score += 10
    if updates.get("full_name"):
        score += 10
    return min(MAX_CONFIDENCE, score)


class LeadEnricher:
    """Fills missing contact and company fields on scraped leads.

    Args:
        repository: LeadRepository for reads and writes.
        apollo: ApolloClient, or None.
        hunter: HunterClient, or None.
        clearbit: ClearbitClient, or None.
    """

    def __init__(self, repository, apollo=None, hunter=None, clearbit=None) -> None:
        self.repository = repository
        self.apollo = apollo
        self.hunter = hunter
        self.clearbit = clearbit

    async def _apollo_lookup(self, domain: str) -> Optional[dict[str, Any]]:
        try:
            people = await self.apollo.search_people(domain=domain, per_page=5)
        except ProviderError as e:
            logger.error("Apollo enrichment error: %s", e, extra={"domain": domain})
            return None

        best = pick_best_person(people, DECISION_MAKER_TITLES)
        if best is None:
            return None

        company_name = best.organization.get("name")
        fields = [
            name for name, present in (
                ("full_name", best.name),
                ("email", best.email),
                ("phone", best.phone_numbers),
                ("company_name", company_name),
                ("job_title", best.title),
                ("linkedin_url", best.linkedin_url),
            ) if present
        ]
        return {
            "full_name": best.name,
            "email": best.email,
            "phone": best.phone,
            "company_name": company_name,
            "job_title": best.title,
            "linkedin_url": best.linkedin_url,
            "provider": "apollo",
            "fields_enriched": fields,
        }

    async def _hunter_lookup(
        self,
        domain: str,
        first_name: Optional[str],
        last_name: Optional[str],
    ) -> Optional[dict[str, Any]]:
        try:
            if first_name and last_name:
                email = await self.hunter.find_email(domain, first_name, last_name)
                if email:
                    return {"email": email, "provider": "hunter", "fields_enriched": ["email"]}

            emails = await self.hunter.domain_search(domain, limit=5)
        except ProviderError as e:
            logger.error("Hunter enrichment error: %s", e, extra={"domain": domain})
            return None

        if not emails:
            return None
        best = emails[0]
        result: dict[str, Any] = {
            "email": best.value,
            "provider": "hunter",
            "fields_enriched": ["email"],
        }
        if best.full_name:
            result["full_name"] = best.full_name
            result["fields_enriched"].append("full_name")
        if best.position:
            result["job_title"] = best.position
            result["fields_enriched"].append("job_title")
        if best.linkedin:
            result["linkedin_url"] = best.linkedin
            result["fields_enriched"].append("linkedin_url")
        return result

    async def _clearbit_lookup(self, domain: str) -> Optional[dict[str, Any]]:
        try:
            company = await self.clearbit.find_company(domain)
        except ProviderError as e:
            logger.error("Clearbit enrichment error: %s", e, extra={"domain": domain})
            return None
        if company is None:
            return None
        return {
            "company_name": company.get("name"),
            "provider": "clearbit",
            "fields_enriched": ["company_name"] if company.get("name") else [],
        }

    async def _log(self, lead_id: str, provider: str, action: str, fields: list[str]) -> None:
        await self.repository.add_enrichment_log(
            lead_id=lead_id,
            provider=provider,
            action=action,
            fields_enriched=fields,
            success=True,
        )

    async def enrich_lead(self, lead: ScrapedLead) -> list[dict[str, Any]]:
        """Enrich one lead and return the provider results that were applied."""
        schema = dict(lead.schema_data or {})
        needs_name = not lead.full_name
        needs_email = not lead.best_email
        needs_phone = not lead.best_phone
        needs_company = not schema.get("company_name")
        needs_title = not schema.get("job_title")

        if not (needs_name or needs_email or needs_phone or needs_company or needs_title):
            if not lead.linkedin_search_url:
                await self.repository.update_scraped_lead(
                    lead,
                    {
                        "linkedin_search_url": linkedin_search_url(
                            schema.get("company_name"), lead.full_name, schema.get("job_title")
                        )
                    },
                )
            return []

        domain = lead.domain
        enrichments: list[dict[str, Any]] = []
        updates: dict[str, Any] = {}
        providers_used = list(lead.enrichment_providers_used or [])

        if self.apollo is not None and domain:
            apollo = await self._apollo_lookup(domain)
            if apollo:
                enrichments.append(apollo)
                providers_used.append("apollo")
                if apollo["full_name"] and needs_name:
                    updates["full_name"] = apollo["full_name"]
                if apollo["email"] and needs_email:
                    updates["best_email"] = apollo["email"]
                    all_emails = list(lead.all_emails or [])
                    if apollo["email"] not in all_emails:
                        updates["all_emails"] = all_emails + [apollo["email"]]
                if apollo["phone"] and needs_phone:
                    updates["best_phone"] = apollo["phone"]
                    all_phones = list(lead.all_phones or [])
                    if apollo["phone"] not in all_phones:
                        updates["all_phones"] = all_phones + [apollo["phone"]]
                if apollo["company_name"] or apollo["job_title"]:
                    merged = dict(schema)
                    if apollo["company_name"]:
                        merged["company_name"] = apollo["company_name"]
                    if apollo["job_title"]:
                        merged["job_title"] = apollo["job_title"]
                    updates["schema_data"] = merged
                if apollo["linkedin_url"]:
                    updates["linkedin_search_url"] = apollo["linkedin_url"]
                await self._log(lead.id, "apollo", "person_lookup", apollo["fields_enriched"])

        if self.hunter is not None and domain and needs_email and not updates.get("best_email"):
            name_parts = (updates.get("full_name") or lead.full_name or "").split(" ")
            first_name = name_parts[0] or None
            last_name = " ".join(name_parts[1:]) or None
            hunter = await self._hunter_lookup(domain, first_name, last_name)
            if hunter:
                enrichments.append(hunter)
                providers_used.append("hunter")
                updates["best_email"] = hunter["email"]
                all_emails = list(updates.get("all_emails") or lead.all_emails or [])
                if hunter["email"] not in all_emails:
                    updates["all_emails"] = all_emails + [hunter["email"]]
                if hunter.get("full_name") and needs_name and not updates.get("full_name"):
                    updates["full_name"] = hunter["full_name"]
                if hunter.get("job_title"):
                    updates["schema_data"] = {
                        **(updates.get("schema_data") or schema),
                        "job_title": hunter["job_title"],
                    }
                await self._log(lead.id, "hunter", "email_discovery", hunter["fields_enriched"])

        if self.clearbit is not None and domain and needs_company:
            clearbit = await self._clearbit_lookup(domain)
            if clearbit:
                enrichments.append(clearbit)
                providers_used.append("clearbit")
                if clearbit["company_name"]:
                    updates["schema_data"] = {
                        **(updates.get("schema_data") or schema),
                        "company_name": clearbit["company_name"],
                    }
                await self._log(lead.id, "clearbit", "company_lookup", clearbit["fields_enriched"])

        if not lead.linkedin_search_url and not updates.get("linkedin_search_url"):
            new_schema = updates.get("schema_data") or {}
            updates["linkedin_search_url"] = linkedin_search_url(
                new_schema.get("company_name") or schema.get("company_name") or domain,
                updates.get("full_name") or lead.full_name,
                new_schema.get("job_title") or schema.get("job_title"),
            )

        if enrichments:
            updates["enrichment_data"] = {
                **(lead.enrichment_data or {}),
                "last_enriched_at": utcnow().isoformat(),
                "enrichment_results": enrichments,
            }
            updates["enrichment_providers_used"] = list(dict.fromkeys(providers_used))
            updates["confidence_score"] = recalculate_confidence(lead.confidence_score, updates)

        if updates:
            await self.repository.update_scraped_lead(lead, updates)

        logger.info(
            "Enriched lead with %d provider results",
            len(enrichments),
            extra={"lead_id": lead.id, "providers": [e["provider"] for e in enrichments]},
        )
        return enrichments

    async def run(
        self,
        lead_id: Optional[str] = None,
        lead_ids: Optional[Sequence[str]] = None,
    ) -> dict[str, Any]:
        """Enrich one or many leads.

        Raises:
            ValidationFailed: If no lead ids were given.
        """
        ids = list(lead_ids) if lead_ids else ([lead_id] if lead_id else [])
        if not ids:
            raise ValidationFailed("No lead IDs provided")

        results = []
        for current_id in ids:
            lead = await self.repository.get_scraped_lead(current_id)
            if lead is None:
                results.append({"lead_id": current_id, "enrichments": []})
                continue
            results.append({"lead_id": current_id, "enrichments": await self.enrich_lead(lead)})

        return {"success": True, "results": results}
