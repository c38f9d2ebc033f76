"""Enrichment of uploaded CSV rows keyed by company name.

Each row goes through Apollo (company then people search), a Hunter email
fallback and a one-sentence LLM description. Nothing is persisted; the
enriched rows are returned to the caller.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional, Sequence

from ..config import config
from ..errors import ValidationFailed
from ..integrations.apollo import DECISION_MAKER_TITLES, pick_best_person, strip_domain
from ..integrations.http import ProviderError
from ..integrations.llm_gateway import LLMError

logger = logging.getLogger(__name__)

MAX_ROWS_PER_BATCH = 100

DESCRIPTION_PROMPT = (
    "Write a 1-sentence business description for the company. Be concise and "
    "factual. If you don't have enough info, make a reasonable inference based "
    "on the company name."
)

ROW_STATUSES = ("enriched", "partial", "not_found", "error")


@dataclass
class EnrichedRow:
    """One CSV row after enrichment."""

    company_name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    company_domain: Optional[str] = None
    contact_name: Optional[str] = None
    job_title: Optional[str] = None
    ai_description: Optional[str] = None
    enrichment_source: Optional[str] = None
    status: str = "not_found"
    error: Optional[str] = None
    original_data: Optional[dict[str, Any]] = None

    def filled_contact_fields(self) -> int:
        return sum(1 for value in (self.phone, self.email, self.website, self.contact_name) if value)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if data["error"] is None:
            del data["error"]
        return data


def row_status(row: EnrichedRow) -> str:
    """enriched with 3+ of phone/email/website/contact, partial with any, else not_found."""
    filled = row.filled_contact_fields()
    if filled >= 3:
        return "enriched"
    if filled > 0:
        return "partial"
    return "not_found"


class CsvEnricher:
    """Enriches CSV rows one at a time.

    Args:
        apollo: ApolloClient, or None.
        hunter: HunterClient, or None.
        llm: LLMGatewayClient, or None.
    """

    def __init__(self, apollo=None, hunter=None, llm=None) -> None:
        self.apollo = apollo
        self.hunter = hunter
        self.llm = llm

    async def _apollo(self, company_name: str) -> Optional[dict[str, Any]]:
        try:
            organizations = await self.apollo.search_organizations(company_name, per_page=1)
            org = organizations[0] if organizations else {}
            domain = strip_domain(org.get("primary_domain") or org.get("website_url"))

            people = await self.apollo.search_people(
                domain=domain,
                organization_name=company_name,
                per_page=5,
            )
        except ProviderError as e:
            logger.error("Apollo error for %s: %s", company_name, e)
            return None

        best = pick_best_person(people, DECISION_MAKER_TITLES)
        person_org = best.organization if best else {}
        phone = best.phone if best else None

        return {
            "phone": phone or person_org.get("phone") or org.get("phone"),
            "email": best.email if best else None,
            "website": person_org.get("website_url") or org.get("website_url"),
            "linkedin_url": best.linkedin_url if best else None,
            "company_domain": domain or person_org.get("primary_domain"),
            "contact_name": best.name if best else None,
            "job_title": best.title if best else None,
            "enrichment_source": "apollo",
        }

    async def _hunter(self, domain: str, contact_name: Optional[str]) -> Optional[str]:
        first, _, last = (contact_name or "").partition(" ")
        try:
            if first and last:
                email = await self.hunter.find_email(domain, first, last)
                if email:
                    return email
            emails = await self.hunter.domain_search(domain, limit=1)
        except ProviderError as e:
            logger.error("Hunter error for %s: %s", domain, e)
            return None
        return emails[0].value if emails else None

    async def _describe(self, company_name: str, row: EnrichedRow) -> Optional[str]:
        context = ". ".join(
            part for part in (
                company_name,
                f"Website: {row.website}" if row.website else "",
                f"Key contact: {row.contact_name} ({row.job_title})" if row.job_title else "",
            ) if part
        )
        try:
            content = await self.llm.chat(
                config.LLM_DESCRIPTION_MODEL,
                [
                    {"role": "system", "content": DESCRIPTION_PROMPT},
                    {"role": "user", "content": context},
                ],
            )
        except LLMError as e:
            logger.warning("Description generation failed for %s: %s", company_name, e)
            return None
        return content.strip() or None

    async def enrich_row(self, row: dict[str, Any]) -> EnrichedRow:
        company_name = row.get("company_name") or ""
        result = EnrichedRow(company_name=company_name, original_data=row.get("existing_data"))

        try:
            if self.apollo is not None and company_name:
                found = await self._apollo(company_name)
                if found:
                    for key, value in found.items():
                        setattr(result, key, value)

            if not result.email and self.hunter is not None and result.company_domain:
                email = await self._hunter(result.company_domain, result.contact_name)
                if email:
                    result.email = email
                    result.enrichment_source = (
                        f"{result.enrichment_source}+hunter" if result.enrichment_source else "hunter"
                    )

            if self.llm is not None:
                result.ai_description = await self._describe(company_name, result)

            result.status = row_status(result)
        except Exception as e:
            logger.exception("Error enriching %s", company_name)
            result.status = "error"
            result.error = str(e)

        return result

    async def run(
        self,
        rows: Optional[Sequence[dict[str, Any]]],
        row_index: Optional[int] = None,
    ) -> dict[str, Any]:
        """Enrich a single row (``row_index`` with one row) or a batch.

        Raises:
            ValidationFailed: On an empty or oversized batch.
        """
        if row_index is not None and rows and len(rows) == 1:
            enriched = await self.enrich_row(rows[0])
            return {"success": True, "row_index": row_index, "data": enriched.to_dict()}

        if not rows:
            raise ValidationFailed("No rows provided")
        if len(rows) > MAX_ROWS_PER_BATCH:
            raise ValidationFailed(f"Maximum {MAX_ROWS_PER_BATCH} rows per batch")

        results = [await self.enrich_row(row) for row in rows]
        summary = {"total": len(results)}
        for status in ROW_STATUSES:
            summary[status] = sum(1 for r in results if r.status == status)

        logger.info("CSV batch enriched", extra={"summary": summary})
        return {"success": True, "results": [r.to_dict() for r in results], "summary": summary}
