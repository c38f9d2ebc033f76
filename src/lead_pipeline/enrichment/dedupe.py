"""Duplicate detection and optional merging of scraped leads.

Leads are grouped by four keys: normalised email, normalised phone,
domain plus contact name, and company plus city/state plus contact name.
Within a group the best lead becomes the primary and every other lead is
recorded as its duplicate.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from ..models import ScrapedLead, ScrapedLeadStatus, ValidationStatus

logger = logging.getLogger(__name__)

FULL_SCAN_LIMIT = 1000
CROSS_JOB_LIMIT = 500


@dataclass
class DuplicateMatch:
    primary_id: str
    duplicate_id: str
    match_reason: str

    def to_dict(self) -> dict[str, str]:
        return {
            "primary_id": self.primary_id,
            "duplicate_id": self.duplicate_id,
            "match_reason": self.match_reason,
        }


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    return email.lower().strip()


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Digits only with a US leading 1 dropped; None when under 10 digits."""
    if not phone:
        return None
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 11 and digits.startswith("1"):
        return digits[1:]
    return digits if len(digits) >= 10 else None


def normalize_name(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    return re.sub(r"\s+", " ", name.lower().strip())


def _primary_sort_key(lead: ScrapedLead) -> tuple:
    return (
        0 if lead.is_verified else 1,
        -(lead.confidence_score or 0),
        lead.created_at or datetime.max,
    )


def build_indexes(leads: Sequence[ScrapedLead]) -> list[tuple[str, dict[str, list[ScrapedLead]]]]:
    """Group leads by each match key, in the order the keys are checked."""
    by_email: dict[str, list[ScrapedLead]] = defaultdict(list)
    by_phone: dict[str, list[ScrapedLead]] = defaultdict(list)
    by_domain_name: dict[str, list[ScrapedLead]] = defaultdict(list)
    by_company_location: dict[str, list[ScrapedLead]] = defaultdict(list)

    for lead in leads:
        email = normalize_email(lead.best_email)
        if email:
            by_email[email].append(lead)

        phone = normalize_phone(lead.best_phone)
        if phone:
            by_phone[phone].append(lead)

        name = normalize_name(lead.full_name)
        if name:
            by_domain_name[f"{lead.domain}:{name}"].append(lead)

        schema = lead.schema_data or {}
        company = schema.get("company_name")
        city = schema.get("city") or ""
        state = schema.get("state") or ""
        if company and (city or state) and lead.full_name:
            key = f"{company.lower()}:{city.lower()}:{state.lower()}:{name}"
            by_company_location[key].append(lead)

    return [
        ("email", by_email),
        ("phone", by_phone),
        ("domain_name", by_domain_name),
        ("company_city_contact", by_company_location),
    ]


def find_duplicates(leads: Sequence[ScrapedLead]) -> list[DuplicateMatch]:
    """Primary/duplicate pairs across all indexes; each pair appears once."""
    matches: list[DuplicateMatch] = []
    seen_pairs: set[tuple[str, str]] = set()

    for reason, index in build_indexes(leads):
        for group in index.values():
            if len(group) < 2:
                continue
            ranked = sorted(group, key=_primary_sort_key)
            primary = ranked[0]
            for duplicate in ranked[1:]:
                pair = tuple(sorted((primary.id, duplicate.id)))
                if pair in seen_pairs:
                    continue
                seen_pairs.add(pair)
                matches.append(DuplicateMatch(primary.id, duplicate.id, reason))

    return matches


def merge_updates(primary: ScrapedLead, duplicate: ScrapedLead) -> dict[str, Any]:
    """Field updates that fold ``duplicate`` into ``primary``."""
    verified = ValidationStatus.VERIFIED
    updates: dict[str, Any] = {
        "all_emails": list(dict.fromkeys((primary.all_emails or []) + (duplicate.all_emails or []))),
        "all_phones": list(dict.fromkeys((primary.all_phones or []) + (duplicate.all_phones or []))),
    }

    if not primary.best_email or (
        duplicate.email_validation_status == verified
        and primary.email_validation_status != verified
    ):
        updates["best_email"] = duplicate.best_email or primary.best_email
        updates["email_validation_status"] = (
            duplicate.email_validation_status or primary.email_validation_status
        )

    if not primary.best_phone or (
        duplicate.phone_validation_status == verified
        and primary.phone_validation_status != verified
    ):
        updates["best_phone"] = duplicate.best_phone or primary.best_phone
        updates["phone_validation_status"] = (
            duplicate.phone_validation_status or primary.phone_validation_status
        )

    if not primary.full_name and duplicate.full_name:
        updates["full_name"] = duplicate.full_name

    updates["schema_data"] = {**(duplicate.schema_data or {}), **(primary.schema_data or {})}
    updates["enrichment_providers_used"] = list(
        dict.fromkeys(
            (primary.enrichment_providers_used or []) + (duplicate.enrichment_providers_used or [])
        )
    )
    updates["confidence_score"] = max(primary.confidence_score or 0, duplicate.confidence_score or 0)
    return updates


class LeadDeduplicator:
    """Finds, records and optionally merges duplicate leads."""

    def __init__(self, repository) -> None:
        self.repository = repository

    async def _load(
        self,
        job_id: Optional[str],
        lead_ids: Optional[Sequence[str]],
    ) -> list[ScrapedLead]:
        if lead_ids:
            new_leads = await self.repository.get_scraped_leads(list(lead_ids))
            new_leads.sort(key=lambda lead: lead.created_at or datetime.max)
            domains = list(dict.fromkeys(lead.domain for lead in new_leads if lead.domain))
            existing = await self.repository.list_cross_job_candidates(
                list(lead_ids), domains, CROSS_JOB_LIMIT
            )
            if existing:
                logger.info(
                    "Cross-job dedup: checking %d new leads against %d existing leads",
                    len(new_leads), len(existing),
                )
            return existing + new_leads
        if job_id:
            return await self.repository.list_leads_by_job(job_id)
        return await self.repository.list_active_leads(FULL_SCAN_LIMIT)

    async def _merge(self, match: DuplicateMatch, leads_by_id: dict[str, ScrapedLead]) -> bool:
        primary = leads_by_id.get(match.primary_id)
        duplicate = leads_by_id.get(match.duplicate_id)
        if primary is None or duplicate is None:
            return False

        await self.repository.update_scraped_lead(primary, merge_updates(primary, duplicate))
        await self.repository.update_scraped_lead(
            duplicate,
            {
                "status": ScrapedLeadStatus.REJECTED,
                "qc_flag": "merged",
                "qc_notes": f"Merged into {primary.id}",
            },
        )
        await self.repository.mark_duplicate_merged(primary.id, duplicate.id)
        return True

    async def run(
        self,
        job_id: Optional[str] = None,
        lead_ids: Optional[Sequence[str]] = None,
        auto_merge: bool = False,
    ) -> dict[str, Any]:
        leads = await self._load(job_id, lead_ids)
        if not leads:
            return {"success": True, "duplicates_found": 0, "message": "No leads to check"}

        logger.info("Checking %d leads for duplicates", len(leads))
        matches = find_duplicates(leads)
        logger.info("Found %d duplicate pairs", len(matches))

        for match in matches:
            if not await self.repository.duplicate_exists(match.primary_id, match.duplicate_id):
                await self.repository.add_duplicate(
                    match.primary_id, match.duplicate_id, match.match_reason
                )

        merged = 0
        if auto_merge:
            leads_by_id = {lead.id: lead for lead in leads}
            for match in matches:
                if await self._merge(match, leads_by_id):
                    merged += 1

        return {
            "success": True,
            "duplicates_found": len(matches),
            "merged_count": merged,
            "duplicate_pairs": [match.to_dict() for match in matches],
        }
