"""Deep contact extraction from a lead's contact, about and team pages."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..errors import ProviderNotConfigured, ValidationFailed
from ..models import ScrapedLead

logger = logging.getLogger(__name__)

CONTACT_PATHS = ["/contact", "/contact-us", "/get-in-touch", "/reach-us", "/connect"]
ABOUT_PATHS = [
    "/about", "/about-us", "/our-team", "/team",
    "/staff", "/leadership", "/people", "/who-we-are",
]

MAX_LEADS_PER_REQUEST = 10
SCRAPE_WAIT_MS = 2000
# Shorter pages are treated as error or placeholder pages
MIN_PAGE_LENGTH = 100
ENOUGH_PEOPLE = 3
ENOUGH_PAGES = 2

# Best contact first; titles matching none of these rank last
TITLE_PRIORITY = ["owner", "ceo", "founder", "president", "director", "manager"]

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_RE = re.compile(r"(?:\+?1[-.\s]?)?(?:\(\d{3}\)?[-.\s]?)?\d{3}[-.\s]?\d{4}")

_NAME = r"[A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,3}"
TEAM_PATTERNS = [
    # ## Jane Doe \n *Title*
    re.compile(r"#{2,4}\s*(" + _NAME + r")\s*\n+\s*\*{0,2}([^*\n]{3,60})\*{0,2}"),
    # **Jane Doe** - Title, **Jane Doe**, Title
    re.compile(r"\*\*(" + _NAME + r")\*\*\s*[-–,]\s*([^\n]{3,60})"),
    # | Jane Doe | Title |
    re.compile(r"\|?\s*(" + _NAME + r")\s*\|\s*([A-Za-z\s&,]{3,60})\s*\|?"),
]
ROLE_PATTERN = re.compile(
    r"(?:contact|owner|manager|director|ceo|founder|president|broker|agent|partner|principal)"
    r"\s*[:|-]\s*(" + _NAME + r")",
    re.IGNORECASE,
)


@dataclass
class PersonInfo:
    """A person found on a company page."""

    name: str
    title: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    source_page: str

    def to_contact(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "email": self.email,
            "phone": self.phone,
            "source": self.source_page,
        }


def extract_emails(text: str) -> list[str]:
    """Unique addresses in order of appearance, minus placeholders and image names."""
    seen: list[str] = []
    for email in EMAIL_RE.findall(text or ""):
        if email in seen:
            continue
        if "example.com" in email or email.endswith(".png") or email.endswith(".jpg"):
            continue
        seen.append(email)
    return seen


def extract_phones(text: str) -> list[str]:
    """Unique digit-only phone numbers of 10 or 11 digits."""
    seen: list[str] = []
    for raw in PHONE_RE.findall(text or ""):
        digits = re.sub(r"\D", "", raw)
        if digits not in seen and 10 <= len(digits) <= 11:
            seen.append(digits)
    return seen


def _known(people: list[PersonInfo], name: str) -> bool:
    lowered = name.lower()
    return any(person.name.lower() == lowered for person in people)


def extract_people(markdown: str, source_page: str) -> list[PersonInfo]:
    """Find named people with their titles and nearby contact details."""
    people: list[PersonInfo] = []

    for pattern in TEAM_PATTERNS:
        for match in pattern.finditer(markdown):
            name = (match.group(1) or "").strip()
            title = (match.group(2) or "").strip() or None
            if not name or len(name.split(" ")) < 2:
                continue

            context = markdown[match.start():match.end() + 300]
            emails = extract_emails(context)
            phones = extract_phones(context)
            if not _known(people, name):
                people.append(
                    PersonInfo(
                        name=name,
                        title=title,
                        email=emails[0] if emails else None,
                        phone=phones[0] if phones else None,
                        source_page=source_page,
                    )
                )

    for match in ROLE_PATTERN.finditer(markdown):
        name = (match.group(1) or "").strip()
        if not name or _known(people, name):
            continue
        title = re.split(r"[:|-]", match.group(0))[0].strip()
        context = markdown[max(0, match.start() - 50):match.end() + 200]
        emails = extract_emails(context)
        phones = extract_phones(context)
        people.append(
            PersonInfo(
                name=name,
                title=title,
                email=emails[0] if emails else None,
                phone=phones[0] if phones else None,
                source_page=source_page,
            )
        )

    return people


def title_rank(title: Optional[str]) -> int:
    """Position of the first matching priority keyword; unmatched sorts last."""
    lowered = (title or "").lower()
    for index, keyword in enumerate(TITLE_PRIORITY):
        if keyword in lowered:
            return index
    return len(TITLE_PRIORITY)


def pick_primary_contact(people: Sequence[PersonInfo]) -> Optional[PersonInfo]:
    if not people:
        return None
    return sorted(people, key=lambda person: title_rank(person.title))[0]


class ContactPageExtractor:
    """Scrapes contact and team pages and folds the people found into leads.

    Args:
        repository: LeadRepository for reads and writes.
        firecrawl: FirecrawlClient; required.
    """

    def __init__(self, repository, firecrawl=None) -> None:
        self.repository = repository
        self.firecrawl = firecrawl

    async def _crawl(self, domain: str) -> tuple[list[PersonInfo], list[str], list[str], list[str]]:
        people: list[PersonInfo] = []
        pages: list[str] = []
        emails: list[str] = []
        phones: list[str] = []

        for path in CONTACT_PATHS + ABOUT_PATHS:
            result = await self.firecrawl.scrape_url_safe(
                f"https://{domain}{path}",
                formats=["markdown"],
                only_main_content=False,
                wait_for=SCRAPE_WAIT_MS,
            )
            markdown = (result.markdown or "") if result.success else ""
            if len(markdown) > MIN_PAGE_LENGTH:
                pages.append(path)
                people.extend(extract_people(markdown, path))
                emails.extend(extract_emails(markdown))
                phones.extend(extract_phones(markdown))

            if len(people) >= ENOUGH_PEOPLE and len(pages) >= ENOUGH_PAGES:
                break

        return people, pages, emails, phones

    async def extract_for_lead(self, lead: ScrapedLead) -> dict[str, Any]:
        found, pages, emails, phones = await self._crawl(lead.domain)

        people: list[PersonInfo] = []
        for person in found:
            if not _known(people, person.name):
                people.append(person)

        if people or pages:
            existing_emails = list(lead.all_emails or [])
            existing_phones = list(lead.all_phones or [])
            unique_emails = list(dict.fromkeys(existing_emails + emails))
            unique_phones = list(dict.fromkeys(existing_phones + phones))

            updates: dict[str, Any] = {}
            if len(unique_emails) > len(existing_emails):
                updates["all_emails"] = unique_emails
            if len(unique_phones) > len(existing_phones):
                updates["all_phones"] = unique_phones

            best = pick_primary_contact(people)
            if best is not None and not lead.full_name:
                updates["full_name"] = best.name
                if best.email and not lead.best_email:
                    updates["best_email"] = best.email
                if best.phone and not lead.best_phone:
                    updates["best_phone"] = best.phone

            schema = dict(lead.schema_data or {})
            contacts = list(schema.get("all_contacts") or [])
            for person in people:
                if not any((c.get("name") or "").lower() == person.name.lower() for c in contacts):
                    contacts.append(person.to_contact())
            updates["schema_data"] = {
                **schema,
                "all_contacts": contacts,
                "contacts_found": len(contacts),
                "deep_extraction_pages": pages,
            }
            await self.repository.update_scraped_lead(lead, updates)

        logger.info(
            "Contact extraction for %s: %d people across %d pages",
            lead.domain, len(people), len(pages),
            extra={"lead_id": lead.id},
        )
        return {"lead_id": lead.id, "people_found": len(people), "pages_scraped": pages}

    async def run(self, lead_ids: Optional[Sequence[str]]) -> dict[str, Any]:
        """Extract contacts for up to 10 leads.

        Raises:
            ProviderNotConfigured: If Firecrawl is not configured.
            ValidationFailed: If no lead ids were given.
        """
        if self.firecrawl is None:
            raise ProviderNotConfigured("Firecrawl not configured")
        if not lead_ids:
            raise ValidationFailed("lead_ids required")

        results = []
        for lead_id in list(lead_ids)[:MAX_LEADS_PER_REQUEST]:
            lead = await self.repository.get_scraped_lead(lead_id)
            if lead is None or not lead.domain or "-" in lead.domain:
                results.append({"lead_id": lead_id, "people_found": 0, "pages_scraped": []})
                continue
            results.append(await self.extract_for_lead(lead))

        return {"success": True, "results": results}
