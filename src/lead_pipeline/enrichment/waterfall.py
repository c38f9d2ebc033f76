"""Multi-provider waterfall enrichment for a company domain.

Providers run in a fixed order (Apollo, Hunter, People Data Labs, Clearbit)
and each one only fills fields the earlier ones left empty. ZeroBounce and
Twilio Lookup then check the email and phone that were found and clear
whichever one fails.
"""

import logging
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ..errors import ProviderNotConfigured, ValidationFailed
from ..integrations.apollo import EXECUTIVE_TITLES, pick_best_person
from ..integrations.http import ProviderError
from ..integrations.twilio_lookup import TwilioLookupError

logger = logging.getLogger(__name__)

CORE_FIELDS = ("full_name", "email", "phone")
NICE_TO_HAVE_FIELDS = ("job_title", "linkedin_url", "company_name")


@dataclass
class WaterfallStep:
    """One provider's contribution to the waterfall."""

    provider: str
    success: bool
    fields_found: list[str]
    fields_missing: list[str]
    duration_ms: int


@dataclass
class WaterfallResult:
    """Merged contact and company data plus the provider trail."""

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    mobile_phone: Optional[str] = None
    direct_phone: Optional[str] = None
    job_title: Optional[str] = None
    seniority_level: Optional[str] = None
    department: Optional[str] = None
    linkedin_url: Optional[str] = None
    company_name: Optional[str] = None
    company_linkedin_url: Optional[str] = None
    employee_count: Optional[int] = None
    annual_revenue: Optional[int] = None
    industry: Optional[str] = None
    founded_year: Optional[int] = None
    headquarters_city: Optional[str] = None
    headquarters_state: Optional[str] = None
    providers_used: list[str] = field(default_factory=list)
    waterfall_log: list[WaterfallStep] = field(default_factory=list)

    def merge(self, data: dict[str, Any]) -> None:
        for key, value in data.items():
            setattr(self, key, value)

    def missing_fields(self, pending: Optional[dict[str, Any]] = None) -> list[str]:
        """Core and nice-to-have fields still empty once ``pending`` is applied."""
        pending = pending or {}
        return [
            name
            for name in CORE_FIELDS + NICE_TO_HAVE_FIELDS
            if not pending.get(name, getattr(self, name))
        ]

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in CORE_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class WaterfallInput:
    domain: str
    name: Optional[str] = None
    company_name: Optional[str] = None
    target_titles: Optional[list[str]] = None


ProviderStep = Callable[
    [WaterfallInput, WaterfallResult], Awaitable[tuple[Optional[dict], list[str]]]
]


class DataWaterfallEnricher:
    """Chains enrichment providers for maximum coverage.

    Any provider argument may be None; the matching step is skipped.
    """

    def __init__(
        self,
        apollo=None,
        hunter=None,
        pdl=None,
        clearbit=None,
        zerobounce=None,
        twilio=None,
    ) -> None:
        self.apollo = apollo
        self.hunter = hunter
        self.pdl = pdl
        self.clearbit = clearbit
        self.zerobounce = zerobounce
        self.twilio = twilio

    def available_providers(self) -> list[str]:
        names = ("apollo", "hunter", "pdl", "clearbit")
        return [name for name in names if getattr(self, name) is not None]

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    async def _from_apollo(self, request: WaterfallInput, current: WaterfallResult):
        people = await self.apollo.search_people(
            domain=request.domain, titles=request.target_titles or None, per_page=5
        )
        best = pick_best_person(people, EXECUTIVE_TITLES)
        if best is None:
            return None, []

        org = best.organization
        found = [
            name for name, present in (
                ("full_name", best.name),
                ("email", best.email),
                ("phone", best.phone_numbers),
                ("job_title", best.title),
                ("linkedin_url", best.linkedin_url),
                ("company_name", org.get("name")),
            ) if present
        ]
        data = {
            "full_name": best.name or None,
            "email": best.email or None,
            "phone": best.phone,
            "mobile_phone": best.phone_of_type("mobile"),
            "direct_phone": best.phone_of_type("direct_dial"),
            "job_title": best.title or None,
            "seniority_level": best.seniority or None,
            "department": best.departments[0] if best.departments else None,
            "linkedin_url": best.linkedin_url or None,
            "company_name": org.get("name") or None,
            "company_linkedin_url": org.get("linkedin_url") or None,
            "employee_count": org.get("estimated_num_employees") or None,
            "annual_revenue": org.get("annual_revenue") or None,
            "industry": org.get("industry") or None,
            "founded_year": org.get("founded_year") or None,
            "headquarters_city": org.get("city") or None,
            "headquarters_state": org.get("state") or None,
        }
        return data, found

    async def _from_hunter(self, request: WaterfallInput, current: WaterfallResult):
        if current.full_name:
            parts = current.full_name.split(" ")
            email = await self.hunter.find_email(request.domain, parts[0], parts[-1])
            if email:
                return {"email": email}, ["email"]

        emails = await self.hunter.domain_search(request.domain, limit=5)
        if not emails:
            return None, []

        best = emails[0]
        data: dict[str, Any] = {"email": best.value}
        found = ["email"]
        if not current.full_name and best.full_name:
            data["full_name"] = best.full_name
            found.append("full_name")
        if not current.job_title and best.position:
            data["job_title"] = best.position
            found.append("job_title")
        if not current.linkedin_url and best.linkedin:
            data["linkedin_url"] = best.linkedin
            found.append("linkedin_url")
        return data, found

    async def _from_pdl(self, request: WaterfallInput, current: WaterfallResult):
        person = await self.pdl.enrich_person(
            email=current.email, name=current.full_name, company=request.domain
        )
        if not person:
            return None, []

        personal_emails = person.get("personal_emails") or []
        phone_numbers = person.get("phone_numbers") or []
        candidates = {
            "full_name": person.get("full_name"),
            "email": person.get("work_email") or (personal_emails[0] if personal_emails else None),
            "phone": phone_numbers[0] if phone_numbers else None,
            "mobile_phone": person.get("mobile_phone"),
            "job_title": person.get("job_title"),
            "linkedin_url": person.get("linkedin_url"),
            "company_name": person.get("job_company_name"),
            "industry": person.get("job_company_industry"),
        }
        return self._fill_gaps(current, candidates)

    async def _from_clearbit(self, request: WaterfallInput, current: WaterfallResult):
        company = await self.clearbit.find_company(request.domain)
        if not company:
            return None, []

        metrics = company.get("metrics") or {}
        geo = company.get("geo") or {}
        handle = (company.get("linkedin") or {}).get("handle")
        revenue = metrics.get("estimatedAnnualRevenue")
        revenue_digits = re.sub(r"[^0-9]", "", str(revenue)) if revenue else ""

        candidates = {
            "company_name": company.get("name"),
            "industry": (company.get("category") or {}).get("industry"),
            "employee_count": metrics.get("employees"),
            "annual_revenue": int(revenue_digits) if revenue_digits else None,
            "company_linkedin_url": f"https://www.linkedin.com/company/{handle}" if handle else None,
            "headquarters_city": geo.get("city"),
            "headquarters_state": geo.get("stateCode"),
        }
        return self._fill_gaps(current, candidates)

    @staticmethod
    def _fill_gaps(current: WaterfallResult, candidates: dict[str, Any]) -> tuple[dict, list[str]]:
        data = {
            name: value
            for name, value in candidates.items()
            if value and not getattr(current, name)
        }
        return data, list(data)

    async def _run_step(
        self,
        provider: str,
        step: ProviderStep,
        request: WaterfallInput,
        result: WaterfallResult,
    ) -> None:
        started = time.monotonic()
        try:
            data, found = await step(request, result)
        except ProviderError as e:
            logger.error("%s waterfall error: %s", provider, e, extra={"provider": provider})
            data, found = None, []
        duration_ms = int((time.monotonic() - started) * 1000)

        result.waterfall_log.append(
            WaterfallStep(
                provider=provider,
                success=data is not None,
                fields_found=found,
                fields_missing=result.missing_fields(data),
                duration_ms=duration_ms,
            )
        )
        if data is not None:
            result.merge(data)
            result.providers_used.append(provider)
        logger.info("%s: %d fields found", provider, len(found), extra={"provider": provider})

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    async def _verify_email(self, result: WaterfallResult) -> None:
        started = time.monotonic()
        try:
            verdict = await self.zerobounce.validate(result.email)
            valid, status = verdict.is_deliverable, verdict.status
        except ProviderError as e:
            logger.error("ZeroBounce validation error: %s", e)
            valid, status = True, "validation_error"

        result.waterfall_log.append(
            WaterfallStep(
                provider="zerobounce",
                success=valid,
                fields_found=["email_validated"] if valid else [],
                fields_missing=[],
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )
        if valid:
            result.providers_used.append("zerobounce")
        else:
            logger.info("ZeroBounce: email invalid (%s), clearing email", status)
            result.email = None

    async def _verify_phone(self, result: WaterfallResult) -> None:
        started = time.monotonic()
        line_type = None
        cleaned = re.sub(r"[^0-9+]", "", result.phone)
        if len(cleaned) < 10:
            valid = False
        else:
            try:
                lookup = await self.twilio.lookup(cleaned)
                valid = lookup.is_reachable
                line_type = lookup.line_type
            except TwilioLookupError as e:
                logger.error("Twilio validation error: %s", e)
                valid = True

        found = []
        if valid:
            found = ["phone_validated"] + (["line_type"] if line_type else [])
        result.waterfall_log.append(
            WaterfallStep(
                provider="twilio",
                success=valid,
                fields_found=found,
                fields_missing=[],
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )
        if valid:
            result.providers_used.append("twilio")
        else:
            logger.info("Twilio: phone invalid, clearing phone")
            result.phone = None

    # ------------------------------------------------------------------

    async def enrich(self, request: WaterfallInput) -> WaterfallResult:
        result = WaterfallResult()
        logger.info(
            "Starting waterfall enrichment for %s (providers: %s)",
            request.domain, ", ".join(self.available_providers()),
        )

        if self.apollo is not None and not result.is_complete:
            await self._run_step("apollo", self._from_apollo, request, result)
        if self.hunter is not None and not result.email:
            await self._run_step("hunter", self._from_hunter, request, result)
        if self.pdl is not None and not result.is_complete:
            await self._run_step("pdl", self._from_pdl, request, result)
        if self.clearbit is not None and not (
            result.company_name and result.industry and result.employee_count
        ):
            await self._run_step("clearbit", self._from_clearbit, request, result)

        if self.zerobounce is not None and result.email:
            await self._verify_email(result)
        if self.twilio is not None and result.phone:
            await self._verify_phone(result)

        logger.info(
            "Waterfall complete. Providers used: %s. Complete: %s",
            ", ".join(result.providers_used), result.is_complete,
        )
        return result

    async def run(
        self,
        domain: Optional[str],
        name: Optional[str] = None,
        company_name: Optional[str] = None,
        target_titles: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Run the waterfall for one domain.

        Raises:
            ProviderNotConfigured: If no enrichment provider is configured.
            ValidationFailed: If no domain was given.
        """
        if not self.available_providers():
            raise ProviderNotConfigured(
                "No enrichment providers configured. Add APOLLO_API_KEY, "
                "HUNTER_API_KEY, PDL_API_KEY, or CLEARBIT_API_KEY."
            )
        if not domain:
            raise ValidationFailed("Domain is required")

        result = await self.enrich(
            WaterfallInput(
                domain=domain, name=name, company_name=company_name, target_titles=target_titles
            )
        )
        data = result.to_dict()
        return {
            "success": True,
            "data": data,
            "is_complete": result.is_complete,
            "providers_used": result.providers_used,
            "waterfall_log": data["waterfall_log"],
        }
