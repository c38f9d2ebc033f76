"""Rule-based composite scoring of scraped leads.

Four components of up to 25 points each: data completeness, contact
quality, decision-maker fit and company fit. Scores are stored on the lead
together with a high/medium/low priority.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence

from ..errors import ValidationFailed
from ..models import ScrapedLead, ValidationStatus, as_employee_count

logger = logging.getLogger(__name__)

COMPONENT_MAX = 25
SCORE_MAX = 100
DEFAULT_MAX_COMPANY_SIZE = 10000

EXECUTIVE_TITLES = ("owner", "ceo", "founder", "president", "principal", "partner")
SENIOR_TITLES = ("director", "vp", "vice president", "head", "chief")
MANAGER_TITLES = ("manager", "supervisor", "lead")


@dataclass
class ScoringCriteria:
    target_industry: Optional[str] = None
    target_titles: list[str] = field(default_factory=list)
    min_company_size: Optional[int] = None
    max_company_size: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "ScoringCriteria":
        data = data or {}
        return cls(
            target_industry=data.get("target_industry"),
            target_titles=list(data.get("target_titles") or []),
            min_company_size=data.get("min_company_size"),
            max_company_size=data.get("max_company_size"),
        )


@dataclass
class LeadProfile:
    """The lead attributes scoring looks at."""

    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    job_title: Optional[str] = None
    seniority_level: Optional[str] = None
    company_name: Optional[str] = None
    industry: Optional[str] = None
    employee_count: Optional[int] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    email_validation_status: Optional[str] = None
    phone_validation_status: Optional[str] = None

    @classmethod
    def from_lead(cls, lead: ScrapedLead) -> "LeadProfile":
        schema = lead.schema_data or {}
        enrichment = lead.enrichment_data or {}
        return cls(
            full_name=lead.full_name,
            email=lead.best_email,
            phone=lead.best_phone,
            job_title=lead.job_title or enrichment.get("job_title"),
            seniority_level=enrichment.get("seniority_level"),
            company_name=lead.company_name,
            industry=schema.get("industry") or enrichment.get("industry"),
            employee_count=(
                as_employee_count(enrichment.get("employee_count"))
                or as_employee_count(schema.get("employee_count"))
            ),
            website=schema.get("website") or (f"https://{lead.domain}" if lead.domain else None),
            linkedin_url=schema.get("linkedin_url") or enrichment.get("linkedin_url"),
            email_validation_status=_status_value(lead.email_validation_status),
            phone_validation_status=_status_value(lead.phone_validation_status),
        )


@dataclass
class ScoreBreakdown:
    data_completeness: int
    contact_quality: int
    decision_maker_fit: int
    company_fit: int
    total: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _status_value(status: Any) -> Optional[str]:
    if isinstance(status, ValidationStatus):
        return status.value
    return status


def _data_completeness(p: LeadProfile) -> int:
    points = 0
    if p.full_name:
        points += 5
    if p.email:
        points += 8
    if p.phone:
        points += 5
    if p.job_title:
        points += 3
    if p.company_name:
        points += 2
    if p.linkedin_url:
        points += 2
    return points


def _contact_quality(p: LeadProfile) -> int:
    points = 0
    if p.email_validation_status == "verified":
        points += 12
    elif p.email_validation_status == "likely_valid":
        points += 8
    elif p.email:
        points += 4

    if p.phone_validation_status == "verified":
        points += 13
    elif p.phone_validation_status == "likely_valid":
        points += 9
    elif p.phone:
        points += 5
    return points


def _decision_maker_fit(p: LeadProfile, criteria: ScoringCriteria) -> int:
    title = (p.job_title or "").lower()
    seniority = (p.seniority_level or "").lower()

    if any(t in title for t in EXECUTIVE_TITLES) or seniority in ("owner", "c_suite"):
        points = 25
    elif any(t in title for t in SENIOR_TITLES) or seniority in ("vp", "director"):
        points = 18
    elif any(t in title for t in MANAGER_TITLES) or seniority == "manager":
        points = 12
    elif p.job_title:
        points = 5
    else:
        points = 0

    if criteria.target_titles and p.job_title:
        if any(target.lower() in title for target in criteria.target_titles):
            points = min(points + 5, COMPONENT_MAX)
    return points


def _company_fit(p: LeadProfile, criteria: ScoringCriteria) -> int:
    points = 0
    if p.company_name:
        points += 5
    if p.website:
        points += 3

    if criteria.target_industry and p.industry:
        target = criteria.target_industry.lower()
        industry = p.industry.lower()
        if industry in target or target in industry:
            points += 10
    elif p.industry:
        points += 3

    if p.employee_count:
        low = criteria.min_company_size or 0
        high = criteria.max_company_size or DEFAULT_MAX_COMPANY_SIZE
        points += 7 if low <= p.employee_count <= high else 2
    return points


def score_profile(profile: LeadProfile, criteria: Optional[ScoringCriteria] = None) -> ScoreBreakdown:
    """Score one lead; the total is capped at 100."""
    criteria = criteria or ScoringCriteria()
    completeness = _data_completeness(profile)
    quality = _contact_quality(profile)
    fit = _decision_maker_fit(profile, criteria)
    company = _company_fit(profile, criteria)
    return ScoreBreakdown(
        data_completeness=min(completeness, COMPONENT_MAX),
        contact_quality=min(quality, COMPONENT_MAX),
        decision_maker_fit=min(fit, COMPONENT_MAX),
        company_fit=min(company, COMPONENT_MAX),
        total=min(completeness + quality + fit + company, SCORE_MAX),
    )


def priority_for(score: int) -> str:
    if score >= 70:
        return "high"
    if score >= 45:
        return "medium"
    return "low"


def default_action(score: int, has_phone: bool) -> str:
    if score >= 80 and has_phone:
        return "Call immediately"
    if score >= 60:
        return "Email first"
    if score >= 40:
        return "Research more"
    return "Low priority"


class CompositeLeadScorer:
    """Scores scraped leads and stores ``lead_score`` and ``priority``."""

    def __init__(self, repository) -> None:
        self.repository = repository

    async def score_lead(
        self,
        lead: ScrapedLead,
        criteria: Optional[ScoringCriteria] = None,
    ) -> dict[str, Any]:
        profile = LeadProfile.from_lead(lead)
        breakdown = score_profile(profile, criteria)
        priority = priority_for(breakdown.total)

        await self.repository.update_scraped_lead(
            lead, {"lead_score": breakdown.total, "priority": priority}
        )
        return {
            "lead_id": lead.id,
            "score": breakdown.total,
            "score_breakdown": breakdown.to_dict(),
            "priority": priority,
            "recommended_action": default_action(breakdown.total, bool(profile.phone)),
            "email_validation_status": profile.email_validation_status,
            "phone_validation_status": profile.phone_validation_status,
        }

    async def run(
        self,
        lead_ids: Optional[Sequence[str]],
        criteria: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Score leads and return them highest first with summary stats.

        Raises:
            ValidationFailed: If no lead ids were given.
        """
        if not lead_ids:
            raise ValidationFailed("No leads provided")

        scoring = ScoringCriteria.from_dict(criteria)
        leads = await self.repository.get_scraped_leads(list(lead_ids))
        logger.info("Scoring %d leads", len(leads))

        scored = [await self.score_lead(lead, scoring) for lead in leads]
        scored.sort(key=lambda item: item["score"], reverse=True)

        total = len(scored)
        summary = {
            "total_leads": total,
            "high_priority": sum(1 for s in scored if s["priority"] == "high"),
            "medium_priority": sum(1 for s in scored if s["priority"] == "medium"),
            "low_priority": sum(1 for s in scored if s["priority"] == "low"),
            "average_score": (
                math.floor(sum(s["score"] for s in scored) / total + 0.5) if total else 0
            ),
            "with_verified_email": sum(
                1 for s in scored if s["email_validation_status"] == "verified"
            ),
            "with_verified_phone": sum(
                1 for s in scored if s["phone_validation_status"] == "verified"
            ),
        }
        logger.info("Scoring complete", extra={"summary": summary})
        return {"success": True, "data": scored, "summary": summary}
