"""Per-source performance analytics for scraped leads.

Aggregates the leads created in a date window by ``source_type`` and stores
one ``source_analytics`` snapshot per source for historical tracking.
Rounding is half-up to match the dashboard's figures.
"""

import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

from .errors import ValidationFailed
from .models import ValidationStatus, utcnow

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 30
MIN_LEADS_FOR_CONVERSION_RANKING = 5
UNKNOWN_SOURCE = "unknown"


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _rate(part: int, whole: int) -> float:
    """Percentage with two decimals."""
    return math.floor(part / whole * 10000 + 0.5) / 100 if whole else 0


@dataclass
class SourceMetrics:
    source_type: str
    leads_generated: int
    leads_enriched: int
    leads_verified: int
    leads_assigned: int
    leads_converted: int
    avg_confidence_score: int
    avg_lead_score: int
    total_cost_usd: float
    cost_per_lead: float
    conversion_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def cost_per_conversion(self) -> Optional[float]:
        if not self.leads_converted:
            return None
        return self.total_cost_usd / self.leads_converted


class _Accumulator:
    def __init__(self) -> None:
        self.generated = 0
        self.enriched = 0
        self.verified = 0
        self.assigned = 0
        self.converted = 0
        self.confidence_total = 0
        self.confidence_count = 0
        self.lead_score_total = 0
        self.cost = 0.0

    def metrics(self, source: str) -> SourceMetrics:
        return SourceMetrics(
            source_type=source,
            leads_generated=self.generated,
            leads_enriched=self.enriched,
            leads_verified=self.verified,
            leads_assigned=self.assigned,
            leads_converted=self.converted,
            avg_confidence_score=(
                int(round_half_up(self.confidence_total / self.confidence_count))
                if self.confidence_count else 0
            ),
            avg_lead_score=(
                int(round_half_up(self.lead_score_total / self.generated)) if self.generated else 0
            ),
            total_cost_usd=round_half_up(self.cost, 2),
            cost_per_lead=round_half_up(self.cost / self.generated, 2) if self.generated else 0,
            conversion_rate=_rate(self.converted, self.generated),
        )


def parse_period(
    start_date: Union[str, date, None],
    end_date: Union[str, date, None],
    today: Optional[date] = None,
) -> tuple[date, date]:
    """Resolve the reporting window; defaults to the last 30 days.

    Raises:
        ValidationFailed: On an unparseable date or an inverted window.
    """
    today = today or utcnow().date()

    def _coerce(value, default: date) -> date:
        if value is None or value == "":
            return default
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            raise ValidationFailed(f"Invalid date: {value}")

    start = _coerce(start_date, today - timedelta(days=DEFAULT_WINDOW_DAYS))
    end = _coerce(end_date, today)
    if start > end:
        raise ValidationFailed("start_date must not be after end_date")
    return start, end


def summarize_sources(
    leads,
    costs: list[tuple[str, float]],
    converted: set[str],
) -> list[SourceMetrics]:
    """Per-source metrics, most leads first."""
    cost_by_lead: dict[str, float] = defaultdict(float)
    for lead_id, cost in costs:
        cost_by_lead[lead_id] += cost or 0.0

    by_source: dict[str, _Accumulator] = {}
    for lead in leads:
        acc = by_source.setdefault(lead.source_type or UNKNOWN_SOURCE, _Accumulator())
        acc.generated += 1
        if lead.enrichment_providers_used:
            acc.enriched += 1
        if ValidationStatus.VERIFIED in (lead.email_validation_status, lead.phone_validation_status):
            acc.verified += 1
        if lead.assigned_to_org:
            acc.assigned += 1
        if lead.id in converted:
            acc.converted += 1
        if lead.confidence_score:
            acc.confidence_total += lead.confidence_score
            acc.confidence_count += 1
        if lead.lead_score:
            acc.lead_score_total += lead.lead_score
        acc.cost += cost_by_lead.get(lead.id, 0.0)

    sources = [acc.metrics(source) for source, acc in by_source.items()]
    sources.sort(key=lambda m: m.leads_generated, reverse=True)
    return sources


def overall_metrics(sources: list[SourceMetrics]) -> dict[str, Any]:
    total_leads = sum(s.leads_generated for s in sources)
    total_converted = sum(s.leads_converted for s in sources)
    weighted_score = sum(s.avg_lead_score * s.leads_generated for s in sources) / (total_leads or 1)

    ranked = sorted(
        (s for s in sources if s.leads_generated >= MIN_LEADS_FOR_CONVERSION_RANKING),
        key=lambda s: s.conversion_rate,
        reverse=True,
    )
    return {
        "total_leads": total_leads,
        "total_enriched": sum(s.leads_enriched for s in sources),
        "total_verified": sum(s.leads_verified for s in sources),
        "total_assigned": sum(s.leads_assigned for s in sources),
        "total_converted": total_converted,
        "total_cost": round_half_up(sum(s.total_cost_usd for s in sources), 2),
        "avg_lead_score": int(round_half_up(weighted_score)),
        "conversion_rate": _rate(total_converted, total_leads),
        "top_source": sources[0].source_type if sources else "none",
        "best_converting_source": ranked[0].source_type if ranked else "none",
    }


class ScraperAnalytics:
    """Builds and stores per-source analytics for a date window."""

    def __init__(self, repository) -> None:
        self.repository = repository

    async def run(
        self,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        source_type: Optional[str] = None,
    ) -> dict[str, Any]:
        start, end = parse_period(start_date, end_date)
        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end, time(23, 59, 59))
        logger.info("Generating analytics from %s to %s", start, end)

        leads = await self.repository.list_leads_created_between(window_start, window_end, source_type)
        costs = await self.repository.list_enrichment_costs(window_start, window_end)
        converted = await self.repository.list_converted_lead_ids(window_start, window_end)

        sources = summarize_sources(leads, costs, converted)

        for metrics in sources:
            await self.repository.upsert_source_analytics(
                metrics.source_type,
                start,
                end,
                {
                    "leads_generated": metrics.leads_generated,
                    "leads_enriched": metrics.leads_enriched,
                    "leads_verified": metrics.leads_verified,
                    "leads_assigned": metrics.leads_assigned,
                    "leads_converted": metrics.leads_converted,
                    "avg_confidence_score": metrics.avg_confidence_score,
                    "avg_lead_score": metrics.avg_lead_score,
                    "total_cost_usd": metrics.total_cost_usd,
                    "cost_per_lead": metrics.cost_per_lead,
                    "cost_per_conversion": metrics.cost_per_conversion,
                    "conversion_rate": metrics.conversion_rate,
                },
            )

        return {
            "success": True,
            "period": {"start": start.isoformat(), "end": end.isoformat()},
            "overall": overall_metrics(sources),
            "by_source": [m.to_dict() for m in sources],
        }
