"""Buying-intent signals derived from a lead's enrichment data.

Detectors are pure functions over ``enrichment_data``; the detector service
stores whatever they return, skipping signals the lead already carries.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Sequence

from ..errors import ValidationFailed
from ..models import as_employee_count

logger = logging.getLogger(__name__)

FUNDING_STAGES = ("Series A", "Series B", "Series C", "Series D")
GROWTH_THRESHOLD_PERCENT = 20


@dataclass
class Signal:
    signal_type: str
    signal_source: str
    signal_data: dict[str, Any] = field(default_factory=dict)
    confidence_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def detect_funding_signals(enrichment: dict[str, Any]) -> list[Signal]:
    stage = enrichment.get("funding_stage")
    if stage not in FUNDING_STAGES:
        return []
    return [
        Signal(
            "recent_funding",
            "enrichment_data",
            {"stage": stage, "total": enrichment.get("funding_total")},
            90,
        )
    ]


def detect_technology_signals(
    current: Optional[Sequence[str]],
    previous: Optional[Sequence[str]],
) -> list[Signal]:
    """Adoption and removal signals from a tech-stack diff.

    No diff is possible without a previous snapshot.
    """
    if previous is None or current is None:
        return []

    added = [tech for tech in current if tech not in previous]
    removed = [tech for tech in previous if tech not in current]

    signals = []
    if added:
        signals.append(
            Signal("technology_adoption", "tech_stack_change", {"new_technologies": added}, 70)
        )
    if removed:
        signals.append(
            Signal("technology_change", "tech_stack_change", {"removed_technologies": removed}, 60)
        )
    return signals


def detect_expansion_signals(
    current_employees: Optional[int],
    previous_employees: Optional[int],
) -> list[Signal]:
    if not current_employees or not previous_employees:
        return []
    growth = (current_employees - previous_employees) / previous_employees * 100
    if growth <= GROWTH_THRESHOLD_PERCENT:
        return []
    return [
        Signal(
            "rapid_growth",
            "employee_growth",
            {
                "growth_rate": math.floor(growth + 0.5),
                "current_employees": current_employees,
                "previous_employees": previous_employees,
            },
            80,
        )
    ]


def detect_leadership_signals(title: Optional[str], seniority: Optional[str]) -> list[Signal]:
    if seniority != "c_suite" and "new" not in (title or "").lower():
        return []
    return [
        Signal(
            "leadership_change",
            "enrichment_data",
            {"title": title, "seniority": seniority},
            65,
        )
    ]


def detect_signals(enrichment: dict[str, Any], job_title: Optional[str] = None) -> list[Signal]:
    """Run every detector in order over one lead's enrichment data."""
    signals = detect_funding_signals(enrichment)
    signals += detect_technology_signals(
        enrichment.get("technologies") or [],
        enrichment.get("previous_technologies"),
    )
    signals += detect_expansion_signals(
        as_employee_count(enrichment.get("employee_count")),
        as_employee_count(enrichment.get("previous_employee_count")),
    )
    signals += detect_leadership_signals(
        enrichment.get("job_title") or job_title,
        enrichment.get("seniority_level"),
    )
    return signals


class IntentSignalDetector:
    """Detects and stores intent signals for scraped leads."""

    def __init__(self, repository) -> None:
        self.repository = repository

    async def _store_new(self, lead_id: str, signals: list[Signal]) -> int:
        existing = {
            (s.signal_type, s.signal_source, repr(sorted((s.signal_data or {}).items())))
            for s in await self.repository.list_intent_signals(lead_id)
        }
        stored = 0
        for signal in signals:
            key = (signal.signal_type, signal.signal_source, repr(sorted(signal.signal_data.items())))
            if key in existing:
                continue
            await self.repository.add_intent_signal(
                lead_id,
                signal.signal_type,
                signal.signal_source,
                signal.signal_data,
                signal.confidence_score,
            )
            existing.add(key)
            stored += 1
        return stored

    async def run(
        self,
        lead_id: Optional[str] = None,
        lead_ids: Optional[Sequence[str]] = None,
    ) -> dict[str, Any]:
        """Detect signals for one or many leads.

        Raises:
            ValidationFailed: If no lead ids were given.
        """
        ids = list(lead_ids) if lead_ids else ([lead_id] if lead_id else [])
        if not ids:
            raise ValidationFailed("No lead IDs provided")

        logger.info("Detecting intent signals for %d lead(s)", len(ids))
        results = []
        for current_id in ids:
            lead = await self.repository.get_scraped_lead(current_id)
            if lead is None:
                results.append({"lead_id": current_id, "signals_detected": 0, "signals": []})
                continue

            signals = detect_signals(lead.enrichment_data or {}, lead.job_title)
            stored = await self._store_new(lead.id, signals)
            logger.info(
                "Detected %d signals (%d new)",
                len(signals), stored,
                extra={"lead_id": lead.id},
            )
            results.append({
                "lead_id": current_id,
                "signals_detected": len(signals),
                "signals": [s.to_dict() for s in signals],
            })

        return {
            "success": True,
            "total_signals_detected": sum(r["signals_detected"] for r in results),
            "results": results,
        }
