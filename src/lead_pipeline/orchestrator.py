"""Pipeline orchestrator running every enrichment and scoring step per lead.

Leads are processed one at a time, in order:

1. enrich       - gap-filling contact enrichment (Apollo, Hunter, Clearbit)
2. technographics - tech stack, social profiles and revenue estimate
3. contacts     - team and contact page extraction (Firecrawl)
4. validation   - email and phone validation
5. signals      - intent signal detection
6. score        - rule-based composite score and priority
7. webhook      - client webhook push for hot leads

Transient failures are retried with exponential backoff, except in the
validation and webhook steps, which run once. A step that still fails is
recorded on the lead's result and the remaining steps run anyway.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

from .automation import LeadWebhookTrigger
from .config import config as default_config
from .enrichment import (
    ContactPageExtractor,
    LeadEnricher,
    LeadValidator,
    TechnographicsEnricher,
)
from .errors import PipelineError, UpstreamRateLimited
from .integrations.registry import ProviderClients
from .models import ScrapedLead
from .scoring import CompositeLeadScorer, IntentSignalDetector
from .scoring.composite import ScoringCriteria

logger = logging.getLogger(__name__)

T = TypeVar("T")

HOT_LEAD_SCORE = 80


class PipelineStep(str, Enum):
    """Steps of the per-lead pipeline, in execution order."""

    ENRICH = "enrich"
    TECHNOGRAPHICS = "technographics"
    CONTACTS = "contacts"
    VALIDATION = "validation"
    SIGNALS = "signals"
    SCORE = "score"
    WEBHOOK = "webhook"


# Steps that write logs or call out before they can fail; never re-run
SINGLE_ATTEMPT_STEPS = frozenset({PipelineStep.VALIDATION, PipelineStep.WEBHOOK})


@dataclass
class PipelineOptions:
    """Options for a pipeline run.

    Attributes:
        max_retries: Retry attempts per step after the first try.
        retry_delay_seconds: Base delay between retries (doubles each retry).
        skip_steps: Steps not to run.
        criteria: Scoring criteria for the composite score.
        hot_lead_score: Minimum score that triggers the client webhook push.
    """

    max_retries: int = 2
    retry_delay_seconds: float = 1.0
    skip_steps: set[PipelineStep] = field(default_factory=set)
    criteria: Optional[ScoringCriteria] = None
    hot_lead_score: int = HOT_LEAD_SCORE

    @classmethod
    def from_config(cls, cfg=None, **overrides: Any) -> "PipelineOptions":
        cfg = cfg or default_config
        options = cls(
            max_retries=max(cfg.RETRY_MAX_ATTEMPTS - 1, 0),
            retry_delay_seconds=cfg.RETRY_DELAY_SECONDS,
        )
        for key, value in overrides.items():
            setattr(options, key, value)
        return options


@dataclass
class LeadPipelineResult:
    """Outcome of running one lead through the pipeline."""

    lead_id: str
    found: bool = True
    step_results: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    score: Optional[int] = None
    webhook_triggered: bool = False
    processing_time_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.found and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "lead_id": self.lead_id,
            "success": self.success,
            "found": self.found,
            "step_results": self.step_results,
            "errors": self.errors,
            "score": self.score,
            "webhook_triggered": self.webhook_triggered,
            "processing_time_seconds": self.processing_time_seconds,
        }


@dataclass
class PipelineRunResult:
    total_leads: int = 0
    processed_leads: int = 0
    failed_leads: int = 0
    lead_results: list[LeadPipelineResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.completed_at:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.failed_leads == 0,
            "total_leads": self.total_leads,
            "processed_leads": self.processed_leads,
            "failed_leads": self.failed_leads,
            "lead_results": [r.to_dict() for r in self.lead_results],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": self.duration_seconds,
        }


async def retry_with_backoff(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = 3,
    base_delay: float = 2.0,
    **kwargs: Any,
) -> T:
    """Execute a function with exponential backoff retry logic.

    Args:
        func: Function to execute (sync or async).
        *args: Positional arguments for the function.
        max_retries: Maximum number of retry attempts.
        base_delay: Base delay in seconds (doubles each retry).
        **kwargs: Keyword arguments for the function.

    Returns:
        The function result on success.

    Raises:
        The last exception if all retries fail. A ``PipelineError`` other
        than ``UpstreamRateLimited`` is raised from the first attempt.
    """
    last_exception: Optional[Exception] = None

    for attempt in range(max_retries + 1):
        try:
            if asyncio.iscoroutinefunction(func):
                return await func(*args, **kwargs)
            return func(*args, **kwargs)
        except Exception as e:
            if isinstance(e, PipelineError) and not isinstance(e, UpstreamRateLimited):
                raise
            last_exception = e
            if attempt < max_retries:
                delay = base_delay * (2 ** attempt)
                logger.warning(
                    "Attempt %d/%d failed: %s. Retrying in %.1fs...",
                    attempt + 1,
                    max_retries + 1,
                    str(e),
                    delay,
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    "All %d attempts failed. Last error: %s",
                    max_retries + 1,
                    str(e),
                )

    if last_exception:
        raise last_exception
    raise RuntimeError("Unexpected retry loop exit")


class LeadPipeline:
    """Runs scraped leads through enrichment, validation, scoring and delivery.

    Args:
        repository: LeadRepository shared by every step.
        clients: Configured provider clients.
        options: Retry and step options.
    """

    def __init__(
        self,
        repository,
        clients: ProviderClients,
        options: Optional[PipelineOptions] = None,
    ) -> None:
        self.repository = repository
        self.clients = clients
        self.options = options or PipelineOptions()

        self.enricher = LeadEnricher(repository, clients.apollo, clients.hunter, clients.clearbit)
        self.technographics = TechnographicsEnricher(repository, clients.firecrawl)
        self.contacts = ContactPageExtractor(repository, clients.firecrawl)
        self.validator = LeadValidator(repository, clients.dns, clients.zerobounce, clients.twilio)
        self.signals = IntentSignalDetector(repository)
        self.scorer = CompositeLeadScorer(repository)
        self.webhooks = LeadWebhookTrigger(repository, clients.webhooks)

    def _should_run(self, step: PipelineStep) -> bool:
        return step not in self.options.skip_steps

    async def _run_step(
        self,
        result: LeadPipelineResult,
        step: PipelineStep,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
    ) -> Any:
        try:
            outcome = await retry_with_backoff(
                func,
                *args,
                max_retries=0 if step in SINGLE_ATTEMPT_STEPS else self.options.max_retries,
                base_delay=self.options.retry_delay_seconds,
            )
        except Exception as e:
            logger.error(
                "Step %s failed: %s", step.value, e,
                extra={"lead_id": result.lead_id, "step": step.value},
            )
            result.errors[step.value] = str(e)
            return None
        result.step_results[step.value] = outcome
        return outcome

    def _can_crawl(self, lead: ScrapedLead) -> bool:
        return bool(self.clients.firecrawl and lead.domain and "-" not in lead.domain)

    async def process_lead(self, lead_id: str) -> LeadPipelineResult:
        """Run every enabled step for one lead."""
        started = time.monotonic()
        result = LeadPipelineResult(lead_id=lead_id)

        lead = await self.repository.get_scraped_lead(lead_id)
        if lead is None:
            result.found = False
            result.errors["lead"] = "Lead not found"
            return result

        if self._should_run(PipelineStep.ENRICH):
            await self._run_step(result, PipelineStep.ENRICH, self.enricher.enrich_lead, lead)

        if self._should_run(PipelineStep.TECHNOGRAPHICS):
            await self._run_step(
                result, PipelineStep.TECHNOGRAPHICS, self.technographics.enrich_lead, lead
            )

        if self._should_run(PipelineStep.CONTACTS) and self._can_crawl(lead):
            await self._run_step(result, PipelineStep.CONTACTS, self.contacts.extract_for_lead, lead)

        if self._should_run(PipelineStep.VALIDATION):
            await self._run_step(result, PipelineStep.VALIDATION, self.validator.validate_lead, lead)

        if self._should_run(PipelineStep.SIGNALS):
            await self._run_step(
                result, PipelineStep.SIGNALS, self.signals.run, None, [lead.id]
            )

        if self._should_run(PipelineStep.SCORE):
            scored = await self._run_step(
                result, PipelineStep.SCORE, self.scorer.score_lead, lead, self.options.criteria
            )
            if scored:
                result.score = scored["score"]

        if (
            self._should_run(PipelineStep.WEBHOOK)
            and result.score is not None
            and result.score >= self.options.hot_lead_score
        ):
            delivered = await self._run_step(
                result,
                PipelineStep.WEBHOOK,
                self.webhooks.run,
                None,
                [lead.id],
                "high_priority_lead",
                "pipeline_hot_lead",
            )
            result.webhook_triggered = bool(delivered and delivered.get("total_webhooks_triggered"))

        result.processing_time_seconds = round(time.monotonic() - started, 3)
        logger.info(
            "Pipeline finished for lead %s (score=%s, errors=%d)",
            lead_id, result.score, len(result.errors),
            extra={"lead_id": lead_id},
        )
        return result

    async def run(self, lead_ids: Sequence[str]) -> PipelineRunResult:
        """Process ``lead_ids`` sequentially."""
        run = PipelineRunResult(total_leads=len(lead_ids), started_at=datetime.now(timezone.utc))

        for index, lead_id in enumerate(lead_ids, start=1):
            logger.info("Processing lead %d/%d: %s", index, len(lead_ids), lead_id)
            lead_result = await self.process_lead(lead_id)
            run.lead_results.append(lead_result)
            if lead_result.success:
                run.processed_leads += 1
            else:
                run.failed_leads += 1

        run.completed_at = datetime.now(timezone.utc)
        logger.info(
            "Pipeline run complete: %d processed, %d failed",
            run.processed_leads, run.failed_leads,
        )
        return run
