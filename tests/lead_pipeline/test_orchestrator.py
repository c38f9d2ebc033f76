"""Unit tests for the per-lead pipeline orchestrator."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lead_pipeline.errors import NotFound, UpstreamRateLimited, ValidationFailed
from lead_pipeline.integrations.registry import ProviderClients
from lead_pipeline.orchestrator import (
    LeadPipeline,
    PipelineOptions,
    PipelineStep,
    retry_with_backoff,
)

from .factories import make_scraped_lead


def _pipeline(repository, score=85, firecrawl=True, **options):
    clients = ProviderClients(firecrawl=MagicMock() if firecrawl else None)
    options = {"max_retries": 0, "retry_delay_seconds": 0, **options}
    pipeline = LeadPipeline(repository, clients, PipelineOptions(**options))
    pipeline.enricher = SimpleNamespace(enrich_lead=AsyncMock(return_value=[]))
    pipeline.technographics = SimpleNamespace(enrich_lead=AsyncMock(return_value={"technologies": []}))
    pipeline.contacts = SimpleNamespace(extract_for_lead=AsyncMock(return_value={"contacts_found": 1}))
    pipeline.validator = SimpleNamespace(validate_lead=AsyncMock(return_value={"email_valid": True}))
    pipeline.signals = SimpleNamespace(run=AsyncMock(return_value={"success": True}))
    pipeline.scorer = SimpleNamespace(
        score_lead=AsyncMock(return_value={"score": score, "priority": "high"})
    )
    pipeline.webhooks = SimpleNamespace(
        run=AsyncMock(return_value={"success": True, "total_webhooks_triggered": 1})
    )
    return pipeline


class TestRetryWithBackoff:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        func = AsyncMock(side_effect=[RuntimeError("boom"), RuntimeError("boom"), "ok"])

        with patch("lead_pipeline.orchestrator.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await retry_with_backoff(func, "a", max_retries=3, base_delay=2.0)

        assert result == "ok"
        assert func.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raises_last_error(self):
        func = MagicMock(side_effect=ValueError("bad"))

        with patch("lead_pipeline.orchestrator.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ValueError, match="bad"):
                await retry_with_backoff(func, max_retries=1, base_delay=0)

        assert func.call_count == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [ValidationFailed("Lead has no domain"), NotFound("Lead not found")])
    async def test_request_errors_not_retried(self, error):
        func = AsyncMock(side_effect=error)

        with patch("lead_pipeline.orchestrator.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(type(error)):
                await retry_with_backoff(func, max_retries=3, base_delay=1.0)

        assert func.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_retried(self):
        func = AsyncMock(side_effect=[UpstreamRateLimited("Rate limit exceeded"), "ok"])

        with patch("lead_pipeline.orchestrator.asyncio.sleep", new=AsyncMock()) as sleep:
            assert await retry_with_backoff(func, max_retries=3, base_delay=1.0) == "ok"

        sleep.assert_awaited_once_with(1.0)


class TestPipelineOptions:

    @pytest.mark.unit
    def test_from_config(self):
        cfg = SimpleNamespace(RETRY_MAX_ATTEMPTS=3, RETRY_DELAY_SECONDS=0.5)

        options = PipelineOptions.from_config(cfg, skip_steps={PipelineStep.WEBHOOK})

        assert options.max_retries == 2
        assert options.retry_delay_seconds == 0.5
        assert options.skip_steps == {PipelineStep.WEBHOOK}


class TestLeadPipeline:
    """Tests for step ordering, skipping and failure isolation."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_all_steps_run_and_hot_lead_pushed(self, repository):
        lead = make_scraped_lead(id="lead-1")
        repository.get_scraped_lead.return_value = lead
        pipeline = _pipeline(repository)

        result = await pipeline.process_lead("lead-1")

        assert result.success
        assert list(result.step_results) == [step.value for step in PipelineStep]
        assert result.score == 85
        assert result.webhook_triggered
        pipeline.signals.run.assert_awaited_once_with(None, ["lead-1"])
        pipeline.webhooks.run.assert_awaited_once_with(
            None, ["lead-1"], "high_priority_lead", "pipeline_hot_lead"
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cold_lead_not_pushed(self, repository):
        repository.get_scraped_lead.return_value = make_scraped_lead()
        pipeline = _pipeline(repository, score=79)

        result = await pipeline.process_lead("lead-1")

        assert result.score == 79
        assert not result.webhook_triggered
        pipeline.webhooks.run.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_contacts_need_crawlable_domain(self, repository):
        repository.get_scraped_lead.return_value = make_scraped_lead(domain="acme-plumbing.com")
        pipeline = _pipeline(repository)

        await pipeline.process_lead("lead-1")
        pipeline.contacts.extract_for_lead.assert_not_awaited()

        repository.get_scraped_lead.return_value = make_scraped_lead()
        pipeline = _pipeline(repository, firecrawl=False)

        await pipeline.process_lead("lead-1")
        pipeline.contacts.extract_for_lead.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_step_recorded_and_rest_continue(self, repository):
        repository.get_scraped_lead.return_value = make_scraped_lead()
        pipeline = _pipeline(repository)
        pipeline.enricher.enrich_lead.side_effect = RuntimeError("apollo down")

        result = await pipeline.process_lead("lead-1")

        assert not result.success
        assert result.errors == {"enrich": "apollo down"}
        pipeline.validator.validate_lead.assert_awaited_once()
        assert result.score == 85

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validation_and_webhook_run_once(self, repository):
        repository.get_scraped_lead.return_value = make_scraped_lead()
        pipeline = _pipeline(repository, max_retries=2)
        pipeline.enricher.enrich_lead.side_effect = [RuntimeError("timeout"), []]
        pipeline.validator.validate_lead.side_effect = RuntimeError("db write failed")
        pipeline.webhooks.run.side_effect = RuntimeError("connection reset")

        with patch("lead_pipeline.orchestrator.asyncio.sleep", new=AsyncMock()):
            result = await pipeline.process_lead("lead-1")

        assert pipeline.enricher.enrich_lead.await_count == 2
        assert pipeline.validator.validate_lead.await_count == 1
        assert pipeline.webhooks.run.await_count == 1
        assert set(result.errors) == {"validation", "webhook"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_skip_steps(self, repository):
        repository.get_scraped_lead.return_value = make_scraped_lead()
        pipeline = _pipeline(repository, skip_steps={PipelineStep.ENRICH, PipelineStep.SCORE})

        result = await pipeline.process_lead("lead-1")

        pipeline.enricher.enrich_lead.assert_not_awaited()
        pipeline.scorer.score_lead.assert_not_awaited()
        assert result.score is None
        pipeline.webhooks.run.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_counts_missing_leads_as_failed(self, repository):
        lead = make_scraped_lead(id="lead-1")
        repository.get_scraped_lead.side_effect = lambda lead_id: lead if lead_id == "lead-1" else None
        pipeline = _pipeline(repository)

        run = await pipeline.run(["lead-1", "missing"])
        payload = run.to_dict()

        assert payload["success"] is False
        assert payload["total_leads"] == 2
        assert payload["processed_leads"] == 1
        assert payload["failed_leads"] == 1
        assert payload["lead_results"][1]["errors"] == {"lead": "Lead not found"}
        assert payload["duration_seconds"] >= 0
