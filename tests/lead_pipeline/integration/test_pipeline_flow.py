"""Integration tests running real pipeline services over a mocked repository.

Provider clients are mocked at their public methods; everything between
them (enrichment, validation, signals, scoring and delivery) runs for real.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.integrations.apollo import ApolloPerson
from lead_pipeline.integrations.registry import ProviderClients
from lead_pipeline.integrations.webhooks import DeliveryResult
from lead_pipeline.models import ClientWebhook, ValidationStatus
from lead_pipeline.orchestrator import LeadPipeline, PipelineOptions, PipelineStep

from ..factories import make_scraped_lead


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def lead():
    return make_scraped_lead(
        id="lead-1",
        schema_data={"company_name": "Acme Plumbing", "industry": "Plumbing"},
        enrichment_data={"employee_count": 12},
    )


@pytest.fixture
def clients(webhook_sender):
    apollo = MagicMock()
    apollo.search_people = AsyncMock(return_value=[
        ApolloPerson(name="Sam Lee", title="Technician", email="sam@acmeplumbing.com"),
        ApolloPerson(
            name="Jane Doe",
            title="Owner",
            email="jane@acmeplumbing.com",
            phone_numbers=[{"number": "(512) 555-0199"}],
            organization={"name": "Acme Plumbing"},
        ),
    ])
    dns = MagicMock()
    dns.has_mx_records = AsyncMock(return_value=True)
    return ProviderClients(apollo=apollo, dns=dns, webhooks=webhook_sender)


@pytest.fixture
def wired_repository(repository, lead):
    repository.get_scraped_lead.side_effect = lambda lead_id: lead if lead_id == lead.id else None
    repository.get_scraped_leads.side_effect = lambda ids: [lead] if lead.id in ids else []
    repository.list_active_client_webhooks.return_value = [
        ClientWebhook(id="hook-1", webhook_url="https://crm.example.com/hooks/leads", secret_hash="s3cret"),
    ]
    return repository


# =============================================================================
# Full pipeline
# =============================================================================

class TestPipelineFlow:
    """End-to-end behaviour of one lead through every step."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_lead_enriched_validated_scored_and_delivered(
        self, wired_repository, clients, webhook_sender, lead
    ):
        options = PipelineOptions(max_retries=0, retry_delay_seconds=0, hot_lead_score=0)

        run = await LeadPipeline(wired_repository, clients, options).run([lead.id])

        assert run.processed_leads == 1
        result = run.lead_results[0]
        assert result.errors == {}

        # Enrichment picked the decision maker
        assert lead.full_name == "Jane Doe"
        assert lead.best_email == "jane@acmeplumbing.com"
        assert lead.enrichment_providers_used == ["apollo"]

        # Validation ran without ZeroBounce or Twilio
        assert lead.email_validation_status == ValidationStatus.LIKELY_VALID
        assert lead.phone_validation_status == ValidationStatus.LIKELY_VALID
        assert lead.best_phone == "+15125550199"

        # Score written back to the lead
        assert result.score == lead.lead_score
        assert lead.priority in ("high", "medium", "low")

        # Signed delivery to the client webhook
        assert result.webhook_triggered
        url, payload, secret = webhook_sender.post_json.await_args.args
        assert url == "https://crm.example.com/hooks/leads"
        assert secret == "s3cret"
        assert payload["lead"]["email"] == "jane@acmeplumbing.com"
        assert payload["trigger_reason"] == "pipeline_hot_lead"
        wired_repository.add_webhook_delivery.assert_awaited_once()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_contacts_step_skipped_without_firecrawl(self, wired_repository, clients, lead):
        options = PipelineOptions(max_retries=0, retry_delay_seconds=0)

        result = await LeadPipeline(wired_repository, clients, options).process_lead(lead.id)

        assert PipelineStep.CONTACTS.value not in result.step_results
        assert PipelineStep.TECHNOGRAPHICS.value in result.step_results
        assert lead.enrichment_data["revenue_range"]

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failed_delivery_is_not_counted(self, wired_repository, clients, webhook_sender, lead):
        webhook_sender.post_json.return_value = DeliveryResult(success=False, status=500)
        options = PipelineOptions(max_retries=0, retry_delay_seconds=0, hot_lead_score=0)

        result = await LeadPipeline(wired_repository, clients, options).process_lead(lead.id)

        assert result.errors == {}
        assert not result.webhook_triggered
        delivery = wired_repository.add_webhook_delivery.await_args.kwargs
        assert delivery["success"] is False
        assert delivery["response_status"] == 500
