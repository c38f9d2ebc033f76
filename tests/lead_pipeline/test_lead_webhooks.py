"""Unit tests for pushing leads to client webhooks."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.automation.lead_webhooks import LeadWebhookTrigger, build_payload
from lead_pipeline.errors import PipelineError, ValidationFailed
from lead_pipeline.integrations.webhooks import DeliveryResult
from lead_pipeline.models import ClientWebhook, IntentSignal

from .factories import make_scraped_lead


@pytest.fixture
def lead():
    return make_scraped_lead(
        id="lead-1", full_name="Jane Doe", best_email="jane@acmeplumbing.com",
        lead_score=88, priority="high", enrichment_data={"employee_count": 40},
    )


@pytest.fixture
def client_hooks():
    return [
        ClientWebhook(id="wh-1", webhook_url="https://crm.example.com/hook", secret_hash="s3cret"),
        ClientWebhook(id="wh-2", webhook_url="https://zap.example.com/hook", secret_hash=None),
    ]


class TestBuildPayload:

    @pytest.mark.unit
    def test_includes_signals_and_reason(self, lead):
        signal = IntentSignal(signal_type="funding_round", signal_data={"amount": 5})

        payload = build_payload(lead, [signal], "high_priority_lead", "score_threshold")

        assert payload["event"] == "high_priority_lead"
        assert payload["trigger_reason"] == "score_threshold"
        assert payload["lead"]["score"] == 88
        assert payload["lead"]["source"] == "google_maps"
        assert payload["lead"]["company_data"] == {"employee_count": 40}
        assert payload["lead"]["intent_signals"] == [
            {"type": "funding_round", "data": {"amount": 5}}
        ]


class TestLeadWebhookTrigger:
    """Tests for the webhook trigger service."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requires_lead_ids(self, repository, webhook_sender):
        with pytest.raises(ValidationFailed, match="No lead IDs provided"):
            await LeadWebhookTrigger(repository, webhook_sender).run()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_webhooks_configured(self, repository, webhook_sender):
        repository.list_active_client_webhooks.return_value = []

        result = await LeadWebhookTrigger(repository, webhook_sender).run(lead_id="lead-1")

        assert result == {"success": True, "message": "No webhooks configured", "sent": 0}
        webhook_sender.post_json.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delivers_to_every_active_hook_with_secret(
        self, repository, webhook_sender, lead, client_hooks
    ):
        repository.list_active_client_webhooks.return_value = client_hooks
        repository.get_scraped_lead.return_value = lead

        result = await LeadWebhookTrigger(repository, webhook_sender).run(lead_ids=["lead-1"])

        assert result["success"] is True
        assert result["total_webhooks_triggered"] == 2
        calls = webhook_sender.post_json.await_args_list
        assert calls[0].args[0] == "https://crm.example.com/hook"
        assert calls[0].args[2] == "s3cret"
        assert calls[1].args[2] is None
        assert result["results"][0]["details"] == [
            {"webhook_id": "wh-1", "success": True, "status": 200},
            {"webhook_id": "wh-2", "success": True, "status": 200},
        ]
        assert repository.add_webhook_delivery.await_count == 2
        logged = repository.add_webhook_delivery.await_args_list[0].kwargs
        assert logged["webhook_id"] == "wh-1"
        assert logged["response_status"] == 200
        assert logged["success"] is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_manual_url_overrides_registered_hooks(self, repository, lead):
        sender = MagicMock()
        sender.post_json = AsyncMock(return_value=DeliveryResult(success=False, status=502))
        repository.get_scraped_lead.return_value = lead

        result = await LeadWebhookTrigger(repository, sender).run(
            lead_id="lead-1", webhook_url="https://debug.example.com/in"
        )

        repository.list_active_client_webhooks.assert_not_awaited()
        assert result["total_webhooks_triggered"] == 0
        logged = repository.add_webhook_delivery.await_args.kwargs
        assert logged["webhook_id"] is None
        assert logged["success"] is False
        assert logged["response_status"] == 502

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_lead_reported(self, repository, webhook_sender, client_hooks):
        repository.list_active_client_webhooks.return_value = client_hooks
        repository.get_scraped_lead.return_value = None

        result = await LeadWebhookTrigger(repository, webhook_sender).run(lead_id="gone")

        assert result["results"] == [
            {"lead_id": "gone", "webhooks_triggered": 0, "details": ["lead_not_found"]}
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_error_masked(self, repository, webhook_sender):
        repository.list_active_client_webhooks.side_effect = RuntimeError("db down")

        with pytest.raises(PipelineError) as exc_info:
            await LeadWebhookTrigger(repository, webhook_sender).run(lead_id="lead-1")

        assert exc_info.value.message == "An error occurred processing your request"
        assert exc_info.value.status_code == 500
