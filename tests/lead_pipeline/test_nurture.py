"""Unit tests for hot lead alerts and warm lead nurture enrollment."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.automation.nurture import FIRST_SEND_DELAY, AutoNurture, hot_lead_payload
from lead_pipeline.errors import ValidationFailed
from lead_pipeline.integrations.webhooks import DeliveryResult
from lead_pipeline.models import EmailCampaign, NotificationChannel, utcnow

from .factories import make_crm_lead, make_scraped_lead


def _channel(name="sales", url="https://hooks.example.com/sales"):
    return NotificationChannel(id=f"ch-{name}", name=name, webhook_url=url, failure_count=0)


@pytest.fixture
def hot_lead():
    return make_scraped_lead(
        id="hot-1", full_name="Jane Doe", best_email="jane@acmeplumbing.com",
        lead_score=91, confidence_score=85,
    )


class TestHotLeadPayload:

    @pytest.mark.unit
    def test_payload_shape(self, hot_lead):
        payload = hot_lead_payload(hot_lead)

        assert payload["event"] == "hot_lead_detected"
        assert payload["lead"] == {
            "id": "hot-1",
            "domain": "acmeplumbing.com",
            "name": "Jane Doe",
            "email": "jane@acmeplumbing.com",
            "phone": None,
            "score": 91,
            "confidence": 85,
        }
        assert "timestamp" in payload


class TestAlerts:
    """Tests for the hot lead alert pass."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_alert_sent_to_each_channel_and_signal_recorded(
        self, repository, webhook_sender, hot_lead
    ):
        repository.list_hot_leads.return_value = [hot_lead]
        repository.list_alert_channels.return_value = [_channel("a"), _channel("b")]

        result = await AutoNurture(repository, webhook_sender).run("alerts_only")

        assert result == {
            "success": True,
            "hot_lead_alerts": 1,
            "nurture_enrolled": 0,
            "webhooks_fired": 2,
        }
        assert webhook_sender.post_json.await_count == 2
        assert repository.mark_channel_triggered.await_count == 2
        signal_args = repository.add_intent_signal.await_args.args
        assert signal_args[0] == "hot-1"
        assert signal_args[1] == "hot_lead_alert"
        assert signal_args[2] == "auto_nurture_system"
        assert signal_args[3]["score"] == 91
        assert signal_args[4] == 95
        repository.list_warm_leads.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_failure_increments_channel_failures(self, repository, hot_lead):
        sender = MagicMock()
        sender.post_json = AsyncMock(return_value=DeliveryResult(success=False, error="timeout"))
        channel = _channel()
        repository.list_hot_leads.return_value = [hot_lead]
        repository.list_alert_channels.return_value = [channel]

        result = await AutoNurture(repository, sender).run("alerts_only")

        repository.increment_channel_failures.assert_awaited_once_with(channel)
        repository.mark_channel_triggered.assert_not_awaited()
        assert result["webhooks_fired"] == 0
        assert result["hot_lead_alerts"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error_marks_triggered_without_counting(self, repository, hot_lead):
        sender = MagicMock()
        sender.post_json = AsyncMock(return_value=DeliveryResult(success=False, status=500))
        repository.list_hot_leads.return_value = [hot_lead]
        repository.list_alert_channels.return_value = [_channel()]

        result = await AutoNurture(repository, sender).run("alerts_only")

        repository.mark_channel_triggered.assert_awaited_once()
        repository.increment_channel_failures.assert_not_awaited()
        assert result["webhooks_fired"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_channel_without_url_skipped(self, repository, webhook_sender, hot_lead):
        repository.list_hot_leads.return_value = [hot_lead]
        repository.list_alert_channels.return_value = [_channel(url=None)]

        await AutoNurture(repository, webhook_sender).run("alerts_only")

        webhook_sender.post_json.assert_not_awaited()
        repository.add_intent_signal.assert_awaited_once()


class TestNurtureEnrollment:
    """Tests for warm lead campaign enrollment."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_warm_lead_enrolled_through_crm_lead(self, repository, webhook_sender):
        warm = make_scraped_lead(best_email="jane@acmeplumbing.com", lead_score=65)
        crm = make_crm_lead(id="crm-1")
        campaign = EmailCampaign(id="camp-1", name="Welcome", is_active=True)
        repository.list_warm_leads.return_value = [warm]
        repository.get_active_campaign.return_value = campaign
        repository.find_crm_lead_by_email.return_value = crm
        repository.is_enrolled.return_value = False

        before = utcnow()
        result = await AutoNurture(repository, webhook_sender).run("nurture_only")

        assert result["nurture_enrolled"] == 1
        lead_id, campaign_id, next_send_at = repository.enroll_lead.await_args.args
        assert (lead_id, campaign_id) == ("crm-1", "camp-1")
        assert next_send_at - before >= FIRST_SEND_DELAY
        assert next_send_at - before < FIRST_SEND_DELAY + timedelta(minutes=1)
        repository.list_hot_leads.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_already_enrolled_skipped(self, repository, webhook_sender):
        repository.list_warm_leads.return_value = [make_scraped_lead(best_email="a@b.com")]
        repository.get_active_campaign.return_value = EmailCampaign(id="c", name="x")
        repository.find_crm_lead_by_email.return_value = make_crm_lead()
        repository.is_enrolled.return_value = True

        result = await AutoNurture(repository, webhook_sender).run("nurture_only")

        repository.enroll_lead.assert_not_awaited()
        assert result["nurture_enrolled"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_crm_lead_or_campaign(self, repository, webhook_sender):
        repository.list_warm_leads.return_value = [make_scraped_lead(best_email="a@b.com")]
        repository.get_active_campaign.return_value = None

        result = await AutoNurture(repository, webhook_sender).run("nurture_only")

        repository.find_crm_lead_by_email.assert_not_awaited()
        assert result["nurture_enrolled"] == 0

        repository.get_active_campaign.return_value = EmailCampaign(id="c", name="x")
        repository.find_crm_lead_by_email.return_value = None

        result = await AutoNurture(repository, webhook_sender).run("nurture_only")

        repository.enroll_lead.assert_not_awaited()


class TestModes:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_invalid_mode_rejected(self, repository, webhook_sender):
        with pytest.raises(ValidationFailed) as exc_info:
            await AutoNurture(repository, webhook_sender).run("everything")
        assert exc_info.value.status_code == 400

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_auto_runs_both_passes(self, repository, webhook_sender):
        repository.list_hot_leads.return_value = []
        repository.list_warm_leads.return_value = []

        result = await AutoNurture(repository, webhook_sender).run()

        repository.list_hot_leads.assert_awaited_once_with(80, 50)
        repository.list_warm_leads.assert_awaited_once_with(60, 100)
        assert result == {
            "success": True,
            "hot_lead_alerts": 0,
            "nurture_enrolled": 0,
            "webhooks_fired": 0,
        }
