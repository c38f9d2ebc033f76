"""Shared fixtures for lead pipeline tests.

Services receive a mocked repository (an AsyncMock) and real, unsaved model
instances, so no database is needed for unit tests.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.integrations.webhooks import DeliveryResult
from lead_pipeline.models import CrmLead, ScrapedLead

from .factories import apply_updates, make_crm_lead, make_scraped_lead


@pytest.fixture
def repository() -> AsyncMock:
    """Repository mock whose lead updates are applied to the passed instance."""
    repo = AsyncMock()
    repo.update_scraped_lead.side_effect = apply_updates
    repo.get_scraped_lead.return_value = None
    repo.get_scraped_leads.return_value = []
    repo.list_intent_signals.return_value = []
    repo.duplicate_exists.return_value = False
    return repo


@pytest.fixture
def scraped_lead() -> ScrapedLead:
    return make_scraped_lead()


@pytest.fixture
def crm_lead() -> CrmLead:
    return make_crm_lead()


@pytest.fixture
def webhook_sender() -> MagicMock:
    """WebhookSender stand-in returning successful deliveries."""
    sender = MagicMock()
    sender.post_json = AsyncMock(return_value=DeliveryResult(success=True, status=200))
    return sender
