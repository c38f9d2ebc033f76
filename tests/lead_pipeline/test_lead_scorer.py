"""Unit tests for LLM-based CRM lead scoring."""

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.errors import (
    Forbidden,
    NotFound,
    PipelineError,
    ProviderNotConfigured,
    UpstreamCreditsExhausted,
    UpstreamRateLimited,
    ValidationFailed,
)
from lead_pipeline.integrations.llm_gateway import (
    LLMCreditsExhaustedError,
    LLMError,
    LLMRateLimitError,
)
from lead_pipeline.models import ConversationLog
from lead_pipeline.scoring.lead_scorer import LeadScorer, build_scoring_prompt, parse_score

from .factories import make_crm_lead


def _llm(reply='{"score": 72, "reasoning": "Engaged and complete"}'):
    client = MagicMock()
    client.chat = AsyncMock(return_value=reply)
    return client


class TestParseScore:
    """Tests for reading the model reply."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "content,expected",
        [
            ('{"score": 72, "reasoning": "ok"}', (72, "ok")),
            ('Here you go:\n```json\n{"score": 85, "reasoning": "hot"}\n```', (85, "hot")),
            ('{"score": "64 points", "reasoning": "x"}', (64, "x")),
            ('{"score": 140}', (100, "")),
            ('{"score": -5}', (0, "")),
            ('{"score": 0, "reasoning": "dead"}', (0, "dead")),
            ('{"reasoning": "no score"}', (50, "no score")),
            ("no json at all", (50, "")),
            ("{not: valid}", (50, "")),
        ],
    )
    def test_replies(self, content, expected):
        assert parse_score(content) == expected

    @pytest.mark.unit
    def test_zero_score_not_replaced_by_default(self):
        assert parse_score('{"score": "0"}') == (0, "")
        assert parse_score('{"score": "0 - unreachable"}')[0] == 0


class TestBuildPrompt:

    @pytest.mark.unit
    def test_prompt_contents(self):
        lead = make_crm_lead(email=None, notes="Asked for a quote")
        logs = [
            ConversationLog(type="call", direction="outbound", created_at=datetime(2026, 9, 3, 10)),
            ConversationLog(type="email", direction=None, created_at=datetime(2026, 8, 28, 9)),
        ]

        prompt = build_scoring_prompt(lead, logs)

        assert "- Business Name: Acme Plumbing" in prompt
        assert "- Email: Not provided" in prompt
        assert "- Phone: Provided" in prompt
        assert "- Last Contacted: Never" in prompt
        assert "- Notes: Asked for a quote" in prompt
        assert "- call (outbound) on 9/3/2026" in prompt
        assert "- email (n/a) on 8/28/2026" in prompt

    @pytest.mark.unit
    def test_no_interactions(self):
        assert "No interactions yet" in build_scoring_prompt(make_crm_lead(), [])


class TestLeadScorer:
    """Tests for the scoring service and its error mapping."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_scores_owned_lead(self, repository):
        lead = make_crm_lead(id="crm-1", client_id="user-1")
        repository.get_crm_lead.return_value = lead
        repository.list_conversation_logs.return_value = []
        llm = _llm()

        result = await LeadScorer(repository, llm).run("crm-1", "user-1")

        assert result == {"success": True, "score": 72, "reasoning": "Engaged and complete"}
        repository.update_crm_lead_score.assert_awaited_once_with(lead, 72)
        messages = llm.chat.await_args.args[1]
        assert messages[0]["role"] == "system"
        assert "lead scoring expert" in messages[0]["content"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_admin_may_score_any_lead(self, repository):
        repository.get_crm_lead.return_value = make_crm_lead(client_id="someone-else")
        repository.list_conversation_logs.return_value = []

        result = await LeadScorer(repository, _llm()).run("crm-1", "admin-1", is_admin=True)

        assert result["score"] == 72

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_errors(self, repository):
        with pytest.raises(ProviderNotConfigured):
            await LeadScorer(repository, None).run("crm-1", "user-1")
        with pytest.raises(ValidationFailed, match="Lead ID is required"):
            await LeadScorer(repository, _llm()).run(None, "user-1")

        repository.get_crm_lead.return_value = None
        with pytest.raises(NotFound):
            await LeadScorer(repository, _llm()).run("crm-1", "user-1")

        repository.get_crm_lead.return_value = make_crm_lead(client_id="other")
        with pytest.raises(Forbidden) as exc_info:
            await LeadScorer(repository, _llm()).run("crm-1", "user-1")
        assert exc_info.value.status_code == 403

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raised,expected,status",
        [
            (LLMRateLimitError("429"), UpstreamRateLimited, 429),
            (LLMCreditsExhaustedError("402"), UpstreamCreditsExhausted, 402),
            (LLMError("500"), PipelineError, 500),
        ],
    )
    async def test_gateway_errors_mapped(self, repository, raised, expected, status):
        repository.get_crm_lead.return_value = make_crm_lead(client_id="user-1")
        repository.list_conversation_logs.return_value = []
        llm = _llm()
        llm.chat.side_effect = raised

        with pytest.raises(expected) as exc_info:
            await LeadScorer(repository, llm).run("crm-1", "user-1")

        assert exc_info.value.status_code == status
        repository.update_crm_lead_score.assert_not_awaited()
