"""LLM scoring of CRM leads from their profile and interaction history."""

import json
import logging
import re
from typing import Any, Optional, Sequence

from ..config import config
from ..errors import (
    Forbidden,
    NotFound,
    PipelineError,
    ProviderNotConfigured,
    UpstreamCreditsExhausted,
    UpstreamRateLimited,
    ValidationFailed,
)
from ..integrations.llm_gateway import LLMCreditsExhaustedError, LLMError, LLMRateLimitError
from ..models import ConversationLog, CrmLead

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50

SCORING_SYSTEM_PROMPT = """You are a lead scoring expert. Analyze the provided lead data and score them on a scale of 0-100 based on their likelihood to convert.

Consider these factors:
- Data completeness (email, phone, contact name, business name)
- Engagement level (number of interactions, types of communication)
- Status progression (new < contacted < qualified < converted)
- Industry (some industries may be higher value)
- Recency of interactions

Return ONLY a JSON object with:
- score: number between 0-100
- reasoning: brief explanation (max 50 words)"""

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _format_date(value) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def build_scoring_prompt(lead: CrmLead, logs: Sequence[ConversationLog]) -> str:
    """User message describing the lead and its interactions (newest first)."""
    if logs:
        history = "\n".join(
            f"- {log.type} ({log.direction or 'n/a'}) on {_format_date(log.created_at)}"
            for log in logs
        )
    else:
        history = "No interactions yet"

    return f"""Score this lead:

Lead Data:
- Business Name: {lead.business_name}
- Contact Name: {lead.contact_name or "Not provided"}
- Email: {"Provided" if lead.email else "Not provided"}
- Phone: {"Provided" if lead.phone else "Not provided"}
- Industry: {lead.industry or "Unknown"}
- Status: {lead.status}
- Created: {lead.created_at.isoformat() if lead.created_at else ""}
- Last Contacted: {lead.contacted_at.isoformat() if lead.contacted_at else "Never"}
- Notes: {lead.notes or "None"}

Interaction History:
{history}"""


def parse_score(content: str) -> tuple[int, str]:
    """Extract (score, reasoning) from the model reply.

    The outermost ``{...}`` span is parsed as JSON. Anything unparseable
    yields the default score and empty reasoning; scores are clamped to
    0-100.
    """
    match = _JSON_OBJECT.search(content or "")
    if not match:
        return DEFAULT_SCORE, ""
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        logger.info("Could not parse JSON, using default score")
        return DEFAULT_SCORE, ""
    if not isinstance(parsed, dict):
        return DEFAULT_SCORE, ""

    # An explicit 0 is a real score; only a missing or non-numeric one defaults
    score_match = _LEADING_INT.match(str(parsed.get("score", "")))
    score = int(score_match.group(1)) if score_match else DEFAULT_SCORE
    reasoning = parsed.get("reasoning") or ""
    return min(100, max(0, score)), str(reasoning)


class LeadScorer:
    """Scores a CRM lead with the LLM gateway and stores ``lead_score``.

    Args:
        repository: LeadRepository.
        llm: LLMGatewayClient, or None when no key is configured.
    """

    def __init__(self, repository, llm=None) -> None:
        self.repository = repository
        self.llm = llm

    async def run(
        self,
        lead_id: Optional[str],
        user_id: Optional[str],
        is_admin: bool = False,
    ) -> dict[str, Any]:
        """Score one CRM lead on behalf of ``user_id``.

        Raises:
            ProviderNotConfigured: If no LLM key is configured.
            ValidationFailed: If ``lead_id`` is missing.
            NotFound: If the lead does not exist.
            Forbidden: If the caller neither owns the lead nor is an admin.
            UpstreamRateLimited: On a gateway 429.
            UpstreamCreditsExhausted: On a gateway 402.
        """
        if self.llm is None:
            raise ProviderNotConfigured("LLM_API_KEY is not configured")
        if not lead_id:
            raise ValidationFailed("Lead ID is required")

        lead = await self.repository.get_crm_lead(lead_id)
        if lead is None:
            raise NotFound("Lead not found")
        if lead.client_id != user_id and not is_admin:
            raise Forbidden("Unauthorized: Lead does not belong to user")

        logs = await self.repository.list_conversation_logs(lead_id)
        messages = [
            {"role": "system", "content": SCORING_SYSTEM_PROMPT},
            {"role": "user", "content": build_scoring_prompt(lead, logs)},
        ]

        try:
            content = await self.llm.chat(config.LLM_SCORING_MODEL, messages)
        except LLMRateLimitError as e:
            raise UpstreamRateLimited("Rate limit exceeded. Please try again later.") from e
        except LLMCreditsExhaustedError as e:
            raise UpstreamCreditsExhausted("AI credits exhausted. Please contact support.") from e
        except LLMError as e:
            raise PipelineError("Failed to get AI response") from e

        score, reasoning = parse_score(content)
        await self.repository.update_crm_lead_score(lead, score)
        logger.info("Scored lead %s: %d", lead_id, score, extra={"lead_id": lead_id})

        return {"success": True, "score": score, "reasoning": reasoning}
