"""Lead scoring and intent signal detection.

- LeadScorer: LLM scoring of CRM leads
- CompositeLeadScorer: rule-based scoring of scraped leads
- IntentSignalDetector: buying signals from enrichment data
"""

from .composite import CompositeLeadScorer
from .intent_signals import IntentSignalDetector
from .lead_scorer import LeadScorer

__all__ = ["CompositeLeadScorer", "IntentSignalDetector", "LeadScorer"]
