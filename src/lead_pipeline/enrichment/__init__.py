"""Lead enrichment services.

- CsvEnricher: company-name CSV rows via Apollo, Hunter and the LLM
- TechnographicsEnricher: tech stack, social profiles and revenue estimate
- ContactPageExtractor: people and contact details from site pages
- LeadValidator: email and phone validation
- DataWaterfallEnricher: ordered multi-provider gap filling for a domain
- LeadEnricher: gap-filling enrichment of stored scraped leads
- StaleLeadReEnricher: periodic refresh of old leads
- LeadDeduplicator: duplicate detection and merging
"""

from .contact_extractor import ContactPageExtractor
from .csv_enrich import CsvEnricher
from .dedupe import LeadDeduplicator
from .lead_enricher import LeadEnricher
from .stale import StaleLeadReEnricher
from .technographics import TechnographicsEnricher
from .validation import LeadValidator
from .waterfall import DataWaterfallEnricher

__all__ = [
    "ContactPageExtractor",
    "CsvEnricher",
    "DataWaterfallEnricher",
    "LeadDeduplicator",
    "LeadEnricher",
    "LeadValidator",
    "StaleLeadReEnricher",
    "TechnographicsEnricher",
]
