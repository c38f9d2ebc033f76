"""Technology, social profile and revenue enrichment from a lead's homepage.

The homepage is scraped once (HTML, links and markdown) and matched against a
fixed table of technology fingerprints. Revenue is a rough range derived from
employee count and industry, independent of the scrape.
"""

import logging
import re
from typing import Any, Optional, Sequence

from ..errors import ValidationFailed
from ..models import ScrapedLead, as_employee_count, utcnow

logger = logging.getLogger(__name__)

MAX_LEADS_PER_REQUEST = 20
SCRAPE_WAIT_MS = 3000

_I = re.IGNORECASE

TECH_PATTERNS: dict[str, list[re.Pattern]] = {
    # CMS
    "WordPress": [re.compile(r"wp-content", _I), re.compile(r"wordpress", _I), re.compile(r"wp-json", _I)],
    "Shopify": [re.compile(r"shopify", _I), re.compile(r"cdn\.shopify", _I), re.compile(r"myshopify\.com", _I)],
    "Squarespace": [re.compile(r"squarespace", _I), re.compile(r"sqsp", _I)],
    "Wix": [re.compile(r"wix\.com", _I), re.compile(r"wixsite", _I), re.compile(r"parastorage\.com", _I)],
    "Webflow": [re.compile(r"webflow", _I)],
    "Drupal": [re.compile(r"drupal", _I), re.compile(r"sites/default/files", _I)],
    "Joomla": [re.compile(r"joomla", _I), re.compile(r"com_content", _I)],
    "Ghost": [re.compile(r"ghost\.io", _I), re.compile(r"ghost-api", _I)],
    "HubSpot CMS": [re.compile(r"hs-scripts", _I), re.compile(r"hubspot", _I), re.compile(r"hbspt", _I)],
    # Analytics
    "Google Analytics": [re.compile(r"google-analytics|googletagmanager|gtag|UA-\d+|G-\w+", _I)],
    "Facebook Pixel": [re.compile(r"facebook\.net/en_US/fbevents|fbq\(", _I)],
    "Hotjar": [re.compile(r"hotjar", _I), re.compile(r"hj\(", _I)],
    "Mixpanel": [re.compile(r"mixpanel", _I)],
    "Segment": [re.compile(r"segment\.com|analytics\.js", _I)],
    "Heap": [re.compile(r"heap-\d+|heapanalytics", _I)],
    # Marketing
    "Mailchimp": [re.compile(r"mailchimp|mc\.js|chimpstatic", _I)],
    "HubSpot": [re.compile(r"hubspot|hs-analytics|hbspt", _I)],
    "Marketo": [re.compile(r"marketo|munchkin", _I)],
    "Salesforce": [re.compile(r"salesforce|pardot", _I)],
    "ActiveCampaign": [re.compile(r"activecampaign", _I)],
    "Intercom": [re.compile(r"intercom|intercomcdn", _I)],
    "Drift": [re.compile(r"drift\.com|driftt", _I)],
    "Zendesk": [re.compile(r"zendesk|zdassets", _I)],
    "Freshdesk": [re.compile(r"freshdesk", _I)],
    # E-commerce
    "Stripe": [re.compile(r"stripe\.com|js\.stripe", _I)],
    "PayPal": [re.compile(r"paypal", _I)],
    "Square": [re.compile(r"squareup|square\.site", _I)],
    # CDN / hosting
    "Cloudflare": [re.compile(r"cloudflare", _I), re.compile(r"cf-ray", _I)],
    "AWS": [re.compile(r"amazonaws\.com|aws\.", _I)],
    "Google Cloud": [re.compile(r"googleapis|gstatic", _I)],
    "Vercel": [re.compile(r"vercel", _I)],
    "Netlify": [re.compile(r"netlify", _I)],
    # Frameworks
    "React": [re.compile(r"react|__next", _I)],
    "Vue.js": [re.compile(r"vue\.js|vuejs", _I)],
    "Angular": [re.compile(r"angular", _I), re.compile(r"ng-", _I)],
    "jQuery": [re.compile(r"jquery", _I)],
    "Bootstrap": [re.compile(r"bootstrap", _I)],
    "Tailwind CSS": [re.compile(r"tailwindcss|tailwind", _I)],
}

SOCIAL_PATTERNS: dict[str, re.Pattern] = {
    "facebook": re.compile(r"(?:https?://)?(?:www\.)?facebook\.com/([a-zA-Z0-9.]+)", _I),
    "instagram": re.compile(r"(?:https?://)?(?:www\.)?instagram\.com/([a-zA-Z0-9_.]+)", _I),
    "twitter": re.compile(r"(?:https?://)?(?:www\.)?(?:twitter|x)\.com/([a-zA-Z0-9_]+)", _I),
    "linkedin": re.compile(r"(?:https?://)?(?:www\.)?linkedin\.com/(?:company|in)/([a-zA-Z0-9-]+)", _I),
    "youtube": re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/(?:c/|channel/|@)([a-zA-Z0-9_-]+)", _I),
    "tiktok": re.compile(r"(?:https?://)?(?:www\.)?tiktok\.com/@([a-zA-Z0-9_.]+)", _I),
}

# Annual revenue per employee, USD (min, max)
REVENUE_PER_EMPLOYEE: dict[str, tuple[int, int]] = {
    "technology": (150_000, 400_000),
    "software": (200_000, 500_000),
    "saas": (200_000, 600_000),
    "healthcare": (100_000, 300_000),
    "finance": (200_000, 500_000),
    "retail": (80_000, 200_000),
    "real_estate": (100_000, 350_000),
    "construction": (100_000, 250_000),
    "manufacturing": (120_000, 300_000),
    "professional_services": (100_000, 250_000),
    "education": (50_000, 150_000),
    "hospitality": (40_000, 120_000),
    "default": (80_000, 250_000),
}

REVENUE_RANGES: list[tuple[int, str]] = [
    (1_000_000, "Under $1M"),
    (5_000_000, "$1M - $5M"),
    (10_000_000, "$5M - $10M"),
    (50_000_000, "$10M - $50M"),
    (100_000_000, "$50M - $100M"),
    (500_000_000, "$100M - $500M"),
    (1_000_000_000, "$500M - $1B"),
]


def detect_technologies(html: str, markdown: str) -> list[str]:
    """Return the technologies whose fingerprints appear in the page, in table order."""
    combined = f"{html or ''} {markdown or ''}"
    return [
        tech
        for tech, patterns in TECH_PATTERNS.items()
        if any(pattern.search(combined) for pattern in patterns)
    ]


def detect_social_profiles(markdown: str, links: Sequence[str]) -> dict[str, str]:
    """Map platform name to the first profile URL found in links or markdown."""
    all_text = " ".join(links or []) + " " + (markdown or "")
    profiles = {}
    for platform, pattern in SOCIAL_PATTERNS.items():
        match = pattern.search(all_text)
        if match:
            url = match.group(0)
            profiles[platform] = url if url.startswith("http") else f"https://{url}"
    return profiles


def normalize_industry(industry: Optional[str]) -> str:
    """Lowercase and replace anything outside ``[a-z_]`` with ``_``."""
    return re.sub(r"[^a-z_]", "_", (industry or "").lower())


def estimate_revenue(employee_count: Optional[int], industry: Optional[str]) -> dict[str, Any]:
    """Estimate annual revenue bounds and a range label.

    Returns all-None fields when the employee count is unknown or zero.
    """
    if not employee_count:
        return {
            "estimated_revenue_min": None,
            "estimated_revenue_max": None,
            "revenue_range": None,
        }

    per_min, per_max = REVENUE_PER_EMPLOYEE.get(
        normalize_industry(industry), REVENUE_PER_EMPLOYEE["default"]
    )
    low = employee_count * per_min
    high = employee_count * per_max

    label = "$1B+"
    for ceiling, range_label in REVENUE_RANGES:
        if high < ceiling:
            label = range_label
            break

    return {
        "estimated_revenue_min": low,
        "estimated_revenue_max": high,
        "revenue_range": label,
    }


class TechnographicsEnricher:
    """Adds technologies, social profiles and a revenue estimate to leads.

    Args:
        repository: LeadRepository for reads and writes.
        firecrawl: FirecrawlClient, or None to skip homepage scraping.
    """

    def __init__(self, repository, firecrawl=None) -> None:
        self.repository = repository
        self.firecrawl = firecrawl

    async def _scan_homepage(self, domain: str) -> tuple[list[str], dict[str, str]]:
        result = await self.firecrawl.scrape_url_safe(
            f"https://{domain}",
            formats=["html", "links", "markdown"],
            only_main_content=False,
            wait_for=SCRAPE_WAIT_MS,
        )
        if not result.success:
            logger.warning("Tech scan scrape failed for %s: %s", domain, result.error)
            return [], {}
        return (
            detect_technologies(result.html or "", result.markdown or ""),
            detect_social_profiles(result.markdown or "", result.links),
        )

    async def enrich_lead(self, lead: ScrapedLead) -> dict[str, Any]:
        enrichment = dict(lead.enrichment_data or {})
        technologies: list[str] = list(enrichment.get("technologies") or [])
        social_profiles: dict[str, str] = {}

        domain = lead.domain
        if not technologies and self.firecrawl and domain and "-" not in domain:
            technologies, social_profiles = await self._scan_homepage(domain)

        employee_count = as_employee_count(enrichment.get("employee_count"))
        industry = enrichment.get("industry") or (lead.schema_data or {}).get("industry")
        revenue = estimate_revenue(employee_count, industry)

        updated = {
            **enrichment,
            "technologies": technologies or enrichment.get("technologies"),
            "social_profiles": social_profiles or enrichment.get("social_profiles"),
            **revenue,
            "tech_enriched_at": utcnow().isoformat(),
        }
        await self.repository.update_scraped_lead(lead, {"enrichment_data": updated})

        return {
            "lead_id": lead.id,
            "technologies": technologies,
            "revenue_estimate": revenue["revenue_range"],
            "social_profiles": social_profiles,
        }

    async def run(self, lead_ids: Optional[Sequence[str]]) -> dict[str, Any]:
        """Enrich up to 20 leads; unknown ids are skipped.

        Raises:
            ValidationFailed: If no lead ids were given.
        """
        if not lead_ids:
            raise ValidationFailed("lead_ids required")

        results = []
        for lead_id in list(lead_ids)[:MAX_LEADS_PER_REQUEST]:
            lead = await self.repository.get_scraped_lead(lead_id)
            if lead is None:
                continue
            results.append(await self.enrich_lead(lead))

        logger.info("Technographics enriched %d leads", len(results))
        return {"success": True, "results": results}
