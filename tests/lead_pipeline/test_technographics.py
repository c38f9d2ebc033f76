"""Unit tests for technographics and revenue enrichment."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.enrichment.technographics import (
    TechnographicsEnricher,
    detect_social_profiles,
    detect_technologies,
    estimate_revenue,
    normalize_industry,
)
from lead_pipeline.errors import ValidationFailed
from lead_pipeline.integrations.firecrawl import ScrapeResult

from .factories import make_scraped_lead

HOMEPAGE_HTML = '<link rel="stylesheet" href="https://cdn.shopify.com/s/files/theme.css">'
HOMEPAGE_MARKDOWN = "Powered by WordPress. Follow us https://www.facebook.com/acmeplumbing"


def _firecrawl(result=None):
    client = MagicMock()
    client.scrape_url_safe = AsyncMock(
        return_value=result
        or ScrapeResult(
            url="https://acmeplumbing.com",
            html=HOMEPAGE_HTML,
            markdown=HOMEPAGE_MARKDOWN,
            links=["https://linkedin.com/company/acme-plumbing"],
        )
    )
    return client


class TestDetection:
    """Tests for fingerprint and profile detection."""

    @pytest.mark.unit
    def test_technologies_in_table_order(self):
        assert detect_technologies(HOMEPAGE_HTML, HOMEPAGE_MARKDOWN) == ["WordPress", "Shopify"]

    @pytest.mark.unit
    def test_no_technologies(self):
        assert detect_technologies("", "") == []

    @pytest.mark.unit
    def test_social_profiles(self):
        profiles = detect_social_profiles(
            "Find us on instagram.com/acme_plumbing",
            ["https://linkedin.com/company/acme-plumbing"],
        )

        assert profiles == {
            "instagram": "https://instagram.com/acme_plumbing",
            "linkedin": "https://linkedin.com/company/acme-plumbing",
        }


class TestRevenue:

    @pytest.mark.unit
    def test_normalize_industry(self):
        assert normalize_industry("Real Estate") == "real_estate"
        assert normalize_industry(None) == ""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "employees,industry,label",
        [
            (4, "retail", "Under $1M"),
            (25, "Construction", "$5M - $10M"),
            (40, "software", "$10M - $50M"),
            (10000, "saas", "$1B+"),
        ],
    )
    def test_ranges(self, employees, industry, label):
        assert estimate_revenue(employees, industry)["revenue_range"] == label

    @pytest.mark.unit
    def test_unknown_industry_uses_default(self):
        estimate = estimate_revenue(10, "plumbing")
        assert estimate["estimated_revenue_min"] == 800_000
        assert estimate["estimated_revenue_max"] == 2_500_000

    @pytest.mark.unit
    def test_no_employee_count(self):
        assert estimate_revenue(0, "retail") == {
            "estimated_revenue_min": None,
            "estimated_revenue_max": None,
            "revenue_range": None,
        }


class TestTechnographicsEnricher:
    """Tests for the enrichment service."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_scans_homepage_and_stores(self, repository):
        lead = make_scraped_lead(id="lead-1", enrichment_data={"employee_count": 4, "industry": "retail"})
        firecrawl = _firecrawl()

        result = await TechnographicsEnricher(repository, firecrawl).enrich_lead(lead)

        firecrawl.scrape_url_safe.assert_awaited_once()
        assert firecrawl.scrape_url_safe.await_args.args[0] == "https://acmeplumbing.com"
        assert result["technologies"] == ["WordPress", "Shopify"]
        assert result["revenue_estimate"] == "Under $1M"
        assert set(result["social_profiles"]) == {"facebook", "linkedin"}
        assert lead.enrichment_data["technologies"] == ["WordPress", "Shopify"]
        assert lead.enrichment_data["employee_count"] == 4
        assert lead.enrichment_data["estimated_revenue_max"] == 800_000
        assert "tech_enriched_at" in lead.enrichment_data

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_string_employee_count(self, repository):
        firecrawl = _firecrawl()

        imported = make_scraped_lead(enrichment_data={"employee_count": "4", "industry": "retail"})
        result = await TechnographicsEnricher(repository, firecrawl).enrich_lead(imported)
        assert result["revenue_estimate"] == "Under $1M"
        assert imported.enrichment_data["estimated_revenue_max"] == 800_000

        ranged = make_scraped_lead(enrichment_data={"employee_count": "11-50", "industry": "retail"})
        result = await TechnographicsEnricher(repository, firecrawl).enrich_lead(ranged)
        assert result["revenue_estimate"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_existing_technologies_not_rescanned(self, repository):
        lead = make_scraped_lead(enrichment_data={"technologies": ["Wix"]})
        firecrawl = _firecrawl()

        result = await TechnographicsEnricher(repository, firecrawl).enrich_lead(lead)

        firecrawl.scrape_url_safe.assert_not_awaited()
        assert result["technologies"] == ["Wix"]
        assert result["revenue_estimate"] is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hyphenated_domain_and_failed_scrape(self, repository):
        firecrawl = _firecrawl(ScrapeResult(url="x", success=False, error="timeout"))

        hyphen = make_scraped_lead(domain="acme-plumbing.com")
        await TechnographicsEnricher(repository, firecrawl).enrich_lead(hyphen)
        firecrawl.scrape_url_safe.assert_not_awaited()

        result = await TechnographicsEnricher(repository, firecrawl).enrich_lead(make_scraped_lead())
        assert result["technologies"] == []
        assert result["social_profiles"] == {}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run(self, repository):
        lead = make_scraped_lead(id="lead-1")
        repository.get_scraped_lead.side_effect = lambda lead_id: lead if lead_id == "lead-1" else None

        result = await TechnographicsEnricher(repository, None).run(["lead-1", "missing"])

        assert result["success"] is True
        assert [r["lead_id"] for r in result["results"]] == ["lead-1"]

        with pytest.raises(ValidationFailed, match="lead_ids required"):
            await TechnographicsEnricher(repository).run([])

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_caps_batch(self, repository):
        repository.get_scraped_lead.side_effect = lambda lead_id: make_scraped_lead(id=lead_id)

        result = await TechnographicsEnricher(repository).run([f"l{i}" for i in range(25)])

        assert len(result["results"]) == 20
