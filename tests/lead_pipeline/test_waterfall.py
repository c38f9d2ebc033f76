"""Unit tests for multi-provider waterfall enrichment."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lead_pipeline.enrichment.waterfall import DataWaterfallEnricher, WaterfallResult
from lead_pipeline.errors import ProviderNotConfigured, ValidationFailed
from lead_pipeline.integrations.apollo import ApolloPerson
from lead_pipeline.integrations.http import ProviderRequestError
from lead_pipeline.integrations.hunter import HunterEmail
from lead_pipeline.integrations.twilio_lookup import PhoneLookupResult, TwilioLookupError
from lead_pipeline.integrations.zerobounce import EmailVerification

ORGANIZATION = {
    "name": "Acme Plumbing",
    "industry": "construction",
    "estimated_num_employees": 25,
    "city": "Austin",
    "state": "TX",
}


def _person(**overrides):
    fields = dict(
        name="Jane Doe",
        email="jane@acmeplumbing.com",
        title="Owner",
        linkedin_url="https://linkedin.com/in/janedoe",
        phone_numbers=[{"number": "+15125550199", "type": "mobile"}],
        seniority="owner",
        departments=["executive"],
        organization=dict(ORGANIZATION),
    )
    fields.update(overrides)
    return ApolloPerson(**fields)


def _apollo(people):
    client = MagicMock()
    client.search_people = AsyncMock(return_value=people)
    return client


def _hunter(found=None, emails=None):
    client = MagicMock()
    client.find_email = AsyncMock(return_value=found)
    client.domain_search = AsyncMock(return_value=emails or [])
    return client


def _zerobounce(status="valid"):
    client = MagicMock()
    client.validate = AsyncMock(return_value=EmailVerification(email="x", status=status))
    return client


def _twilio(**result):
    client = MagicMock()
    client.lookup = AsyncMock(
        return_value=PhoneLookupResult(**{"phone_number": "+15125550199", **result})
    )
    return client


class TestWaterfallResult:

    @pytest.mark.unit
    def test_missing_fields_with_pending(self):
        result = WaterfallResult(full_name="Jane Doe")
        assert result.missing_fields({"email": "a@b.com"}) == [
            "phone", "job_title", "linkedin_url", "company_name",
        ]
        assert not result.is_complete


class TestEnrich:
    """Tests for provider ordering and gap filling."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_apollo_complete_skips_later_providers(self):
        apollo = _apollo([_person(title="Technician"), _person(name="Sam Green", title="CEO")])
        hunter = _hunter()
        enricher = DataWaterfallEnricher(
            apollo=apollo, hunter=hunter, zerobounce=_zerobounce(), twilio=_twilio(line_type="mobile")
        )

        result = await enricher.run("acmeplumbing.com")

        assert result["success"] is True
        assert result["is_complete"] is True
        assert result["data"]["full_name"] == "Sam Green"
        assert result["data"]["mobile_phone"] == "+15125550199"
        assert result["data"]["employee_count"] == 25
        assert result["data"]["headquarters_state"] == "TX"
        assert result["providers_used"] == ["apollo", "zerobounce", "twilio"]
        assert [step["provider"] for step in result["waterfall_log"]] == [
            "apollo", "zerobounce", "twilio",
        ]
        assert result["waterfall_log"][2]["fields_found"] == ["phone_validated", "line_type"]
        hunter.find_email.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hunter_finds_email_for_named_contact(self):
        hunter = _hunter(found="jane@acmeplumbing.com")
        enricher = DataWaterfallEnricher(apollo=_apollo([_person(email=None)]), hunter=hunter)

        result = await enricher.run("acmeplumbing.com")

        hunter.find_email.assert_awaited_once_with("acmeplumbing.com", "Jane", "Doe")
        assert result["data"]["email"] == "jane@acmeplumbing.com"
        assert result["providers_used"] == ["apollo", "hunter"]
        apollo_step = result["waterfall_log"][0]
        assert "email" in apollo_step["fields_missing"]
        assert apollo_step["fields_found"] == [
            "full_name", "phone", "job_title", "linkedin_url", "company_name",
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_hunter_domain_search_without_apollo(self):
        hunter = _hunter(
            emails=[
                HunterEmail(
                    value="jane@acmeplumbing.com", first_name="Jane", last_name="Doe",
                    position="Owner",
                )
            ]
        )

        result = await DataWaterfallEnricher(hunter=hunter).run("acmeplumbing.com")

        hunter.find_email.assert_not_awaited()
        assert result["data"]["full_name"] == "Jane Doe"
        assert result["data"]["job_title"] == "Owner"
        assert result["waterfall_log"][0]["fields_found"] == ["email", "full_name", "job_title"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_recorded_and_skipped(self):
        hunter = _hunter()
        hunter.domain_search.side_effect = ProviderRequestError("hunter API error 500")

        result = await DataWaterfallEnricher(hunter=hunter).run("acmeplumbing.com")

        assert result["providers_used"] == []
        assert result["waterfall_log"][0]["success"] is False
        assert result["is_complete"] is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pdl_fills_only_gaps(self):
        pdl = MagicMock()
        pdl.enrich_person = AsyncMock(
            return_value={
                "full_name": "Someone Else",
                "work_email": "j.doe@acmeplumbing.com",
                "phone_numbers": ["+15125550100"],
                "job_company_industry": "plumbing",
            }
        )
        apollo = _apollo([_person(email=None, phone_numbers=[])])

        result = await DataWaterfallEnricher(apollo=apollo, pdl=pdl).run("acmeplumbing.com")

        assert result["data"]["full_name"] == "Jane Doe"
        assert result["data"]["email"] == "j.doe@acmeplumbing.com"
        assert result["data"]["phone"] == "+15125550100"
        assert result["data"]["industry"] == "construction"
        assert result["waterfall_log"][1]["fields_found"] == ["email", "phone"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clearbit_company_data(self):
        clearbit = MagicMock()
        clearbit.find_company = AsyncMock(
            return_value={
                "name": "Acme Plumbing Co",
                "category": {"industry": "Construction"},
                "metrics": {"employees": 30, "estimatedAnnualRevenue": "$5,000,000"},
                "linkedin": {"handle": "acme-plumbing"},
                "geo": {"city": "Austin", "stateCode": "TX"},
            }
        )

        result = await DataWaterfallEnricher(clearbit=clearbit).run("acmeplumbing.com")

        data = result["data"]
        assert data["company_name"] == "Acme Plumbing Co"
        assert data["annual_revenue"] == 5000000
        assert data["company_linkedin_url"] == "https://www.linkedin.com/company/acme-plumbing"
        assert data["headquarters_city"] == "Austin"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_verification_clears_contact(self):
        enricher = DataWaterfallEnricher(
            apollo=_apollo([_person()]),
            zerobounce=_zerobounce("invalid"),
            twilio=_twilio(found=False),
        )

        result = await enricher.run("acmeplumbing.com")

        assert result["data"]["email"] is None
        assert result["data"]["phone"] is None
        assert result["providers_used"] == ["apollo"]
        assert [s["success"] for s in result["waterfall_log"]] == [True, False, False]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_phone_kept_when_lookup_unreachable(self):
        twilio = MagicMock()
        twilio.lookup = AsyncMock(side_effect=TwilioLookupError("Twilio lookup failed: connection refused"))
        enricher = DataWaterfallEnricher(apollo=_apollo([_person()]), twilio=twilio)

        result = await enricher.run("acmeplumbing.com")

        assert result["data"]["phone"] == "+15125550199"
        assert "twilio" in result["providers_used"]
        assert result["waterfall_log"][-1]["provider"] == "twilio"
        assert result["waterfall_log"][-1]["success"] is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_validation(self):
        with pytest.raises(ProviderNotConfigured):
            await DataWaterfallEnricher(zerobounce=_zerobounce()).run("acmeplumbing.com")
        with pytest.raises(ValidationFailed, match="Domain is required"):
            await DataWaterfallEnricher(hunter=_hunter()).run("")
