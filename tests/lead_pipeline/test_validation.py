"""Unit tests for lead email and phone validation."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import requests

from lead_pipeline.enrichment.validation import (
    LeadValidator,
    is_valid_email_syntax,
    normalize_phone_to_e164,
)
from lead_pipeline.errors import ValidationFailed
from lead_pipeline.integrations.http import ProviderRequestError
from lead_pipeline.integrations.twilio_lookup import (
    PhoneLookupResult,
    TwilioLookupClient,
    TwilioLookupError,
)
from lead_pipeline.integrations.zerobounce import EmailVerification
from lead_pipeline.models import ValidationStatus

from .factories import make_scraped_lead


def _dns(has_mx=True):
    dns = MagicMock()
    dns.has_mx_records = AsyncMock(return_value=has_mx)
    return dns


def _zerobounce(status="valid", sub_status=None):
    client = MagicMock()
    client.validate = AsyncMock(
        return_value=EmailVerification(email="x", status=status, sub_status=sub_status)
    )
    return client


def _twilio(result=None):
    client = MagicMock()
    client.lookup = AsyncMock(
        return_value=result
        or PhoneLookupResult(phone_number="+15125550199", found=True, line_type="mobile")
    )
    return client


class TestHelpers:

    @pytest.mark.unit
    def test_email_syntax(self):
        assert is_valid_email_syntax("jane.doe+quotes@acme-plumbing.com")
        assert not is_valid_email_syntax("jane@acme")
        assert not is_valid_email_syntax("not an email")

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(512) 555-0199", "+15125550199"),
            ("1-512-555-0199", "+15125550199"),
            ("44 20 7946 0958", "+442079460958"),
            ("555-0199", "555-0199"),
        ],
    )
    def test_e164(self, raw, expected):
        assert normalize_phone_to_e164(raw) == expected


class TestValidateEmail:
    """Tests for the email check chain."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bad_syntax_short_circuits(self, repository):
        dns = _dns()
        result = await LeadValidator(repository, dns).validate_email("jane@acme")

        assert result.status == ValidationStatus.INVALID
        assert result.notes == "Invalid email syntax"
        dns.has_mx_records.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_mx(self, repository):
        result = await LeadValidator(repository, _dns(False)).validate_email("jane@acme.com")
        assert result.status == ValidationStatus.INVALID
        assert result.notes == "Domain has no MX records"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mx_only_is_likely_valid(self, repository):
        result = await LeadValidator(repository, _dns()).validate_email("jane@acme.com")
        assert result.status == ValidationStatus.LIKELY_VALID
        assert result.notes == "Domain has valid MX records"

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,sub_status,expected,notes",
        [
            ("valid", None, ValidationStatus.VERIFIED, "ZeroBounce: Valid (clean)"),
            ("invalid", "mailbox_not_found", ValidationStatus.INVALID, "ZeroBounce: mailbox_not_found"),
            ("catch-all", None, ValidationStatus.LIKELY_VALID, "ZeroBounce: Catch-all domain"),
            ("unknown", None, ValidationStatus.LIKELY_VALID, "ZeroBounce: unknown"),
        ],
    )
    async def test_zerobounce_verdicts(self, repository, status, sub_status, expected, notes):
        validator = LeadValidator(repository, _dns(), zerobounce=_zerobounce(status, sub_status))

        result = await validator.validate_email("jane@acme.com")

        assert result.status == expected
        assert result.notes == notes

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zerobounce_failure_falls_back(self, repository):
        zerobounce = _zerobounce()
        zerobounce.validate.side_effect = ProviderRequestError("zerobounce API error 500")

        result = await LeadValidator(repository, _dns(), zerobounce).validate_email("jane@acme.com")

        assert result.status == ValidationStatus.LIKELY_VALID
        assert "API validation failed" in result.notes


class TestValidatePhone:
    """Tests for the phone check chain."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_bad_length(self, repository):
        result = await LeadValidator(repository, _dns()).validate_phone("555-0199")
        assert result.status == ValidationStatus.INVALID
        assert result.notes == "Invalid phone number length"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_format_only(self, repository):
        result = await LeadValidator(repository, _dns()).validate_phone("(512) 555-0199")
        assert result.status == ValidationStatus.LIKELY_VALID
        assert result.normalized_phone == "+15125550199"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_twilio_verified(self, repository):
        twilio = _twilio()

        result = await LeadValidator(repository, _dns(), twilio=twilio).validate_phone("512.555.0199")

        twilio.lookup.assert_awaited_once_with("+15125550199")
        assert result.status == ValidationStatus.VERIFIED
        assert result.line_type == "mobile"
        assert result.notes == "Twilio verified. Line type: mobile"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_twilio_not_found(self, repository):
        twilio = _twilio(PhoneLookupResult(phone_number="+15125550199", found=False))

        result = await LeadValidator(repository, _dns(), twilio=twilio).validate_phone("5125550199")

        assert result.status == ValidationStatus.INVALID
        assert result.notes == "Phone number not found"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_twilio_error_falls_back_to_format(self, repository):
        twilio = _twilio()
        twilio.lookup.side_effect = TwilioLookupError("boom", 500)

        result = await LeadValidator(repository, _dns(), twilio=twilio).validate_phone("5125550199")

        assert result.status == ValidationStatus.LIKELY_VALID

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_twilio_connection_error_falls_back_to_format(self, repository):
        with patch("lead_pipeline.integrations.twilio_lookup.TwilioClient"):
            twilio = TwilioLookupClient(account_sid="AC123", auth_token="token")
        failure = requests.exceptions.ConnectionError("connection refused")

        with patch.object(TwilioLookupClient, "_fetch", side_effect=failure):
            result = await LeadValidator(repository, _dns(), twilio=twilio).validate_phone("5125550199")

        assert result.status == ValidationStatus.LIKELY_VALID
        assert result.notes == "Valid format (not verified)"


class TestLeadValidator:
    """Tests for validating stored leads."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_validate_lead_updates_and_logs(self, repository):
        lead = make_scraped_lead(id="lead-1", best_email="jane@acme.com", best_phone="(512) 555-0199")
        validator = LeadValidator(repository, _dns(), _zerobounce(), _twilio())

        result = await validator.validate_lead(lead)

        assert result["email_result"] == {"status": "verified", "notes": "ZeroBounce: Valid (clean)"}
        assert result["phone_result"] == {
            "status": "verified",
            "line_type": "mobile",
            "notes": "Twilio verified. Line type: mobile",
            "normalized_phone": "+15125550199",
        }
        assert lead.email_validation_status == ValidationStatus.VERIFIED
        assert lead.best_phone == "+15125550199"
        assert lead.phone_line_type == "mobile"

        logs = [call.kwargs for call in repository.add_validation_log.await_args_list]
        assert [(log["validation_type"], log["provider"]) for log in logs] == [
            ("email", "zerobounce"),
            ("phone", "twilio"),
        ]
        assert logs[1]["input_value"] == "(512) 555-0199"
        assert logs[1]["result_details"]["normalized"] == "+15125550199"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_to_validate(self, repository):
        lead = make_scraped_lead()
        assert await LeadValidator(repository, _dns()).validate_lead(lead) is None
        repository.update_scraped_lead.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_email_only(self, repository):
        lead = make_scraped_lead(id="lead-1", best_email="jane@acme.com", best_phone="5125550199")
        repository.get_scraped_lead.return_value = lead

        result = await LeadValidator(repository, _dns()).run(lead_id="lead-1", validate_phone=False)

        assert result["success"] is True
        assert "phone_result" not in result["results"][0]
        assert lead.best_phone == "5125550199"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_run_missing_lead_and_no_ids(self, repository):
        result = await LeadValidator(repository, _dns()).run(lead_ids=["gone"])
        assert result["results"] == [{"lead_id": "gone", "email_result": {"error": "Lead not found"}}]

        with pytest.raises(ValidationFailed):
            await LeadValidator(repository, _dns()).run()
