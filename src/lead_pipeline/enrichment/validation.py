"""Email and phone validation for scraped leads.

Email checks run syntax, then MX records, then ZeroBounce when configured.
Phone checks normalise to E.164, check length, then ask Twilio Lookup when
configured. Every check writes a ``validation_logs`` row.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from ..errors import ValidationFailed
from ..integrations.http import ProviderError
from ..integrations.twilio_lookup import TwilioLookupError
from ..models import ScrapedLead, ValidationStatus

logger = logging.getLogger(__name__)

EMAIL_SYNTAX_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


@dataclass
class EmailValidationResult:
    status: ValidationStatus
    notes: str

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.status.value, "notes": self.notes}


@dataclass
class PhoneValidationResult:
    status: ValidationStatus
    notes: str
    normalized_phone: str
    line_type: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "line_type": self.line_type,
            "notes": self.notes,
            "normalized_phone": self.normalized_phone,
        }


def is_valid_email_syntax(email: str) -> bool:
    return bool(EMAIL_SYNTAX_RE.match(email or ""))


def normalize_phone_to_e164(phone: str, country_code: str = "1") -> str:
    """Best-effort E.164 form; returns the input unchanged when it cannot tell.

    >>> normalize_phone_to_e164("(555) 123-4567")
    '+15551234567'
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        return f"+{country_code}{digits}"
    if len(digits) == 11 and digits.startswith("1"):
        return f"+{digits}"
    if len(digits) > 10:
        return f"+{digits}"
    return phone


class LeadValidator:
    """Validates lead contact channels and records the outcome.

    Args:
        repository: LeadRepository for reads and writes.
        dns: DnsOverHttpsClient for MX lookups.
        zerobounce: ZeroBounceClient, or None.
        twilio: TwilioLookupClient, or None.
    """

    def __init__(self, repository, dns, zerobounce=None, twilio=None) -> None:
        self.repository = repository
        self.dns = dns
        self.zerobounce = zerobounce
        self.twilio = twilio

    async def validate_email(self, email: str) -> EmailValidationResult:
        if not is_valid_email_syntax(email):
            return EmailValidationResult(ValidationStatus.INVALID, "Invalid email syntax")

        domain = email.split("@")[1]
        if not await self.dns.has_mx_records(domain):
            return EmailValidationResult(ValidationStatus.INVALID, "Domain has no MX records")

        if self.zerobounce is None:
            return EmailValidationResult(
                ValidationStatus.LIKELY_VALID, "Domain has valid MX records"
            )

        try:
            verdict = await self.zerobounce.validate(email)
        except ProviderError as e:
            logger.error("ZeroBounce validation error: %s", e)
            return EmailValidationResult(
                ValidationStatus.LIKELY_VALID,
                "Domain has valid MX records (API validation failed)",
            )

        if verdict.status == "valid":
            return EmailValidationResult(
                ValidationStatus.VERIFIED,
                f"ZeroBounce: Valid ({verdict.sub_status or 'clean'})",
            )
        if verdict.status == "invalid":
            return EmailValidationResult(
                ValidationStatus.INVALID, f"ZeroBounce: {verdict.sub_status or 'Invalid'}"
            )
        if verdict.status == "catch-all":
            return EmailValidationResult(
                ValidationStatus.LIKELY_VALID, "ZeroBounce: Catch-all domain"
            )
        return EmailValidationResult(
            ValidationStatus.LIKELY_VALID, f"ZeroBounce: {verdict.status}"
        )

    async def validate_phone(self, phone: str) -> PhoneValidationResult:
        normalized = normalize_phone_to_e164(phone)
        digits = re.sub(r"\D", "", phone)

        if len(digits) < 10 or len(digits) > 15:
            return PhoneValidationResult(
                ValidationStatus.INVALID, "Invalid phone number length", normalized
            )

        if self.twilio is not None:
            try:
                lookup = await self.twilio.lookup(normalized)
            except TwilioLookupError as e:
                logger.error("Twilio Lookup error: %s", e)
            else:
                if not lookup.found:
                    return PhoneValidationResult(
                        ValidationStatus.INVALID, "Phone number not found", normalized
                    )
                return PhoneValidationResult(
                    ValidationStatus.VERIFIED,
                    f"Twilio verified. Line type: {lookup.line_type or 'unknown'}",
                    lookup.phone_number or normalized,
                    line_type=lookup.line_type,
                )

        return PhoneValidationResult(
            ValidationStatus.LIKELY_VALID, "Valid format (not verified)", normalized
        )

    async def validate_lead(
        self,
        lead: ScrapedLead,
        check_email: bool = True,
        check_phone: bool = True,
    ) -> Optional[dict[str, Any]]:
        """Validate one lead; returns None when it has nothing to validate."""
        updates: dict[str, Any] = {}
        result: dict[str, Any] = {"lead_id": lead.id}

        if check_email and lead.best_email:
            email_result = await self.validate_email(lead.best_email)
            updates["email_validation_status"] = email_result.status
            updates["email_validation_notes"] = email_result.notes
            await self.repository.add_validation_log(
                lead_id=lead.id,
                validation_type="email",
                input_value=lead.best_email,
                result_status=email_result.status.value,
                result_details={"notes": email_result.notes},
                provider="zerobounce" if self.zerobounce else "internal",
            )
            result["email_result"] = email_result.to_dict()

        if check_phone and lead.best_phone:
            phone_result = await self.validate_phone(lead.best_phone)
            updates["phone_validation_status"] = phone_result.status
            updates["phone_validation_notes"] = phone_result.notes
            updates["phone_line_type"] = phone_result.line_type
            updates["best_phone"] = phone_result.normalized_phone
            await self.repository.add_validation_log(
                lead_id=lead.id,
                validation_type="phone",
                input_value=lead.best_phone,
                result_status=phone_result.status.value,
                result_details={
                    "line_type": phone_result.line_type,
                    "notes": phone_result.notes,
                    "normalized": phone_result.normalized_phone,
                },
                provider="twilio" if self.twilio else "internal",
            )
            result["phone_result"] = phone_result.to_dict()

        if not updates:
            return None
        await self.repository.update_scraped_lead(lead, updates)
        return result

    async def run(
        self,
        lead_id: Optional[str] = None,
        lead_ids: Optional[Sequence[str]] = None,
        validate_email: bool = True,
        validate_phone: bool = True,
    ) -> dict[str, Any]:
        """Validate one or many leads.

        Raises:
            ValidationFailed: If no lead ids were given.
        """
        ids = list(lead_ids) if lead_ids else ([lead_id] if lead_id else [])
        if not ids:
            raise ValidationFailed("No lead IDs provided")

        logger.info("Validating %d lead(s)", len(ids))
        results = []
        for current_id in ids:
            lead = await self.repository.get_scraped_lead(current_id)
            if lead is None:
                results.append({"lead_id": current_id, "email_result": {"error": "Lead not found"}})
                continue
            result = await self.validate_lead(lead, validate_email, validate_phone)
            if result is not None:
                results.append(result)

        return {"success": True, "results": results}
