"""Twilio Lookup v2 client for phone number validation."""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import requests
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client as TwilioClient

logger = logging.getLogger(__name__)

# Line types accepted as reachable by the enrichment waterfall
VALID_LINE_TYPES = ("mobile", "landline", "fixedVoip", "nonFixedVoip")


class TwilioLookupError(Exception):
    """Raised when a lookup fails for a reason other than an unknown number."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class PhoneLookupResult:
    """Lookup outcome for one number.

    ``found`` is False when Twilio answered 404, i.e. the number does not exist.
    """

    phone_number: str
    found: bool = True
    valid: Optional[bool] = None
    line_type: Optional[str] = None
    carrier: Optional[str] = None

    @property
    def is_reachable(self) -> bool:
        if not self.found or self.valid is False:
            return False
        return not self.line_type or self.line_type in VALID_LINE_TYPES

    def to_dict(self) -> dict[str, Any]:
        return {
            "phone_number": self.phone_number,
            "found": self.found,
            "valid": self.valid,
            "line_type": self.line_type,
            "carrier": self.carrier,
        }


class TwilioLookupClient:
    """Async wrapper around ``client.lookups.v2.phone_numbers``."""

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
    ) -> None:
        """Initialize Twilio lookup client.

        Raises:
            ValueError: If credentials are not provided or found in environment.
        """
        self.account_sid = account_sid or os.environ.get("TWILIO_ACCOUNT_SID")
        self.auth_token = auth_token or os.environ.get("TWILIO_AUTH_TOKEN")
        if not self.account_sid or not self.auth_token:
            raise ValueError(
                "Twilio credentials required. Set TWILIO_ACCOUNT_SID and "
                "TWILIO_AUTH_TOKEN environment variables or pass them as parameters."
            )
        self._client = TwilioClient(self.account_sid, self.auth_token)

    def _fetch(self, phone: str) -> Any:
        return self._client.lookups.v2.phone_numbers(phone).fetch(
            fields="line_type_intelligence"
        )

    async def lookup(self, phone: str) -> PhoneLookupResult:
        """Look up line type intelligence for an E.164 number.

        Raises:
            TwilioLookupError: On any failure other than 404.
        """
        loop = asyncio.get_event_loop()
        try:
            record = await loop.run_in_executor(None, lambda: self._fetch(phone))
        except TwilioRestException as e:
            if e.status == 404:
                return PhoneLookupResult(phone_number=phone, found=False, valid=False)
            logger.warning("Twilio lookup failed for %s: %s", phone, e.msg)
            raise TwilioLookupError(f"Twilio lookup failed: {e.msg}", e.status) from e
        except (TwilioException, requests.exceptions.RequestException) as e:
            logger.warning("Twilio lookup transport error for %s: %s", phone, e)
            raise TwilioLookupError(f"Twilio lookup failed: {e}") from e

        intelligence = getattr(record, "line_type_intelligence", None) or {}
        return PhoneLookupResult(
            phone_number=getattr(record, "phone_number", None) or phone,
            found=True,
            valid=getattr(record, "valid", None),
            line_type=intelligence.get("type"),
            carrier=intelligence.get("carrier_name"),
        )
