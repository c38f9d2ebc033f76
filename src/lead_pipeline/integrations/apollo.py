"""Apollo.io client for company and people search.

Used by csv-enrich, enrich-lead and the data waterfall to find the best
contact at a company.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from .http import HTTPProviderClient, ProviderRequestError

logger = logging.getLogger(__name__)

APOLLO_BASE_URL = "https://api.apollo.io/v1"

# Titles that mark a likely decision maker, in the order they are tried
EXECUTIVE_TITLES = ("owner", "ceo", "founder", "president")
DECISION_MAKER_TITLES = EXECUTIVE_TITLES + ("director", "manager")


class ApolloError(ProviderRequestError):
    """Raised when Apollo answers with an error payload."""

    pass


@dataclass
class ApolloPerson:
    """A person record from ``mixed_people/search``.

    Attributes:
        name: Full name.
        email: Work email, when Apollo has revealed it.
        title: Job title.
        linkedin_url: Profile URL.
        phone_numbers: Raw phone entries (``{"number", "type"}``).
        seniority: Apollo seniority bucket (owner, c_suite, vp, ...).
        departments: Department slugs.
        organization: Raw organization object attached to the person.
    """

    name: Optional[str] = None
    email: Optional[str] = None
    title: Optional[str] = None
    linkedin_url: Optional[str] = None
    phone_numbers: list[dict[str, Any]] = field(default_factory=list)
    seniority: Optional[str] = None
    departments: list[str] = field(default_factory=list)
    organization: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ApolloPerson":
        phones = [p for p in (data.get("phone_numbers") or []) if isinstance(p, dict)]
        return cls(
            name=data.get("name"),
            email=data.get("email"),
            title=data.get("title"),
            linkedin_url=data.get("linkedin_url"),
            phone_numbers=phones,
            seniority=data.get("seniority"),
            departments=data.get("departments") or [],
            organization=data.get("organization") or {},
        )

    @property
    def phone(self) -> Optional[str]:
        """First phone number Apollo returned."""
        if not self.phone_numbers:
            return None
        return self.phone_numbers[0].get("number") or self.phone_numbers[0].get(
            "sanitized_number"
        )

    def phone_of_type(self, phone_type: str) -> Optional[str]:
        for entry in self.phone_numbers:
            if entry.get("type") == phone_type:
                return entry.get("number")
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "title": self.title,
            "linkedin_url": self.linkedin_url,
            "phone": self.phone,
            "seniority": self.seniority,
            "departments": self.departments,
            "organization_name": self.organization.get("name"),
        }


def pick_best_person(
    people: Sequence[ApolloPerson],
    priority_titles: Sequence[str] = DECISION_MAKER_TITLES,
) -> Optional[ApolloPerson]:
    """Return the first person whose title contains a priority keyword.

    Falls back to the first person when nobody matches.
    """
    if not people:
        return None
    for person in people:
        title = (person.title or "").lower()
        if any(keyword in title for keyword in priority_titles):
            return person
    return people[0]


def strip_domain(website: Optional[str]) -> Optional[str]:
    """Reduce a website URL to its bare host (no scheme, www or path)."""
    if not website:
        return None
    host = website.strip()
    for prefix in ("https://", "http://"):
        if host.lower().startswith(prefix):
            host = host[len(prefix):]
    if host.lower().startswith("www."):
        host = host[4:]
    return host.split("/")[0] or None


class ApolloClient(HTTPProviderClient):
    """Async client for the Apollo.io search API.

    Example:
        >>> async with ApolloClient() as apollo:
        ...     people = await apollo.search_people(domain="acmedental.com")
        >>> pick_best_person(people).name
        'Jane Doe'
    """

    provider_name = "apollo"
    base_url = APOLLO_BASE_URL

    def __init__(self, api_key: Optional[str] = None, **kwargs: Any) -> None:
        """Initialize Apollo client.

        Raises:
            ValueError: If no API key is provided or found in environment.
        """
        super().__init__(**kwargs)
        self.api_key = api_key or os.environ.get("APOLLO_API_KEY")
        if not self.api_key:
            raise ValueError(
                "Apollo API key required. Set APOLLO_API_KEY environment "
                "variable or pass api_key parameter."
            )

    def _default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "X-Api-Key": self.api_key,
        }

    async def _search(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        response = await self._post(endpoint, json_body=body)
        if isinstance(response, dict) and response.get("error"):
            raise ApolloError(f"Apollo error: {response['error']}")
        return response or {}

    async def search_organizations(
        self,
        name: str,
        per_page: int = 1,
    ) -> list[dict[str, Any]]:
        """Search companies by name.

        Returns:
            Raw organization objects (``organizations`` or, for accounts
            already saved in Apollo, ``accounts``).
        """
        logger.info("Apollo organization search: %s", name)
        response = await self._search(
            "/mixed_companies/search",
            {"q_organization_name": name, "page": 1, "per_page": per_page},
        )
        return response.get("organizations") or response.get("accounts") or []

    async def search_people(
        self,
        domain: Optional[str] = None,
        organization_name: Optional[str] = None,
        titles: Optional[list[str]] = None,
        per_page: int = 5,
    ) -> list[ApolloPerson]:
        """Search people at a company, by domain when known.

        Raises:
            ValueError: If neither domain nor organization_name is given.
        """
        if not domain and not organization_name:
            raise ValueError("Provide a domain or an organization name")

        body: dict[str, Any] = {"page": 1, "per_page": per_page}
        if domain:
            body["q_organization_domains"] = domain
        else:
            body["q_organization_name"] = organization_name
        if titles:
            body["person_titles"] = titles

        response = await self._search("/mixed_people/search", body)
        people = [ApolloPerson.from_api(p) for p in response.get("people") or []]
        logger.info(
            "Apollo people search returned %d people",
            len(people),
            extra={"domain": domain, "organization": organization_name},
        )
        return people
