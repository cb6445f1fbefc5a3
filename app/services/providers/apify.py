"""LinkedIn and Google Ads Transparency scrapers run as Apify actors."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from app.models.intelligence_models import AdCreative
from app.models.intelligence_models import LinkedInCompany
from app.models.intelligence_models import LinkedInPost
from app.models.research_models import Subject
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import ProviderCredentials
from app.services.providers.base import first_present
from app.services.providers.base import to_int

APIFY_API_BASE = "https://api.apify.com/v2"

LINKEDIN_COMPANY_ACTOR = "3rgDeYgLhr6XrVnjs"
LINKEDIN_ADS_ACTOR = "silva95gustavo/linkedin-ad-library-scraper"
GOOGLE_ADS_ACTOR = "xtech/google-ad-transparency-scraper"


class ApifyActorAdapter(ProviderAdapter):
    actor_id: str = ""
    required_credentials = ("apify_api_key",)

    async def run_actor(
        self,
        client: httpx.AsyncClient,
        credentials: ProviderCredentials,
        actor_input: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """Run the actor synchronously and return its dataset items."""
        # Named actors use "~" instead of "/" in API paths
        actor = quote(self.actor_id.replace("/", "~"), safe="~")
        response = await client.post(
            f"{APIFY_API_BASE}/acts/{actor}/run-sync-get-dataset-items",
            params={"token": credentials.apify_api_key},
            json=actor_input,
        )
        response.raise_for_status()
        items = response.json()
        if not isinstance(items, list):
            raise ValueError(f"Unexpected Apify response type: {type(items).__name__}")
        return [item for item in items if isinstance(item, dict)]


class LinkedInCompanyAdapter(ApifyActorAdapter):
    name = "linkedin_company"
    field = "linkedin"
    actor_id = LINKEDIN_COMPANY_ACTOR

    def applies_to(self, subject: Subject) -> bool:
        return bool(subject.linkedin_handle)

    async def _fetch(self, client, subject, credentials, options) -> LinkedInCompany:
        handle = subject.linkedin_handle or ""
        profile_url = handle if handle.startswith("http") else f"https://www.linkedin.com/{handle}"
        items = await self.run_actor(client, credentials, {"urls": [profile_url]})
        if not items:
            return LinkedInCompany(name=subject.name)

        item = items[0]
        posts = item.get("posts") if isinstance(item.get("posts"), list) else []
        specialties = item.get("specialties")
        return LinkedInCompany(
            name=first_present(item, "name", "companyName") or subject.name,
            description=first_present(item, "description", "about"),
            followers=to_int(
                first_present(item, "followersCount", "followers", "followerCount", "follower_count", "numFollowers")
            ),
            employee_count=to_int(first_present(item, "employeeCount", "employees", "staffCount", "employeesOnLinkedIn")),
            industry=item.get("industry"),
            specialties=specialties if isinstance(specialties, list) else [],
            recent_posts=[
                LinkedInPost(text=p.get("text"), likes=to_int(p.get("likes")), comments=to_int(p.get("comments")))
                for p in posts[:10]
                if isinstance(p, dict)
            ],
        )


class LinkedInAdsAdapter(ApifyActorAdapter):
    name = "linkedin_ads"
    field = "linkedin_ads"
    actor_id = LINKEDIN_ADS_ACTOR
    empty_payload = list

    async def _fetch(self, client, subject, credentials, options) -> list[AdCreative]:
        search_url = f"https://www.linkedin.com/ad-library/search?accountOwner={quote(subject.name)}"
        items = await self.run_actor(
            client,
            credentials,
            {
                "startUrls": [{"url": search_url}],
                "resultsLimit": options.get("limit", 20),
                "proxyConfiguration": {"useApifyProxy": True},
            },
        )
        return [
            AdCreative(
                platform="linkedin",
                headline=item.get("headline"),
                body=item.get("body"),
                cta=item.get("callToAction"),
            )
            for item in items
        ]


class GoogleAdsAdapter(ApifyActorAdapter):
    name = "google_ads"
    field = "google_ads"
    actor_id = GOOGLE_ADS_ACTOR
    empty_payload = list

    async def _fetch(self, client, subject, credentials, options) -> list[AdCreative]:
        items = await self.run_actor(client, credentials, {"searchInputs": [subject.name], "mode": "FULL"})
        return [
            AdCreative(
                platform="google",
                headline=item.get("headline"),
                body=item.get("description"),
                format=item.get("format"),
            )
            for item in items
        ]
