"""Moz Links API v2 adapters: domain authority, keyword rankings and top pages."""

from typing import Any

import httpx

from app.models.intelligence_models import MozDomainMetrics
from app.models.intelligence_models import MozKeyword
from app.models.intelligence_models import MozTopPage
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import ProviderCredentials
from app.services.providers.base import to_int

MOZ_API_BASE = "https://lsapi.seomoz.com/v2"


class MozAdapter(ProviderAdapter):
    endpoint: str = ""
    required_credentials = ("moz_api_key",)

    async def moz_request(
        self, client: httpx.AsyncClient, credentials: ProviderCredentials, body: dict[str, Any]
    ) -> dict[str, Any]:
        response = await client.post(
            f"{MOZ_API_BASE}/{self.endpoint}",
            headers={"x-moz-token": credentials.moz_api_key},
            json=body,
        )
        response.raise_for_status()
        return response.json()


class MozDomainMetricsAdapter(MozAdapter):
    name = "moz_domain_metrics"
    field = "domain_metrics"
    endpoint = "url_metrics"

    async def _fetch(self, client, subject, credentials, options) -> MozDomainMetrics:
        domain = subject.bare_domain
        data = await self.moz_request(client, credentials, {"targets": [domain], "daily_history_values": False})
        # url_metrics answers with one result per target
        if isinstance(data.get("results"), list) and data["results"]:
            data = data["results"][0]
        return MozDomainMetrics(
            domain=domain,
            domain_authority=data.get("domain_authority"),
            page_authority=data.get("page_authority"),
            spam_score=data.get("spam_score"),
            external_links=to_int(data.get("external_pages_to_domain")),
            linking_domains=to_int(data.get("external_pages_to_root_domain")),
        )


class MozKeywordsAdapter(MozAdapter):
    name = "moz_keywords"
    field = "keywords"
    endpoint = "keyword_rankings"
    empty_payload = list

    async def _fetch(self, client, subject, credentials, options) -> list[MozKeyword]:
        data = await self.moz_request(
            client,
            credentials,
            {"target": subject.bare_domain, "scope": "domain", "limit": options.get("limit", 50)},
        )
        results = data.get("keyword_rankings") or data.get("results") or []
        return [
            MozKeyword(
                keyword=r.get("keyword") or "",
                ranking_position=to_int(r.get("ranking_position")),
                search_volume=to_int(r.get("search_volume")),
            )
            for r in results
        ]


class MozTopPagesAdapter(MozAdapter):
    name = "moz_top_pages"
    field = "top_pages"
    endpoint = "top_pages"
    empty_payload = list

    async def _fetch(self, client, subject, credentials, options) -> list[MozTopPage]:
        data = await self.moz_request(
            client,
            credentials,
            {"target": subject.bare_domain, "scope": "domain", "limit": options.get("limit", 50)},
        )
        results = data.get("results") or data.get("top_pages") or []
        return [
            MozTopPage(
                url=r.get("page") or r.get("url") or "",
                page_authority=r.get("page_authority"),
                external_links=to_int(r.get("external_pages_to_page")),
            )
            for r in results
        ]
