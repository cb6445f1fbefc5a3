"""SpyFu paid-search adapters."""

import logging
from typing import Any

import httpx

from app.models.intelligence_models import AdHistoryItem
from app.models.intelligence_models import PpcKeyword
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import ProviderCredentials
from app.services.providers.base import describe_error
from app.services.providers.base import first_present

logger = logging.getLogger(__name__)

SPYFU_API_BASE = "https://api.spyfu.com/apis"


class SpyFuAdapter(ProviderAdapter):
    endpoint: str = ""
    required_credentials = ("spyfu_api_key",)
    empty_payload = list

    def __init__(
        self,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        proxy_url: str | None = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.proxy_url = proxy_url

    async def spyfu_request(
        self, client: httpx.AsyncClient, credentials: ProviderCredentials, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        request = client.build_request(
            "GET",
            f"{SPYFU_API_BASE}/{self.endpoint}",
            params={"api_key": credentials.spyfu_api_key, "countryCode": "US", **params},
        )
        try:
            response = await client.send(request)
            response.raise_for_status()
        except httpx.HTTPError as e:
            if not self.proxy_url:
                raise
            logger.warning("SpyFu direct request failed, trying proxy: %s", describe_error(e))
            response = await self.via_proxy(client, request.url)
        results = response.json().get("results") or []
        return [r for r in results if isinstance(r, dict)]

    async def via_proxy(self, client: httpx.AsyncClient, url: httpx.URL) -> httpx.Response:
        """Fetch *url* through the relay at ``proxy_url`` (``GET <proxy>?url=<target>``).

        Credentials embedded in the proxy URL are sent as basic auth rather than in the URL.
        """
        proxy = httpx.URL(self.proxy_url)
        auth = httpx.BasicAuth(proxy.username, proxy.password) if proxy.username else None
        response = await client.get(
            proxy.copy_with(userinfo=b""),
            params={"url": str(url)},
            auth=auth,
        )
        response.raise_for_status()
        return response


class SpyFuPpcKeywordsAdapter(SpyFuAdapter):
    name = "spyfu_ppc_keywords"
    field = "ppc_keywords"
    endpoint = "serp_api/v2/ppc/getPaidSerps"

    async def _fetch(self, client, subject, credentials, options) -> list[PpcKeyword]:
        results = await self.spyfu_request(
            client,
            credentials,
            {
                "query": subject.bare_domain,
                "pageSize": options.get("limit", 50),
                "startingRow": 1,
                "sortBy": "SearchVolume",
                "sortOrder": "Descending",
            },
        )
        return [
            PpcKeyword(
                keyword=first_present(r, "term", "keyword") or "",
                position=first_present(r, "rankPaid", "position"),
                cost_per_click=r.get("costPerClick"),
                monthly_cost=first_present(r, "ppcCost", "monthlyCost"),
            )
            for r in results
        ]


class SpyFuAdHistoryAdapter(SpyFuAdapter):
    name = "spyfu_ad_history"
    field = "ad_history"
    endpoint = "cloud_ad_history_api/v2/domain/getDomainAdHistory"

    async def _fetch(self, client, subject, credentials, options) -> list[AdHistoryItem]:
        results = await self.spyfu_request(
            client,
            credentials,
            {"domain": subject.bare_domain, "pageSize": options.get("limit", 50), "startingRow": 1},
        )
        return [
            AdHistoryItem(
                keyword=first_present(r, "term", "keyword"),
                headline=first_present(r, "adTitle", "headline"),
                description=first_present(r, "adDescription", "description"),
            )
            for r in results
        ]
