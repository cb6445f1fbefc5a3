"""Firecrawl website crawl.

Unlike the other adapters a crawl is asynchronous on the provider side: the
job is submitted first and its pages are collected later, which lets the
orchestrator overlap the crawl with the rest of the gathering work.
"""

import asyncio
import logging
from typing import Any

import httpx

from app.models.intelligence_models import ProviderError
from app.models.intelligence_models import WebsitePage
from app.models.research_models import Subject
from app.models.results import Result
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import ProviderCredentials

logger = logging.getLogger(__name__)

FIRECRAWL_API_BASE = "https://api.firecrawl.dev/v1"

CRAWL_PENDING_STATES = {"scraping"}


class CrawlFailedError(ValueError):
    """Firecrawl reported the crawl job as failed or cancelled."""


class WebsiteCrawlAdapter(ProviderAdapter):
    name = "website_crawl"
    field = "website_pages"
    required_credentials = ("firecrawl_api_key",)
    empty_payload = list

    def __init__(
        self,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        max_pages: int = 25,
        poll_interval: float = 10.0,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.max_pages = max_pages
        self.poll_interval = poll_interval

    @staticmethod
    def site_url(subject: Subject) -> str:
        domain = subject.domain.rstrip("/")
        return domain if domain.startswith("http") else f"https://{domain}"

    async def submit(self, subject: Subject, credentials: ProviderCredentials) -> Result[str, ProviderError]:
        """Start a crawl and return its job id."""
        return await self.guarded(subject, lambda client: self._submit(client, subject, credentials))

    async def collect(
        self, subject: Subject, crawl_id: str, credentials: ProviderCredentials
    ) -> Result[list[WebsitePage], ProviderError]:
        """Poll the crawl until it leaves the pending state and return its pages.

        No deadline is applied here; callers bound the wait themselves.
        """
        return await self.guarded(subject, lambda client: self._wait_for_pages(client, subject, crawl_id, credentials))

    async def _fetch(self, client, subject, credentials, options) -> list[WebsitePage]:
        crawl_id = await self._submit(client, subject, credentials)
        return await self._wait_for_pages(client, subject, crawl_id, credentials)

    async def _submit(self, client: httpx.AsyncClient, subject: Subject, credentials: ProviderCredentials) -> str:
        response = await client.post(
            f"{FIRECRAWL_API_BASE}/crawl",
            headers=self._headers(credentials),
            json={
                "url": self.site_url(subject),
                "limit": self.max_pages,
                "scrapeOptions": {"formats": ["markdown"], "onlyMainContent": True},
            },
        )
        response.raise_for_status()
        crawl_id = response.json().get("id")
        if not crawl_id:
            raise ValueError("Firecrawl did not return a crawl id")
        logger.info("Submitted crawl %s for %s", crawl_id, subject.domain)
        return crawl_id

    async def _wait_for_pages(
        self,
        client: httpx.AsyncClient,
        subject: Subject,
        crawl_id: str,
        credentials: ProviderCredentials,
    ) -> list[WebsitePage]:
        url = f"{FIRECRAWL_API_BASE}/crawl/{crawl_id}"
        while True:
            body = await self._get(client, url, credentials)
            status = body.get("status")
            if status == "completed":
                break
            if status not in CRAWL_PENDING_STATES:
                raise CrawlFailedError(f"Crawl {crawl_id} ended with status '{status}'")
            logger.debug("Crawl %s for %s still %s", crawl_id, subject.domain, status)
            await asyncio.sleep(self.poll_interval)

        items: list[dict[str, Any]] = list(body.get("data") or [])
        # Large results are paginated through "next"
        while body.get("next") and len(items) < self.max_pages:
            body = await self._get(client, body["next"], credentials)
            items.extend(body.get("data") or [])

        pages = [page for page in (self._to_page(item) for item in items[: self.max_pages]) if page]
        logger.info("Crawl %s for %s completed with %d page(s)", crawl_id, subject.domain, len(pages))
        return pages

    async def _get(self, client: httpx.AsyncClient, url: str, credentials: ProviderCredentials) -> dict[str, Any]:
        response = await client.get(url, headers=self._headers(credentials))
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _to_page(item: dict[str, Any]) -> WebsitePage | None:
        markdown = item.get("markdown")
        if not markdown:
            return None
        metadata = item.get("metadata") or {}
        return WebsitePage(
            url=metadata.get("sourceURL") or metadata.get("url") or "",
            title=metadata.get("title"),
            markdown=markdown,
            status_code=metadata.get("statusCode"),
        )

    @staticmethod
    def _headers(credentials: ProviderCredentials) -> dict[str, str]:
        return {"Authorization": f"Bearer {credentials.firecrawl_api_key}"}
