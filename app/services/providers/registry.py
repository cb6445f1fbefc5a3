"""Stream topology: which adapters make up each intelligence stream."""

import httpx

from app.core.config import Settings
from app.services.providers.apify import GoogleAdsAdapter
from app.services.providers.apify import LinkedInAdsAdapter
from app.services.providers.apify import LinkedInCompanyAdapter
from app.services.providers.base import ProviderAdapter
from app.services.providers.firecrawl import WebsiteCrawlAdapter
from app.services.providers.moz import MozDomainMetricsAdapter
from app.services.providers.moz import MozKeywordsAdapter
from app.services.providers.moz import MozTopPagesAdapter
from app.services.providers.spyfu import SpyFuAdHistoryAdapter
from app.services.providers.spyfu import SpyFuPpcKeywordsAdapter
from app.services.providers.youtube import YouTubeChannelAdapter

SOCIAL = "social"
ORGANIC = "organic"
PAID = "paid"

STREAM_NAMES = (SOCIAL, ORGANIC, PAID)

# Stream that receives the crawled website pages
CRAWL_STREAM = ORGANIC


def build_streams(
    settings: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> dict[str, list[ProviderAdapter]]:
    timeout = settings.provider_timeout
    return {
        SOCIAL: [
            LinkedInCompanyAdapter(timeout=timeout, transport=transport),
            YouTubeChannelAdapter(timeout=timeout, transport=transport),
        ],
        ORGANIC: [
            MozDomainMetricsAdapter(timeout=timeout, transport=transport),
            MozKeywordsAdapter(timeout=timeout, transport=transport),
            MozTopPagesAdapter(timeout=timeout, transport=transport),
        ],
        PAID: [
            LinkedInAdsAdapter(timeout=timeout, transport=transport),
            GoogleAdsAdapter(timeout=timeout, transport=transport),
            SpyFuPpcKeywordsAdapter(timeout=timeout, transport=transport, proxy_url=settings.spyfu_proxy_url),
            SpyFuAdHistoryAdapter(timeout=timeout, transport=transport, proxy_url=settings.spyfu_proxy_url),
        ],
    }


def build_crawler(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> WebsiteCrawlAdapter:
    return WebsiteCrawlAdapter(
        timeout=settings.provider_timeout,
        transport=transport,
        max_pages=settings.crawl_max_pages,
        poll_interval=settings.crawl_poll_interval,
    )
