"""Uniform adapter contract for external data providers.

An adapter wraps exactly one data source. ``fetch`` always returns a
``Result``: network failures, bad responses and even unexpected bugs inside
the adapter are turned into a typed ``ProviderError`` so the caller can decide
how to degrade.
"""

from __future__ import annotations

import logging
from abc import ABC
from abc import abstractmethod
from collections.abc import Awaitable
from collections.abc import Callable
from typing import Any

import httpx
from pydantic import BaseModel
from pydantic import ValidationError

from app.core.config import Settings
from app.models.intelligence_models import ErrorKind
from app.models.intelligence_models import ProviderError
from app.models.research_models import Subject
from app.models.results import Err
from app.models.results import Ok
from app.models.results import Result

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}
SUBSCRIPTION_HINTS = ("subscription", "upgrade", "plan", "not included", "insufficient credits")


class ProviderCredentials(BaseModel):
    """API credentials for all data providers. Missing values disable the matching adapters."""

    apify_api_key: str | None = None
    youtube_api_key: str | None = None
    moz_api_key: str | None = None
    firecrawl_api_key: str | None = None
    spyfu_api_key: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ProviderCredentials:
        return cls(**{name: getattr(settings, name) for name in cls.model_fields})


class FeatureUnavailableError(Exception):
    """The provider account does not include the requested feature."""


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception raised while talking to a provider onto an ErrorKind."""
    if isinstance(exc, FeatureUnavailableError):
        return ErrorKind.FEATURE_UNAVAILABLE
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 402:
            return ErrorKind.FEATURE_UNAVAILABLE
        if status == 403 and any(hint in exc.response.text.lower() for hint in SUBSCRIPTION_HINTS):
            return ErrorKind.FEATURE_UNAVAILABLE
        if status in RETRYABLE_STATUS_CODES:
            return ErrorKind.TRANSIENT
        return ErrorKind.PERMANENT
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}: {exc.response.text[:200]}"
    if isinstance(exc, httpx.TimeoutException):
        return "request timed out"
    return str(exc) or type(exc).__name__


class ProviderAdapter(ABC):
    """One external data source.

    Class attributes:
        name: Provider identifier used in logs and error entries.
        field: Key under which the payload is stored in its stream.
        required_credentials: ProviderCredentials attributes that must be set.
        empty_payload: Factory for the value used when the feature is unavailable;
            None means the field is simply left out.
    """

    name: str = "provider"
    field: str = "data"
    required_credentials: tuple[str, ...] = ()
    empty_payload: Callable[[], Any] | None = None

    def __init__(self, timeout: float = 60.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self._transport = transport

    def applies_to(self, subject: Subject) -> bool:
        return True

    def is_configured(self, credentials: ProviderCredentials) -> bool:
        return all(getattr(credentials, name, None) for name in self.required_credentials)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def fetch(
        self,
        subject: Subject,
        credentials: ProviderCredentials,
        options: dict[str, Any] | None = None,
    ) -> Result[Any, ProviderError]:
        return await self.guarded(subject, lambda client: self._fetch(client, subject, credentials, options or {}))

    async def guarded(
        self,
        subject: Subject,
        operation: Callable[[httpx.AsyncClient], Awaitable[Any]],
    ) -> Result[Any, ProviderError]:
        """Run *operation* with a fresh client, converting any failure into a classified ProviderError."""
        try:
            async with self.client() as client:
                payload = await operation(client)
        except (httpx.HTTPError, FeatureUnavailableError, ValidationError, ValueError, KeyError) as e:
            kind = classify_error(e)
            logger.warning("%s failed for %s (%s): %s", self.name, subject.name, kind.value, describe_error(e))
            return Err(ProviderError(provider=self.name, kind=kind, message=describe_error(e)))
        except Exception as e:
            logger.exception("Unexpected error in %s adapter for %s", self.name, subject.name)
            return Err(ProviderError(provider=self.name, kind=ErrorKind.PERMANENT, message=f"Unexpected error: {e}"))
        return Ok(payload)

    @abstractmethod
    async def _fetch(
        self,
        client: httpx.AsyncClient,
        subject: Subject,
        credentials: ProviderCredentials,
        options: dict[str, Any],
    ) -> Any:
        """Perform the provider request(s) and return the typed payload. May raise."""


def to_int(value: Any) -> int | None:
    """Coerce counts that providers return as numbers or strings like '12,345'."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        digits = "".join(ch for ch in value if ch.isdigit())
        return int(digits) if digits else None
    return None


def first_present(item: dict[str, Any], *keys: str) -> Any:
    """Return the first non-null value among *keys*; providers are inconsistent about naming."""
    for key in keys:
        if item.get(key) is not None:
            return item[key]
    return None
