"""
Source Fetcher base class.
Every fetcher is an I/O boundary: it has its own timeout and never raises.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from ..core.config import settings
from ..core.errors import FetchError, FetchTimeoutError, UnauthorizedError
from ..core.models import FetchResult, RawPayload, RuntimeSnapshot, SourceTag
from ..utils.log import log


@dataclass
class FetchContext:
    """Per-resolution inputs shared by all fetchers."""
    client: httpx.AsyncClient | None = None
    runtime: RuntimeSnapshot | None = None
    api_token: str | None = None

    @property
    def has_runtime(self) -> bool:
        return self.runtime is not None


class SourceFetcher(ABC):
    """
    Abstract base class for configuration sources.

    Subclasses implement `_fetch`, which may raise. The public `fetch`
    converts timeouts, HTTP failures and unexpected errors into a FetchResult.
    """

    source: SourceTag

    def __init__(self, timeout: float):
        """
        Initialize fetcher.

        Args:
            timeout: Budget in seconds for one fetch
        """
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.source.value

    def is_applicable(self, identifier: str | None, context: FetchContext) -> bool:
        """Whether this source can run at all. Inapplicable sources are skipped silently."""
        return identifier is not None

    async def fetch(self, identifier: str | None, context: FetchContext) -> FetchResult:
        """
        Fetch the raw payload for an identifier.

        Args:
            identifier: Project identifier (None only for live runtime state)
            context: Shared resolution context

        Returns:
            FetchResult with a payload, an error, or skipped=True
        """
        if not self.is_applicable(identifier, context):
            return FetchResult(source=self.name, identifier=identifier, skipped=True)

        try:
            payload = await asyncio.wait_for(
                self._fetch(identifier, context),
                timeout=self.timeout,
            )
            return FetchResult(source=self.name, identifier=identifier, payload=payload)
        except asyncio.TimeoutError:
            error: FetchError = FetchTimeoutError(
                f"Timed out after {self.timeout:g}s", source=self.name
            )
        except FetchError as e:
            e.source = e.source or self.name
            error = e
        except httpx.HTTPError as e:
            error = FetchError(f"Request failed: {e}", source=self.name)
        except Exception as e:
            error = FetchError(f"Unexpected error: {e}", source=self.name)

        log(self.name, f"{identifier}: {error.message}")
        return FetchResult(source=self.name, identifier=identifier, error=error)

    @abstractmethod
    async def _fetch(self, identifier: str | None, context: FetchContext) -> RawPayload:
        """Retrieve the payload. May raise FetchError or httpx errors."""
        pass

    @asynccontextmanager
    async def _client(self, context: FetchContext) -> AsyncIterator[httpx.AsyncClient]:
        """Use the shared client when there is one, otherwise a short-lived client."""
        if context.client is not None:
            yield context.client
            return
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
        ) as client:
            yield client

    async def _get(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, str | int] | None = None,
    ) -> httpx.Response:
        """
        GET a URL and require a 2xx response.

        Raises:
            UnauthorizedError: On 401/403
            FetchError: On any other non-2xx status
        """
        response = await client.get(url, headers=headers, params=params, timeout=self.timeout)

        if response.status_code in (401, 403):
            raise UnauthorizedError(
                f"unauthorized ({response.status_code}) for {url}",
                source=self.name,
                status_code=response.status_code,
            )
        if not 200 <= response.status_code < 300:
            raise FetchError(
                f"HTTP {response.status_code} for {url}",
                source=self.name,
                status_code=response.status_code,
            )
        return response
