"""
Optimizely REST API source.
Runs four independent listing calls; any of them may fail without failing the others.
"""

import asyncio
from typing import Any

import httpx

from ..core.config import settings
from ..core.errors import FetchError, UnauthorizedError
from ..core.models import ConfigError, RawPayload, SourceTag
from .base import SourceFetcher, FetchContext


LISTINGS = ("experiments", "audiences", "pages", "events")


class RestApiFetcher(SourceFetcher):
    """
    Queries the management API for full listings.
    Skipped silently (not an error) when no credential is supplied.
    """

    source = SourceTag.REST_API

    def __init__(
        self,
        base_url: str | None = None,
        page_size: int | None = None,
        timeout: float | None = None,
    ):
        super().__init__(timeout if timeout is not None else settings.rest_api_timeout)
        self.base_url = (base_url or settings.rest_api_base_url).rstrip("/")
        self.page_size = page_size or settings.rest_page_size

    def is_applicable(self, identifier: str | None, context: FetchContext) -> bool:
        return identifier is not None and bool(context.api_token)

    async def _fetch(self, identifier: str | None, context: FetchContext) -> RawPayload:
        headers = {
            "Authorization": f"Bearer {context.api_token}",
            "Accept": "application/json",
        }

        async with self._client(context) as client:
            results = await asyncio.gather(
                *(self._list(client, name, identifier, headers) for name in LISTINGS),
                return_exceptions=True,
            )

        listings: dict[str, list[Any]] = {}
        errors: list[ConfigError] = []
        unauthorized = False

        for name, result in zip(LISTINGS, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                error = result if isinstance(result, FetchError) else FetchError(
                    f"{name}: {result}", source=self.name
                )
                if isinstance(error, UnauthorizedError):
                    unauthorized = True
                errors.append(ConfigError.from_exception(error, self.name, identifier))
                continue
            listings[name] = result

        if not listings:
            reasons = "; ".join(e.message for e in errors)
            if unauthorized:
                raise UnauthorizedError(f"unauthorized: {reasons}", source=self.name)
            raise FetchError(f"All REST listings failed: {reasons}", source=self.name)

        return RawPayload(
            source=self.name,
            identifier=identifier,
            kind="listings",
            content=listings,
            url=self.base_url,
            errors=errors,
        )

    async def _list(
        self,
        client: httpx.AsyncClient,
        name: str,
        identifier: str,
        headers: dict[str, str],
    ) -> list[Any]:
        """
        Fetch one listing.

        Args:
            client: HTTP client
            name: Listing name (experiments, audiences, pages, events)
            identifier: Project ID
            headers: Auth headers

        Returns:
            Listing items
        """
        try:
            response = await self._get(
                client,
                f"{self.base_url}/{name}",
                headers=headers,
                params={"project_id": identifier, "per_page": self.page_size},
            )
        except httpx.HTTPError as e:
            raise FetchError(f"{name}: request failed: {e}", source=self.name)

        try:
            body = response.json()
        except ValueError:
            raise FetchError(f"{name}: malformed JSON body", source=self.name)

        if not isinstance(body, list):
            raise FetchError(f"{name}: expected a list, got {type(body).__name__}", source=self.name)
        return body
