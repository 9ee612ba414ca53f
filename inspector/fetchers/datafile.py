"""
JSON datafile source.
Tries each datafile URL candidate in order; the first 2xx response wins.
"""

import json

import httpx

from ..core.config import settings
from ..core.errors import FetchError, ParseError
from ..core.models import ConfigError, RawPayload, SourceTag
from .base import SourceFetcher, FetchContext


class DatafileFetcher(SourceFetcher):
    """Downloads a structured datafile for a project."""

    source = SourceTag.DATAFILE

    def __init__(
        self,
        url_templates: list[str] | None = None,
        cdn_base_url: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(timeout if timeout is not None else settings.datafile_timeout)
        self.url_templates = list(url_templates or settings.datafile_url_templates)
        self.cdn_base_url = (cdn_base_url or settings.cdn_base_url).rstrip("/")

    def candidate_urls(self, identifier: str) -> list[str]:
        return [
            template.format(cdn=self.cdn_base_url, identifier=identifier)
            for template in self.url_templates
        ]

    async def _fetch(self, identifier: str | None, context: FetchContext) -> RawPayload:
        failures: list[str] = []

        async with self._client(context) as client:
            for url in self.candidate_urls(identifier):
                try:
                    response = await self._get(client, url)
                except FetchError as e:
                    failures.append(e.message)
                    continue
                except httpx.HTTPError as e:
                    failures.append(f"Request failed for {url}: {e}")
                    continue
                return self._to_payload(identifier, url, response.text)

        raise FetchError(
            "No datafile candidate succeeded: " + "; ".join(failures),
            source=self.name,
        )

    def _to_payload(self, identifier: str, url: str, body: str) -> RawPayload:
        """
        Wrap a 2xx body. Malformed JSON is kept as text so the heuristic
        parser can still extract from it.
        """
        try:
            content = json.loads(body)
            if not isinstance(content, dict):
                raise ParseError("Datafile root is not an object", source=self.name)
        except (json.JSONDecodeError, ParseError) as e:
            error = e if isinstance(e, ParseError) else ParseError(
                f"Malformed datafile JSON: {e.msg}", source=self.name
            )
            return RawPayload(
                source=self.name,
                identifier=identifier,
                kind="text",
                content=body,
                url=url,
                errors=[ConfigError.from_exception(error, self.name, identifier)],
            )

        return RawPayload(
            source=self.name,
            identifier=identifier,
            kind="json",
            content=content,
            url=url,
        )
