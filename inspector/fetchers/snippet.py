"""
Snippet script source - the per-project JavaScript served from the CDN.
"""

from ..core.config import settings
from ..core.errors import FetchError
from ..core.models import RawPayload, SourceTag
from .base import SourceFetcher, FetchContext


class SnippetFetcher(SourceFetcher):
    """Downloads the snippet as opaque text for the heuristic parser."""

    source = SourceTag.SNIPPET

    def __init__(
        self,
        url_template: str | None = None,
        cdn_base_url: str | None = None,
        timeout: float | None = None,
    ):
        super().__init__(timeout if timeout is not None else settings.snippet_timeout)
        self.url_template = url_template or settings.snippet_url_template
        self.cdn_base_url = (cdn_base_url or settings.cdn_base_url).rstrip("/")

    def url_for(self, identifier: str) -> str:
        return self.url_template.format(cdn=self.cdn_base_url, identifier=identifier)

    async def _fetch(self, identifier: str | None, context: FetchContext) -> RawPayload:
        url = self.url_for(identifier)

        async with self._client(context) as client:
            response = await self._get(client, url)

        text = response.text
        if not text or not text.strip():
            raise FetchError(f"Empty snippet body from {url}", source=self.name)

        return RawPayload(
            source=self.name,
            identifier=identifier,
            kind="text",
            content=text,
            url=url,
        )
