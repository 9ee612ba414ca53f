"""
Live runtime state source.
Hands the namespaces captured from a rendered page to the structured parser.
"""

from ..core.config import settings
from ..core.errors import FetchError
from ..core.models import RawPayload, SourceTag
from .base import SourceFetcher, FetchContext


class LiveRuntimeFetcher(SourceFetcher):
    """
    Reads in-process runtime state (no network).
    Only applicable when a live execution context was captured and its
    project matches the identifier being checked. State that reports no
    project is read only for the runtime-only candidate (identifier None).
    """

    source = SourceTag.LIVE_RUNTIME

    def __init__(self, timeout: float | None = None):
        super().__init__(timeout if timeout is not None else settings.runtime_timeout)

    def is_applicable(self, identifier: str | None, context: FetchContext) -> bool:
        if context.runtime is None:
            return False
        return identifier == context.runtime.project_id

    async def _fetch(self, identifier: str | None, context: FetchContext) -> RawPayload:
        runtime = context.runtime
        if runtime is None:
            raise FetchError("No live execution context", source=self.name)

        return RawPayload(
            source=self.name,
            identifier=runtime.project_id or identifier,
            kind="runtime",
            content=runtime.model_dump(),
        )
