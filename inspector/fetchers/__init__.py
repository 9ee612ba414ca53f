"""Fetchers module - independent configuration sources in priority order."""

from .base import SourceFetcher, FetchContext
from .runtime import LiveRuntimeFetcher
from .rest_api import RestApiFetcher
from .snippet import SnippetFetcher
from .datafile import DatafileFetcher


def default_fetchers() -> list[SourceFetcher]:
    """Fetchers in resolution priority order."""
    return [
        LiveRuntimeFetcher(),
        RestApiFetcher(),
        SnippetFetcher(),
        DatafileFetcher(),
    ]


__all__ = [
    "SourceFetcher",
    "FetchContext",
    "LiveRuntimeFetcher",
    "RestApiFetcher",
    "SnippetFetcher",
    "DatafileFetcher",
    "default_fetchers",
]
