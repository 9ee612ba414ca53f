"""Browser module - Playwright rendering and in-page extraction."""

from .manager import BrowserManager, PageSnapshot
from .scripts import EXTRACTION_JS

__all__ = [
    "BrowserManager",
    "PageSnapshot",
    "EXTRACTION_JS",
]
