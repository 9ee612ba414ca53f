"""
Playwright Browser Manager.
Renders a page, captures its runtime namespaces, HTML, analytics requests and a screenshot.
"""

import base64
from typing import Any

from pydantic import BaseModel, Field
from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Route,
    Request,
    Playwright,
)

from ..core.config import settings
from ..core.errors import PageFetchError
from ..core.models import AnalyticsRequest, PageInfo, RuntimeSnapshot
from ..utils.log import log
from .scripts import EXTRACTION_JS
from .stealth import get_launch_config, get_context_config, apply_stealth


ANALYTICS_DOMAINS = (
    "google-analytics.com",
    "googletagmanager.com",
    "analytics.google.com",
)


class PageSnapshot(BaseModel):
    """Everything the render collaborator hands to the inspection service."""
    page: PageInfo = Field(default_factory=PageInfo)
    html: str = ""
    runtime: RuntimeSnapshot | None = None
    shopify: dict[str, Any] | None = None
    ga4_runtime: dict[str, Any] = Field(default_factory=dict)
    analytics_requests: list[AnalyticsRequest] = Field(default_factory=list)
    screenshot_b64: str | None = None
    errors: list[str] = Field(default_factory=list)


class BrowserManager:
    """
    Manages one Playwright browser session for one inspection request.
    Use as an async context manager so the browser is closed on every exit path.
    """

    def __init__(self, headless: bool | None = None):
        """
        Initialize browser manager.

        Args:
            headless: Run in headless mode (defaults to config)
        """
        self.headless = headless if headless is not None else settings.headless

        self.playwright: Playwright | None = None
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None

        self.analytics_requests: list[AnalyticsRequest] = []

    async def __aenter__(self) -> "BrowserManager":
        # Undo a partial start; __aexit__ never runs if this raises
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def start(self) -> Page:
        """
        Start browser and return page.

        Returns:
            Playwright Page object
        """
        self.playwright = await async_playwright().start()
        self.browser = await self.playwright.chromium.launch(**get_launch_config(self.headless))
        self.context = await self.browser.new_context(**get_context_config())
        self.page = await self.context.new_page()

        await apply_stealth(self.page)
        await self.page.route("**/*", self._route_request)
        self.page.on("request", self._record_request)

        return self.page

    async def stop(self) -> None:
        """Stop browser and cleanup. Safe to call more than once."""
        for name in ("page", "context", "browser"):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                log("browser", f"Failed to close {name}: {e}")
            setattr(self, name, None)

        if self.playwright:
            try:
                await self.playwright.stop()
            except Exception as e:
                log("browser", f"Failed to stop playwright: {e}")
            self.playwright = None

    async def _route_request(self, route: Route) -> None:
        """Abort heavy resources that never carry configuration."""
        if route.request.resource_type in settings.block_resource_types:
            await route.abort()
        else:
            await route.continue_()

    def _record_request(self, request: Request) -> None:
        url = request.url
        if any(domain in url for domain in ANALYTICS_DOMAINS):
            self.analytics_requests.append(AnalyticsRequest(url=url, method=request.method))

    # =========================================================================
    # Capture
    # =========================================================================

    async def capture(self, url: str) -> PageSnapshot:
        """
        Navigate to a URL and capture its state.

        Args:
            url: Validated page URL

        Returns:
            PageSnapshot

        Raises:
            PageFetchError: If the page cannot be loaded
        """
        if not self.page:
            raise RuntimeError("Browser not started")

        try:
            await self.page.goto(url, wait_until="domcontentloaded", timeout=settings.navigation_timeout)
            await self.page.wait_for_timeout(settings.settle_delay_ms)
        except Exception as e:
            raise PageFetchError(f"Failed to load {url}: {e}", source="browser") from e

        snapshot = PageSnapshot(page=PageInfo(title="", url=self.page.url))

        try:
            extracted = await self.page.evaluate(EXTRACTION_JS, settings.max_datalayer_entries)
            self._apply_extraction(snapshot, extracted or {})
        except Exception as e:
            log("browser", f"Runtime extraction failed: {e}")
            snapshot.errors.append(f"runtime extraction: {e}")

        try:
            snapshot.html = await self.page.content()
        except Exception as e:
            snapshot.errors.append(f"html: {e}")

        if not snapshot.page.title:
            try:
                snapshot.page.title = await self.page.title()
            except Exception as e:
                snapshot.errors.append(f"title: {e}")

        snapshot.screenshot_b64 = await self.take_screenshot_base64()
        snapshot.analytics_requests = self.analytics_requests[:settings.max_analytics_requests]
        return snapshot

    def _apply_extraction(self, snapshot: PageSnapshot, extracted: dict[str, Any]) -> None:
        page_info = extracted.get("pageInfo") or {}
        snapshot.page = PageInfo(
            title=page_info.get("title") or "",
            url=page_info.get("url") or snapshot.page.url,
        )

        optimizely = extracted.get("optimizely")
        if isinstance(optimizely, dict):
            snapshot.runtime = RuntimeSnapshot(
                state=optimizely.get("state"),
                data=optimizely.get("data"),
                visitor=optimizely.get("visitor"),
                errors={k: str(v) for k, v in (optimizely.get("errors") or {}).items()},
            )

        snapshot.shopify = extracted.get("shopify")
        snapshot.ga4_runtime = extracted.get("ga4") or {}

    async def take_screenshot_base64(self) -> str | None:
        """
        Take a JPEG screenshot of the viewport.

        Returns:
            Screenshot as base64 string, or None if it failed
        """
        if not self.page:
            return None
        try:
            screenshot = await self.page.screenshot(
                type="jpeg",
                quality=settings.screenshot_quality,
                full_page=False,
            )
        except Exception as e:
            log("browser", f"Screenshot failed: {e}")
            return None
        return base64.b64encode(screenshot).decode()
