"""
Inspection Service.
Validates the target, renders it, discovers identifiers and tags, and resolves
the experimentation configuration into one report.
"""

from typing import Callable

from ..browser import BrowserManager, PageSnapshot
from ..core.config import settings
from ..core.errors import InspectionError, InvalidTargetError, PageFetchError
from ..core.models import ConfigError, Configuration, InspectionReport
from ..resolution import ResolutionOrchestrator
from ..utils.log import log
from ..utils.urls import validate_target_url
from .analytics import detect_ga4, detect_shopify
from .discovery import discover_identifiers, parse_html


class InspectionService:
    """
    Inspects one page per call. No state is shared between calls apart from
    the (stateless) orchestrator.
    """

    def __init__(
        self,
        orchestrator: ResolutionOrchestrator | None = None,
        browser_factory: Callable[[], BrowserManager] | None = None,
    ):
        """
        Initialize service.

        Args:
            orchestrator: Resolution orchestrator (defaults to settings-driven one)
            browser_factory: Creates the render collaborator for each request
        """
        self.orchestrator = orchestrator or ResolutionOrchestrator()
        self.browser_factory = browser_factory or BrowserManager

    async def inspect(self, url: str, api_token: str | None = None) -> InspectionReport:
        """
        Inspect a page.

        Args:
            url: Target page URL
            api_token: Optional REST API credential

        Returns:
            InspectionReport (an empty configuration is still a success)

        Raises:
            InvalidTargetError: If the URL is not an allowed http(s) URL
            PageFetchError: If the page could not be rendered
        """
        target = validate_target_url(url)
        log("inspection", f"Inspecting {target}")

        snapshot = await self._render(target)

        soup = parse_html(snapshot.html)
        discovered = discover_identifiers(soup)
        ga4 = detect_ga4(soup, snapshot.ga4_runtime)
        log("inspection", f"Discovered identifiers: {discovered or 'none'}")

        config = await self.orchestrator.resolve(
            discovered,
            runtime=snapshot.runtime,
            api_token=api_token or settings.optimizely_api_token or None,
            has_tag_manager=bool(ga4.gtm_containers),
        )
        for message in snapshot.errors:
            config.errors.append(ConfigError(source="browser", message=message, kind="extraction"))

        return InspectionReport(
            page=snapshot.page,
            optimizely=config,
            shopify=detect_shopify(snapshot.shopify),
            ga4=ga4,
            running_experiment_ids=[e.id for e in config.running_experiments()],
            analytics_requests=snapshot.analytics_requests,
            screenshot=(
                f"data:image/jpeg;base64,{snapshot.screenshot_b64}"
                if snapshot.screenshot_b64 else None
            ),
        )

    async def inspect_project(self, identifier: str, api_token: str | None = None) -> Configuration:
        """
        Resolve a project by identifier, without rendering a page.

        Raises:
            InvalidTargetError: If the identifier is blank or not numeric
        """
        identifier = (identifier or "").strip()
        if not identifier:
            raise InvalidTargetError("Project identifier is required")
        if not identifier.isdigit():
            raise InvalidTargetError(f"Invalid project identifier: {identifier}")

        log("inspection", f"Resolving project {identifier}")
        return await self.orchestrator.resolve_identifier(
            identifier,
            api_token=api_token or settings.optimizely_api_token or None,
        )

    async def _render(self, url: str) -> PageSnapshot:
        """Render the page; the browser is closed however this exits."""
        try:
            async with self.browser_factory() as browser:
                return await browser.capture(url)
        except InspectionError:
            raise
        except Exception as e:
            raise PageFetchError(f"Browser failure: {e}", source="browser") from e
