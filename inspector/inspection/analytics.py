"""
Analytics and e-commerce detection.
GA4 measurement ids and GTM containers from markup, plus runtime GA4 and Shopify state.
"""

import re
from typing import Any

from bs4 import BeautifulSoup

from ..core.config import settings
from ..core.models import GA4Info, ShopifyInfo
from .discovery import parse_html


MEASUREMENT_ID_IN_URL = re.compile(r'[?&]id=(G-[A-Z0-9]+)')
CONTAINER_IN_URL = re.compile(r'[?&]id=(GTM-[A-Z0-9]+)')
MEASUREMENT_ID = re.compile(r'\bG-[A-Z0-9]{10,}\b')
CONTAINER_ID = re.compile(r'\bGTM-[A-Z0-9]+\b')


def detect_ga4(html: str | BeautifulSoup, runtime: dict[str, Any] | None = None) -> GA4Info:
    """
    Detect GA4 and Google Tag Manager usage.

    Args:
        html: Page HTML or parsed document
        runtime: GA4 section of the in-page extraction (gtag/dataLayer flags and contents)

    Returns:
        GA4Info
    """
    soup = html if isinstance(html, BeautifulSoup) else parse_html(html)
    runtime = runtime or {}
    info = GA4Info(error=runtime.get("error"))

    def add(target: list[str], value: str) -> None:
        if value not in target:
            target.append(value)

    for script in soup.find_all("script", src=True):
        src = script.get("src") or ""
        if "googletagmanager" not in src:
            continue
        for match in MEASUREMENT_ID_IN_URL.finditer(src):
            add(info.measurement_ids, match.group(1))
        for match in CONTAINER_IN_URL.finditer(src):
            add(info.gtm_containers, match.group(1))

    for script in soup.find_all("script", src=False):
        content = script.string or script.get_text() or ""
        for match in MEASUREMENT_ID.finditer(content):
            add(info.measurement_ids, match.group(0))
        for match in CONTAINER_ID.finditer(content):
            add(info.gtm_containers, match.group(0))

    info.data_layer = list(runtime.get("dataLayerContents") or [])[:settings.max_datalayer_entries]
    info.detected = bool(
        runtime.get("gtag")
        or runtime.get("dataLayer")
        or info.measurement_ids
        or info.gtm_containers
    )
    return info


def detect_shopify(runtime: dict[str, Any] | None) -> ShopifyInfo | None:
    """Build the Shopify report from the in-page extraction, or None when absent."""
    if not runtime:
        return None

    def section(name: str) -> dict[str, Any] | None:
        value = runtime.get(name)
        return value if isinstance(value, dict) else None

    return ShopifyInfo(
        detected=True,
        shop=section("shop"),
        theme=section("theme"),
        checkout=section("checkout"),
        page=section("page"),
        product=section("product"),
        customer=section("customer"),
        error=runtime.get("error"),
    )
