"""
Identifier discovery from page markup.
Finds Optimizely project ids referenced by script tags and inline script text.
"""

import re

from bs4 import BeautifulSoup


SCRIPT_SRC_PATTERNS = [
    re.compile(r'cdn\.optimizely\.com/js/(\d+)\.js', re.IGNORECASE),
    re.compile(r'cdn\.optimizely\.com/public/(\d+)/', re.IGNORECASE),
    re.compile(r'cdn\.optimizely\.com/(?:datafiles|json)/(\d+)\.json', re.IGNORECASE),
]

INLINE_PATTERNS = [
    re.compile(r'["\']?projectId["\']?\s*[:=]\s*["\']?(\d{6,})'),
    re.compile(r'cdn\.optimizely\.com/js/(\d+)\.js', re.IGNORECASE),
]


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def discover_identifiers(html: str | BeautifulSoup) -> list[str]:
    """
    Find project identifiers referenced by a page.

    Args:
        html: Raw HTML or a parsed document

    Returns:
        Ordered unique identifiers; script URLs first, then inline mentions
    """
    soup = html if isinstance(html, BeautifulSoup) else parse_html(html)
    found: list[str] = []

    def add(identifier: str) -> None:
        if identifier not in found:
            found.append(identifier)

    for script in soup.find_all("script", src=True):
        src = script.get("src") or ""
        for pattern in SCRIPT_SRC_PATTERNS:
            match = pattern.search(src)
            if match:
                add(match.group(1))

    for link in soup.find_all("link", href=True):
        href = link.get("href") or ""
        for pattern in SCRIPT_SRC_PATTERNS:
            match = pattern.search(href)
            if match:
                add(match.group(1))

    for script in soup.find_all("script", src=False):
        content = script.string or script.get_text() or ""
        for pattern in INLINE_PATTERNS:
            for match in pattern.finditer(content):
                add(match.group(1))

    return found
