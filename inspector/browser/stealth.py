"""
Browser launch and context configuration.
Keeps rendering fast and masks the most obvious automation signatures.
"""

from typing import Any

from ..core.config import settings


# JavaScript injected before any page script
STEALTH_JS = """
Object.defineProperty(navigator, 'webdriver', {
    get: () => undefined
});

Object.defineProperty(navigator, 'languages', {
    get: () => ['en-US', 'en']
});

window.chrome = window.chrome || { runtime: {} };
"""


def get_launch_config(headless: bool) -> dict[str, Any]:
    """
    Get browser launch configuration.

    Args:
        headless: Run without a window

    Returns:
        Keyword arguments for `chromium.launch`
    """
    return {
        "headless": headless,
        "args": [
            "--disable-blink-features=AutomationControlled",
            "--disable-dev-shm-usage",
            "--disable-gpu",
            "--no-zygote",
            "--no-sandbox",
        ],
        "ignore_default_args": [
            "--enable-automation",
        ],
    }


def get_context_config() -> dict[str, Any]:
    """Get browser context configuration."""
    return {
        "viewport": {"width": 1280, "height": 720},
        "user_agent": settings.user_agent,
        "locale": "en-US",
        "color_scheme": "light",
        "is_mobile": False,
        "has_touch": False,
    }


async def apply_stealth(page) -> None:
    """Add the stealth init script to a page."""
    await page.add_init_script(STEALTH_JS)
