"""
Console logging in the component-tagged style used across the inspector.
"""

from datetime import datetime

from ..core.config import settings


def log(component: str, message: str) -> None:
    """Print a message tagged with time and component name."""
    if not settings.log_enabled:
        return
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}")
