"""Utilities module - logging and URL helpers."""

from .log import log
from .urls import validate_target_url, build_force_variation_url

__all__ = [
    "log",
    "validate_target_url",
    "build_force_variation_url",
]
