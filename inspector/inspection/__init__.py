"""Inspection module - identifier discovery, tag detection and the inspection service."""

from .discovery import discover_identifiers
from .analytics import detect_ga4, detect_shopify
from .service import InspectionService

__all__ = [
    "discover_identifiers",
    "detect_ga4",
    "detect_shopify",
    "InspectionService",
]
