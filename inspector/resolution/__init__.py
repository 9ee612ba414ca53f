"""Resolution module - merge engine, known-identifier policy and orchestrator."""

from .merge import ConfigurationMerger, merge, normalize_percent
from .policy import KnownIdentifierPolicy
from .orchestrator import ResolutionOrchestrator, ResolutionState

__all__ = [
    "ConfigurationMerger",
    "merge",
    "normalize_percent",
    "KnownIdentifierPolicy",
    "ResolutionOrchestrator",
    "ResolutionState",
]
