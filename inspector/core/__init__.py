"""Core module - configuration, errors, and models."""

from .config import settings
from .errors import (
    InspectorError,
    FetchError,
    UnauthorizedError,
    FetchTimeoutError,
    ParseError,
    ExtractionError,
    InspectionError,
    InvalidTargetError,
    PageFetchError,
)
from .models import (
    Configuration,
    EntityFragment,
    Experiment,
    ExperimentKind,
    ExperimentStatus,
    Variation,
    Audience,
    Page,
    Event,
    Feature,
    ConfigError,
    LoadedVia,
    SourceTag,
    RawPayload,
    FetchResult,
    RuntimeAssignmentState,
    RuntimeSnapshot,
    InspectionReport,
)

__all__ = [
    "settings",
    "InspectorError",
    "FetchError",
    "UnauthorizedError",
    "FetchTimeoutError",
    "ParseError",
    "ExtractionError",
    "InspectionError",
    "InvalidTargetError",
    "PageFetchError",
    "Configuration",
    "EntityFragment",
    "Experiment",
    "ExperimentKind",
    "ExperimentStatus",
    "Variation",
    "Audience",
    "Page",
    "Event",
    "Feature",
    "ConfigError",
    "LoadedVia",
    "SourceTag",
    "RawPayload",
    "FetchResult",
    "RuntimeAssignmentState",
    "RuntimeSnapshot",
    "InspectionReport",
]
