"""
Pydantic models for the Experiment Configuration Inspector.
Defines the canonical configuration schema, source payloads and inspection reports.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Literal, Any
from pydantic import BaseModel, Field, field_validator

from .errors import FetchError


# ==============================================================================
# Enumerations
# ==============================================================================

class SourceTag(str, Enum):
    """Where a raw payload came from."""
    LIVE_RUNTIME = "LiveRuntimeState"
    REST_API = "RestApi"
    SNIPPET = "SnippetScript"
    DATAFILE = "JsonDatafile"


class LoadedVia(str, Enum):
    """Provenance of the resolved configuration."""
    DIRECT = "Direct"
    TAG_MANAGER = "TagManager"
    KNOWN_IDENTIFIER = "KnownIdentifier"
    REST_API = "RestApi"
    SNIPPET_SCRIPT = "SnippetScript"
    JSON_DATAFILE = "JsonDatafile"
    UNKNOWN = "Unknown"

    @classmethod
    def from_source(cls, source: str) -> "LoadedVia":
        return {
            SourceTag.LIVE_RUNTIME.value: cls.DIRECT,
            SourceTag.REST_API.value: cls.REST_API,
            SourceTag.SNIPPET.value: cls.SNIPPET_SCRIPT,
            SourceTag.DATAFILE.value: cls.JSON_DATAFILE,
        }.get(str(getattr(source, "value", source)), cls.UNKNOWN)


class ExperimentStatus(str, Enum):
    """Experiment status, normalized case-insensitively."""
    RUNNING = "running"
    PAUSED = "paused"
    ACTIVE = "active"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ExperimentStatus | None":
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower().replace(" ", "_")
        if text == "launched":
            return cls.RUNNING
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


class ExperimentKind(str, Enum):
    AB_TEST = "ABTest"
    CAMPAIGN = "Campaign"
    FEATURE_FLAG = "FeatureFlag"


# ==============================================================================
# Entity Models
# ==============================================================================

class Entity(BaseModel):
    """Common shape of every configuration entity. Identity is `id`."""
    id: str
    name: str | None = None
    sources: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)


class Variation(BaseModel):
    """A single arm of an experiment."""
    id: str
    name: str | None = None
    key: str | None = None
    weight: float | None = None  # 0-100
    is_control: bool | None = None
    is_current: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        return str(value)


class Experiment(Entity):
    """An A/B test, campaign or feature-flag experiment."""
    key: str | None = None
    status: ExperimentStatus | None = None
    raw_status: str | None = None
    kind: ExperimentKind | None = None
    description: str | None = None
    campaign_id: str | None = None

    # Allocation (0-100)
    traffic_percent: float | None = None
    holdback_percent: float | None = None

    audience_ids: list[str] = Field(default_factory=list)
    variations: list[Variation] = Field(default_factory=list)
    metrics: list[Any] = Field(default_factory=list)
    url_targeting: Any = None

    # Derived from runtime assignment state
    is_active: bool | None = None
    current_variation_id: str | None = None

    @field_validator("audience_ids", mode="before")
    @classmethod
    def _coerce_audience_ids(cls, value: Any) -> list[str]:
        if not value:
            return []
        if isinstance(value, (str, int)):
            return [str(value)]
        return [str(v) for v in value if v is not None and not isinstance(v, (dict, list))]


class Audience(Entity):
    conditions: Any = None


class Page(Entity):
    api_name: str | None = None
    category: str | None = None
    edit_url: str | None = None


class Event(Entity):
    key: str | None = None
    api_name: str | None = None
    category: str | None = None
    experiment_ids: list[str] = Field(default_factory=list)


class Feature(Entity):
    key: str | None = None
    experiment_ids: list[str] = Field(default_factory=list)
    rollout_id: str | None = None


class ConfigError(BaseModel):
    """A non-fatal error recorded during resolution."""
    source: str
    message: str
    kind: Literal["fetch", "unauthorized", "timeout", "parse", "extraction", "error"] = "error"
    identifier: str | None = None

    @classmethod
    def from_exception(cls, exc: Exception, source: str, identifier: str | None = None) -> "ConfigError":
        kind = getattr(exc, "kind", "error")
        if kind not in ("fetch", "unauthorized", "timeout", "parse", "extraction"):
            kind = "error"
        return cls(
            source=getattr(exc, "source", "") or source,
            message=str(exc) or exc.__class__.__name__,
            kind=kind,
            identifier=identifier,
        )


class VisitorInfo(BaseModel):
    visitor_id: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


# ==============================================================================
# Configuration
# ==============================================================================

ENTITY_COLLECTIONS = ("experiments", "audiences", "pages", "events", "features")


class Configuration(BaseModel):
    """
    Canonical configuration record for one page.
    Consumers must treat every field as optionally absent.
    """
    primary_identifier: str | None = None
    is_known_project: bool = False
    loaded_via: LoadedVia = LoadedVia.UNKNOWN
    identifier_origin: LoadedVia = LoadedVia.UNKNOWN
    resolved_identifiers: list[str] = Field(default_factory=list)

    account_id: str | None = None
    revision: str | None = None
    visitor: VisitorInfo | None = None

    experiments: list[Experiment] = Field(default_factory=list)
    audiences: list[Audience] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    features: list[Feature] = Field(default_factory=list)

    errors: list[ConfigError] = Field(default_factory=list)

    @property
    def detected(self) -> bool:
        return bool(self.resolved_identifiers) or any(
            getattr(self, name) for name in ENTITY_COLLECTIONS
        )

    def running_experiments(self) -> list[Experiment]:
        """Experiments currently serving traffic."""
        return [
            e for e in self.experiments
            if e.status in (ExperimentStatus.RUNNING, ExperimentStatus.ACTIVE)
        ]


class EntityFragment(BaseModel):
    """Entities extracted from a single payload, before merging."""
    source: str = ""
    identifier: str | None = None
    account_id: str | None = None
    revision: str | None = None
    visitor: VisitorInfo | None = None

    experiments: list[Experiment] = Field(default_factory=list)
    audiences: list[Audience] = Field(default_factory=list)
    pages: list[Page] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    features: list[Feature] = Field(default_factory=list)

    errors: list[ConfigError] = Field(default_factory=list)

    @property
    def has_experiments(self) -> bool:
        return bool(self.experiments)

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in ENTITY_COLLECTIONS)


class RuntimeAssignmentState(BaseModel):
    """Current visitor's assignments. Never merged into a Configuration."""
    active_experiment_ids: set[str] = Field(default_factory=set)
    variation_map: dict[str, str] = Field(default_factory=dict)


# ==============================================================================
# Source Payloads
# ==============================================================================

class RawPayload(BaseModel):
    """Unparsed data returned by a source fetcher."""
    source: str
    identifier: str | None = None
    kind: Literal["runtime", "json", "text", "listings"]
    content: Any = None
    url: str | None = None
    # Partial failures that did not prevent the payload from being produced
    errors: list[ConfigError] = Field(default_factory=list)


@dataclass
class FetchResult:
    """Outcome of one fetcher for one identifier."""
    source: str
    identifier: str | None
    payload: RawPayload | None = None
    error: FetchError | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.payload is not None


# ==============================================================================
# Inspection Report Models
# ==============================================================================

class RuntimeSnapshot(BaseModel):
    """
    Raw runtime namespaces captured from a live page.
    Each namespace is None when absent; `errors` maps namespace → message.
    """
    state: dict[str, Any] | None = None
    data: dict[str, Any] | None = None
    visitor: dict[str, Any] | None = None
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def project_id(self) -> str | None:
        if isinstance(self.data, dict) and self.data.get("projectId") not in (None, ""):
            return str(self.data["projectId"])
        return None


class PageInfo(BaseModel):
    title: str = ""
    url: str = ""


class AnalyticsRequest(BaseModel):
    url: str
    method: str = "GET"


class ShopifyInfo(BaseModel):
    detected: bool = True
    shop: dict[str, Any] | None = None
    theme: dict[str, Any] | None = None
    checkout: dict[str, Any] | None = None
    page: dict[str, Any] | None = None
    product: dict[str, Any] | None = None
    customer: dict[str, Any] | None = None
    error: str | None = None


class GA4Info(BaseModel):
    detected: bool = False
    measurement_ids: list[str] = Field(default_factory=list)
    gtm_containers: list[str] = Field(default_factory=list)
    data_layer: list[Any] = Field(default_factory=list)
    error: str | None = None


class InspectionReport(BaseModel):
    """Everything learned about one page."""
    success: bool = True
    page: PageInfo = Field(default_factory=PageInfo)
    optimizely: Configuration = Field(default_factory=Configuration)
    shopify: ShopifyInfo | None = None
    ga4: GA4Info = Field(default_factory=GA4Info)
    running_experiment_ids: list[str] = Field(default_factory=list)
    analytics_requests: list[AnalyticsRequest] = Field(default_factory=list)
    screenshot: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)
