"""
Structured payload parser.
Turns runtime-state snapshots, JSON datafiles and REST listings into entity fragments.

Values are kept on their source scale; basis-point normalization happens when
fragments are merged.
"""

import json
from typing import Any, Iterator

from ..core.errors import ParseError, ExtractionError
from ..core.models import (
    Audience,
    ConfigError,
    EntityFragment,
    Event,
    Experiment,
    ExperimentKind,
    ExperimentStatus,
    Feature,
    Page,
    RawPayload,
    RuntimeAssignmentState,
    Variation,
    VisitorInfo,
)


# ==============================================================================
# Shared builders
# ==============================================================================

def iter_entities(container: Any, *id_keys: str) -> Iterator[tuple[str, dict[str, Any]]]:
    """
    Iterate (id, entity) pairs from either a keyed map or a list of objects.

    Args:
        container: `{"<id>": {...}}` or `[{"id": ...}, ...]`
        id_keys: Keys holding the id in list items (defaults to "id")
    """
    id_keys = id_keys or ("id",)

    if isinstance(container, dict):
        for key, value in container.items():
            if isinstance(value, dict):
                yield str(key), value
    elif isinstance(container, list):
        for item in container:
            if not isinstance(item, dict):
                continue
            for id_key in id_keys:
                if item.get(id_key) not in (None, ""):
                    yield str(item[id_key]), item
                    break


def as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def first_present(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return None


def variation_from_dict(variation_id: str, data: dict[str, Any]) -> Variation:
    is_control = first_present(data, "isControl", "is_control")
    return Variation(
        id=variation_id,
        name=as_text(first_present(data, "name", "key")),
        key=as_text(data.get("key")),
        weight=as_number(data.get("weight")),
        is_control=bool(is_control) if is_control is not None else None,
    )


def experiment_from_dict(
    experiment_id: str,
    data: dict[str, Any],
    source: str = "",
    kind: ExperimentKind = ExperimentKind.AB_TEST,
) -> Experiment:
    """Build an Experiment from the camelCase object shapes used by snippets and runtime state."""
    raw_status = as_text(data.get("status"))

    return Experiment(
        id=experiment_id,
        name=as_text(data.get("name")),
        key=as_text(data.get("key")),
        status=ExperimentStatus.parse(raw_status),
        raw_status=raw_status,
        kind=kind,
        campaign_id=as_text(first_present(data, "campaignId", "layerId")),
        traffic_percent=as_number(first_present(data, "percentageIncluded", "trafficAllocation")),
        holdback_percent=as_number(data.get("holdback")),
        audience_ids=data.get("audienceIds") or [],
        variations=[
            variation_from_dict(vid, v)
            for vid, v in iter_entities(data.get("variations"), "id", "variation_id")
        ],
        metrics=data.get("metrics") or [],
        url_targeting=first_present(data, "urlTargeting", "url_targeting"),
        sources=[source] if source else [],
    )


def _named(cls: type, entity_id: str, data: dict[str, Any], source: str, **fields: Any):
    return cls(
        id=entity_id,
        name=as_text(first_present(data, "name", "key")),
        sources=[source] if source else [],
        **fields,
    )


def _id_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


# ==============================================================================
# Parser
# ==============================================================================

class StructuredParser:
    """
    Parses structured payloads: runtime state, JSON datafiles and REST listings.
    """

    def parse(self, payload: RawPayload) -> EntityFragment:
        """
        Parse a structured payload into an entity fragment.

        Raises:
            ParseError: If the payload is not a structured kind or has the wrong shape
        """
        if payload.kind == "runtime":
            fragment, _ = self.parse_runtime(payload.content, source=payload.source)
        elif payload.kind == "json":
            fragment = self.parse_datafile(payload.content, source=payload.source)
        elif payload.kind == "listings":
            fragment = self.parse_listings(payload.content, source=payload.source)
        else:
            raise ParseError(f"Not a structured payload: {payload.kind}", source=payload.source)

        if fragment.identifier is None:
            fragment.identifier = payload.identifier
        fragment.errors = list(payload.errors) + fragment.errors
        return fragment

    # ------------------------------------------------------------------
    # Live runtime state
    # ------------------------------------------------------------------

    def parse_runtime(
        self,
        content: dict[str, Any],
        source: str = "LiveRuntimeState",
    ) -> tuple[EntityFragment, RuntimeAssignmentState | None]:
        """
        Parse the `state`, `data` and `visitor` namespaces independently.
        A failing namespace is recorded and never blocks the others.

        Args:
            content: Snapshot with optional state/data/visitor keys and an errors map
            source: Source tag

        Returns:
            (fragment, assignment state or None when `state` is unavailable)
        """
        if not isinstance(content, dict):
            raise ParseError("Runtime snapshot is not an object", source=source)

        fragment = EntityFragment(source=source)
        assignment: RuntimeAssignmentState | None = None

        for namespace, message in (content.get("errors") or {}).items():
            fragment.errors.append(ConfigError(
                source=source,
                message=f"{namespace}: {message}",
                kind="extraction",
            ))

        if content.get("state") is not None:
            try:
                assignment = self._read_state(content["state"])
            except Exception as e:
                self._record(fragment, source, "state", e)

        if content.get("data") is not None:
            try:
                self._read_data(content["data"], fragment, source)
            except Exception as e:
                self._record(fragment, source, "data", e)

        if content.get("visitor") is not None:
            try:
                fragment.visitor = self._read_visitor(content["visitor"])
            except Exception as e:
                self._record(fragment, source, "visitor", e)

        return fragment, assignment

    def _record(self, fragment: EntityFragment, source: str, namespace: str, exc: Exception) -> None:
        error = ExtractionError(f"{namespace}: {exc}", source=source)
        fragment.errors.append(ConfigError.from_exception(error, source, fragment.identifier))

    def _read_state(self, state: Any) -> RuntimeAssignmentState:
        if not isinstance(state, dict):
            raise ExtractionError(f"unexpected state type {type(state).__name__}")

        active = first_present(state, "activeExperimentIds", "activeExperiments") or []
        if not isinstance(active, (list, tuple, set)):
            raise ExtractionError("activeExperimentIds is not a list")

        variation_map: dict[str, str] = {}
        raw_map = state.get("variationMap") or {}
        if not isinstance(raw_map, dict):
            raise ExtractionError("variationMap is not an object")
        for experiment_id, value in raw_map.items():
            variation_id = value.get("id") if isinstance(value, dict) else value
            if variation_id not in (None, ""):
                variation_map[str(experiment_id)] = str(variation_id)

        return RuntimeAssignmentState(
            active_experiment_ids={str(e) for e in active},
            variation_map=variation_map,
        )

    def _read_data(self, data: Any, fragment: EntityFragment, source: str) -> None:
        if not isinstance(data, dict):
            raise ExtractionError(f"unexpected data type {type(data).__name__}")

        fragment.identifier = as_text(data.get("projectId"))
        fragment.account_id = as_text(data.get("accountId"))
        fragment.revision = as_text(data.get("revision"))
        self._read_keyed_sections(data, fragment, source)

    def _read_keyed_sections(self, data: dict[str, Any], fragment: EntityFragment, source: str) -> None:
        """Keyed maps share one reader so runtime data and web-style datafiles parse alike."""
        sections = {
            "experiments": lambda eid, e: fragment.experiments.append(
                experiment_from_dict(eid, e, source)
            ),
            "campaigns": lambda eid, e: fragment.experiments.append(
                experiment_from_dict(eid, e, source, kind=ExperimentKind.CAMPAIGN)
            ),
            "audiences": lambda eid, e: fragment.audiences.append(
                _named(Audience, eid, e, source, conditions=e.get("conditions"))
            ),
            "pages": lambda eid, e: fragment.pages.append(
                _named(
                    Page, eid, e, source,
                    api_name=as_text(e.get("apiName")),
                    category=as_text(e.get("category")),
                )
            ),
            "events": lambda eid, e: fragment.events.append(
                _named(
                    Event, eid, e, source,
                    api_name=as_text(e.get("apiName")),
                    category=as_text(e.get("category")),
                )
            ),
        }

        for section, add in sections.items():
            try:
                for entity_id, entity in iter_entities(data.get(section)):
                    add(entity_id, entity)
            except Exception as e:
                self._record(fragment, source, f"data.{section}", e)

    def _read_visitor(self, visitor: Any) -> VisitorInfo:
        if not isinstance(visitor, dict):
            raise ExtractionError(f"unexpected visitor type {type(visitor).__name__}")

        attributes = first_present(visitor, "custom", "attributes") or {}
        return VisitorInfo(
            visitor_id=as_text(visitor.get("visitorId")),
            attributes=attributes if isinstance(attributes, dict) else {},
        )

    # ------------------------------------------------------------------
    # JSON datafile
    # ------------------------------------------------------------------

    def parse_datafile(self, content: dict[str, Any], source: str = "JsonDatafile") -> EntityFragment:
        """
        Parse a datafile. Full Stack datafiles use lists with traffic-allocation
        ranges; web-style datafiles use keyed maps like runtime data.
        """
        if not isinstance(content, dict):
            raise ParseError("Datafile root is not an object", source=source)

        fragment = EntityFragment(
            source=source,
            identifier=as_text(content.get("projectId")),
            account_id=as_text(content.get("accountId")),
            revision=as_text(content.get("revision")),
        )

        if isinstance(content.get("experiments"), dict):
            self._read_keyed_sections(content, fragment, source)
            return fragment

        experiments = list(content.get("experiments") or [])
        for group in content.get("groups") or []:
            if isinstance(group, dict):
                experiments.extend(group.get("experiments") or [])

        for experiment_id, data in iter_entities(experiments):
            try:
                fragment.experiments.append(self._datafile_experiment(experiment_id, data, source))
            except Exception as e:
                self._record(fragment, source, f"experiment {experiment_id}", e)

        for audience_id, data in iter_entities(content.get("audiences")):
            fragment.audiences.append(
                _named(Audience, audience_id, data, source, conditions=data.get("conditions"))
            )

        for event_id, data in iter_entities(content.get("events")):
            fragment.events.append(
                _named(
                    Event, event_id, data, source,
                    key=as_text(data.get("key")),
                    experiment_ids=_id_list(data.get("experimentIds")),
                )
            )

        for feature_id, data in iter_entities(content.get("featureFlags")):
            fragment.features.append(
                _named(
                    Feature, feature_id, data, source,
                    key=as_text(data.get("key")),
                    experiment_ids=_id_list(data.get("experimentIds")),
                    rollout_id=as_text(data.get("rolloutId")),
                )
            )

        feature_experiments = {eid for f in fragment.features for eid in f.experiment_ids}
        for experiment in fragment.experiments:
            if experiment.id in feature_experiments:
                experiment.kind = ExperimentKind.FEATURE_FLAG

        return fragment

    def _datafile_experiment(self, experiment_id: str, data: dict[str, Any], source: str) -> Experiment:
        experiment = experiment_from_dict(experiment_id, data, source)
        if experiment.name is None:
            experiment.name = experiment.key

        # Allocation ranges are always basis points here, so convert directly.
        ranges = data.get("trafficAllocation")
        if isinstance(ranges, list):
            weights: dict[str, float] = {}
            previous = 0.0
            for allocation in sorted(
                (r for r in ranges if isinstance(r, dict)),
                key=lambda r: as_number(r.get("endOfRange")) or 0.0,
            ):
                end = as_number(allocation.get("endOfRange")) or 0.0
                entity_id = as_text(allocation.get("entityId"))
                if entity_id:
                    weights[entity_id] = weights.get(entity_id, 0.0) + (end - previous) / 100
                previous = end

            experiment.traffic_percent = previous / 100 if ranges else None
            for variation in experiment.variations:
                if variation.id in weights:
                    variation.weight = weights[variation.id]

        return experiment

    # ------------------------------------------------------------------
    # REST listings
    # ------------------------------------------------------------------

    def parse_listings(self, content: dict[str, list[Any]], source: str = "RestApi") -> EntityFragment:
        """Parse the experiments/audiences/pages/events listings of the REST API."""
        if not isinstance(content, dict):
            raise ParseError("REST listings are not an object", source=source)

        fragment = EntityFragment(source=source)

        for experiment_id, data in iter_entities(content.get("experiments")):
            try:
                fragment.experiments.append(self._rest_experiment(experiment_id, data, source))
            except Exception as e:
                self._record(fragment, source, f"experiment {experiment_id}", e)

        for audience_id, data in iter_entities(content.get("audiences")):
            fragment.audiences.append(
                _named(Audience, audience_id, data, source, conditions=data.get("conditions"))
            )

        for page_id, data in iter_entities(content.get("pages")):
            fragment.pages.append(
                _named(
                    Page, page_id, data, source,
                    api_name=as_text(data.get("api_name")),
                    category=as_text(data.get("category")),
                    edit_url=as_text(data.get("edit_url")),
                )
            )

        for event_id, data in iter_entities(content.get("events")):
            fragment.events.append(
                _named(
                    Event, event_id, data, source,
                    key=as_text(data.get("key")),
                    api_name=as_text(data.get("api_name")),
                    category=as_text(data.get("category")),
                )
            )

        return fragment

    REST_KINDS = {
        "personalization": ExperimentKind.CAMPAIGN,
        "feature": ExperimentKind.FEATURE_FLAG,
    }

    def _rest_experiment(self, experiment_id: str, data: dict[str, Any], source: str) -> Experiment:
        raw_status = as_text(data.get("status"))
        return Experiment(
            id=experiment_id,
            name=as_text(data.get("name")),
            key=as_text(data.get("key")),
            status=ExperimentStatus.parse(raw_status),
            raw_status=raw_status,
            kind=self.REST_KINDS.get(str(data.get("type", "")).lower(), ExperimentKind.AB_TEST),
            description=as_text(data.get("description")),
            campaign_id=as_text(data.get("campaign_id")),
            traffic_percent=as_number(data.get("traffic_allocation")),
            holdback_percent=as_number(data.get("holdback")),
            audience_ids=self._audience_ids(data.get("audience_conditions")),
            variations=[
                variation_from_dict(vid, v)
                for vid, v in iter_entities(data.get("variations"), "variation_id", "id")
            ],
            metrics=data.get("metrics") or [],
            url_targeting=data.get("url_targeting"),
            sources=[source],
        )

    def _audience_ids(self, conditions: Any) -> list[str]:
        """Collect audience ids from a nested `["and", {"audience_id": 1}, ...]` condition tree."""
        found: list[str] = []

        def walk(node: Any) -> None:
            if isinstance(node, dict):
                if node.get("audience_id") is not None:
                    found.append(str(node["audience_id"]))
            elif isinstance(node, list):
                for child in node:
                    walk(child)

        if isinstance(conditions, str):
            try:
                conditions = json.loads(conditions)
            except ValueError:
                return []
        walk(conditions)
        return list(dict.fromkeys(found))
