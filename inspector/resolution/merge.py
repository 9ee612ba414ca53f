"""
Merge & Dedup Engine - Combines entity fragments from several sources into one Configuration.

Union strategy: an entity is appended the first time its id is seen; later
sources only fill fields the existing entity lacks. Percentages expressed in
basis points are normalized when a fragment is ingested.
"""

from typing import Any
from pydantic import BaseModel

from ..core.models import (
    ENTITY_COLLECTIONS,
    ConfigError,
    Configuration,
    EntityFragment,
    Experiment,
    SourceTag,
    Variation,
)


# Lower value = higher priority
SOURCE_PRIORITY: dict[str, int] = {
    SourceTag.LIVE_RUNTIME.value: 0,
    SourceTag.REST_API.value: 1,
    SourceTag.SNIPPET.value: 2,
    SourceTag.DATAFILE.value: 3,
}

# Never filled from another entity
MERGE_EXCLUDED_FIELDS = {"id", "sources", "variations"}


def normalize_percent(value: float | int | None) -> float | int | None:
    """
    Bring a percentage-like value onto a 0-100 scale.

    Values above 100 are taken to be basis points and divided by 100;
    anything else is already a percentage.
    """
    if value is None:
        return None
    if value > 100:
        return value / 100
    return value


def is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, set, tuple)):
        return len(value) == 0
    return False


def priority_of(source: str | None) -> int:
    return SOURCE_PRIORITY.get(str(getattr(source, "value", source)), len(SOURCE_PRIORITY))


class ConfigurationMerger:
    """
    Merges EntityFragments into a Configuration.
    `merge` never mutates its inputs.
    """

    def merge(
        self,
        existing: Configuration,
        incoming: EntityFragment,
        source_priority: int | None = None,
    ) -> Configuration:
        """
        Merge one fragment into a configuration.

        Args:
            existing: Configuration built so far
            incoming: Fragment from one source
            source_priority: Rank of the incoming source (lower wins). When
                omitted, existing non-null fields are never overwritten

        Returns:
            New merged configuration
        """
        merged = existing.model_copy(deep=True)
        fragment = self._normalized(incoming)

        for name in ("account_id", "revision", "visitor"):
            if is_absent(getattr(merged, name)) and not is_absent(getattr(fragment, name)):
                setattr(merged, name, getattr(fragment, name))

        for collection_name in ENTITY_COLLECTIONS:
            collection = getattr(merged, collection_name)
            index = {entity.id: position for position, entity in enumerate(collection)}

            for entity in getattr(fragment, collection_name):
                if entity.id not in index:
                    index[entity.id] = len(collection)
                    collection.append(entity)
                    continue
                position = index[entity.id]
                collection[position] = self._merge_entity(collection[position], entity, source_priority)

        seen_errors = {self._error_key(e) for e in merged.errors}
        for error in fragment.errors:
            key = self._error_key(error)
            if key not in seen_errors:
                seen_errors.add(key)
                merged.errors.append(error)

        return merged

    def merge_all(self, fragments: list[EntityFragment], base: Configuration | None = None) -> Configuration:
        """Merge fragments in the given (priority) order."""
        config = base or Configuration()
        for fragment in fragments:
            config = self.merge(config, fragment)
        return config

    def evaluate_known_project(
        self,
        config: Configuration,
        resolved_identifiers: list[str],
        known_identifier: str | None,
    ) -> Configuration:
        """
        Set `is_known_project` once every source has been merged.
        True iff any resolved identifier equals the known identifier.
        """
        config.resolved_identifiers = list(dict.fromkeys(i for i in resolved_identifiers if i))
        config.is_known_project = bool(known_identifier) and known_identifier in config.resolved_identifiers
        return config

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _normalized(self, fragment: EntityFragment) -> EntityFragment:
        """Copy a fragment with basis-point fields normalized and provenance stamped."""
        fragment = fragment.model_copy(deep=True)

        for experiment in fragment.experiments:
            experiment.traffic_percent = normalize_percent(experiment.traffic_percent)
            experiment.holdback_percent = normalize_percent(experiment.holdback_percent)
            for variation in experiment.variations:
                variation.weight = normalize_percent(variation.weight)

        if fragment.source:
            for collection_name in ENTITY_COLLECTIONS:
                for entity in getattr(fragment, collection_name):
                    if fragment.source not in entity.sources:
                        entity.sources.append(fragment.source)

        return fragment

    def _merge_entity(self, existing: BaseModel, incoming: BaseModel, priority: int | None) -> BaseModel:
        """
        Fill gaps on the existing entity from the incoming one.

        Only with an explicit priority that outranks every source already
        recorded on the entity do the roles swap, so the incoming values win.
        """
        existing_sources = getattr(existing, "sources", [])
        if priority is not None and existing_sources and priority < min(priority_of(s) for s in existing_sources):
            winner, loser = incoming, existing
        else:
            winner, loser = existing, incoming

        result = winner.model_copy(deep=True)
        self._fill_fields(result, loser)

        if isinstance(result, Experiment) and isinstance(loser, Experiment):
            result.variations = self._merge_variations(result.variations, loser.variations)

        result.sources = list(dict.fromkeys(list(existing_sources) + list(getattr(incoming, "sources", []))))
        return result

    def _merge_variations(self, primary: list[Variation], secondary: list[Variation]) -> list[Variation]:
        merged = [v.model_copy(deep=True) for v in primary]
        index = {v.id: position for position, v in enumerate(merged)}

        for variation in secondary:
            if variation.id not in index:
                index[variation.id] = len(merged)
                merged.append(variation.model_copy(deep=True))
            else:
                self._fill_fields(merged[index[variation.id]], variation)
        return merged

    def _fill_fields(self, target: BaseModel, donor: BaseModel) -> None:
        for name in type(target).model_fields:
            if name in MERGE_EXCLUDED_FIELDS:
                continue
            donor_value = getattr(donor, name, None)
            if is_absent(getattr(target, name)) and not is_absent(donor_value):
                value = donor_value.model_copy(deep=True) if isinstance(donor_value, BaseModel) else donor_value
                setattr(target, name, value)

    def _error_key(self, error: ConfigError) -> tuple:
        return (error.source, error.message, error.kind, error.identifier)


def merge(
    existing: Configuration,
    incoming: EntityFragment,
    source_priority: int | None = None,
) -> Configuration:
    """Module-level shortcut for ConfigurationMerger().merge."""
    return ConfigurationMerger().merge(existing, incoming, source_priority)
