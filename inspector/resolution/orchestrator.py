"""
Resolution Orchestrator.
Drives one resolution: check identifiers → fetch sources → parse → merge → done.

Fetchers for one identifier run sequentially in priority order and stop once a
source yields experiments. Different identifiers are checked concurrently; their
results are merged in candidate order so the output does not depend on timing.
"""

import asyncio
import json
from dataclasses import dataclass, field
from enum import Enum

import httpx

from ..core.config import settings
from ..core.errors import ParseError
from ..core.models import (
    ConfigError,
    Configuration,
    EntityFragment,
    LoadedVia,
    RawPayload,
    RuntimeAssignmentState,
    RuntimeSnapshot,
)
from ..fetchers import FetchContext, SourceFetcher, default_fetchers
from ..parsers import HeuristicTextParser, StructuredParser
from ..utils.log import log
from .merge import ConfigurationMerger
from .policy import KnownIdentifierPolicy


class ResolutionState(str, Enum):
    INIT = "Init"
    CHECK_IDENTIFIERS = "CheckIdentifiers"
    FETCH_CANDIDATE = "FetchCandidate"
    PARSE_CANDIDATE = "ParseCandidate"
    MERGE_RESULT = "MergeResult"
    DONE = "Done"


@dataclass
class SourceOutcome:
    """What one source produced for one identifier."""
    source: str
    identifier: str | None
    fragment: EntityFragment | None = None
    assignment: RuntimeAssignmentState | None = None
    errors: list[ConfigError] = field(default_factory=list)


class ResolutionOrchestrator:
    """
    Resolves the canonical Configuration for a page.
    There is no failure terminal state: every fetch or parse problem is
    recorded on the Configuration and resolution moves on.
    """

    def __init__(
        self,
        known_identifier: str | None = None,
        fetchers: list[SourceFetcher] | None = None,
        structured_parser: StructuredParser | None = None,
        text_parser: HeuristicTextParser | None = None,
        merger: ConfigurationMerger | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            known_identifier: Identifier always checked (defaults to settings)
            fetchers: Sources in priority order (defaults to all four)
            structured_parser: Parser for runtime/JSON/listing payloads
            text_parser: Parser for script text
            merger: Merge engine
        """
        self.policy = KnownIdentifierPolicy(known_identifier)
        self.fetchers = fetchers if fetchers is not None else default_fetchers()
        self.structured_parser = structured_parser or StructuredParser()
        self.text_parser = text_parser or HeuristicTextParser()
        self.merger = merger or ConfigurationMerger()

    async def resolve(
        self,
        discovered_identifiers: list[str] | None = None,
        runtime: RuntimeSnapshot | None = None,
        api_token: str | None = None,
        client: httpx.AsyncClient | None = None,
        has_tag_manager: bool = False,
    ) -> Configuration:
        """
        Resolve a Configuration.

        Args:
            discovered_identifiers: Identifiers observed in page markup
            runtime: Live runtime namespaces, when the page was rendered
            api_token: REST API credential (optional)
            client: HTTP client to share across fetchers
            has_tag_manager: Whether the page loads a GTM container

        Returns:
            Resolved configuration (possibly empty, never raises for source failures)
        """
        self._transition(ResolutionState.INIT)

        if client is None:
            async with httpx.AsyncClient(
                follow_redirects=True,
                headers={"User-Agent": settings.user_agent},
            ) as owned_client:
                return await self.resolve(
                    discovered_identifiers, runtime, api_token, owned_client, has_tag_manager
                )

        context = FetchContext(client=client, runtime=runtime, api_token=api_token)
        discovered = list(discovered_identifiers or [])
        runtime_identifier = runtime.project_id if runtime else None

        self._transition(ResolutionState.CHECK_IDENTIFIERS)
        candidates: list[str | None] = list(
            self.policy.candidate_identifiers(discovered, runtime_identifier)
        )
        if runtime is not None and runtime_identifier is None:
            # Runtime state that reports no project is read on its own and
            # never credited to a discovered or known identifier
            candidates = [None, *candidates]
        log("orchestrator", f"Checking {len(candidates)} identifier(s): {candidates}")

        outcomes_by_identifier = await asyncio.gather(
            *(self._fetch_identifier(identifier, context) for identifier in candidates)
        )

        config = Configuration()
        assignment: RuntimeAssignmentState | None = None
        resolved: list[str] = []
        primary_source: str | None = None
        primary_found = False
        first_source: str | None = None

        for identifier, outcomes in zip(candidates, outcomes_by_identifier):
            for outcome in outcomes:
                self._transition(ResolutionState.MERGE_RESULT, outcome.source, identifier)
                config = self.merger.merge(
                    config,
                    outcome.fragment or EntityFragment(source=outcome.source, errors=outcome.errors),
                )
                if outcome.assignment is not None and assignment is None:
                    assignment = outcome.assignment

                fragment = outcome.fragment
                if fragment is None:
                    continue
                found_identifier = identifier or fragment.identifier
                if found_identifier and (not fragment.is_empty or fragment.identifier):
                    resolved.append(found_identifier)
                    if first_source is None and not fragment.is_empty:
                        first_source = outcome.source
                if fragment.has_experiments and not primary_found:
                    primary_found = True
                    config.primary_identifier = found_identifier
                    primary_source = outcome.source

        if config.primary_identifier is None:
            config.primary_identifier = resolved[0] if resolved else runtime_identifier
        config.loaded_via = LoadedVia.from_source(primary_source or first_source or "")
        config.identifier_origin = self._identifier_origin(
            config.primary_identifier, discovered, runtime_identifier, has_tag_manager
        )

        if assignment is not None:
            self._apply_assignment(config, assignment)

        self.merger.evaluate_known_project(config, resolved, self.policy.known_identifier)

        self._transition(ResolutionState.DONE)
        log(
            "orchestrator",
            f"Resolved {config.primary_identifier or 'nothing'}: "
            f"{len(config.experiments)} experiments, {len(config.errors)} errors "
            f"(loaded via {config.loaded_via.value})",
        )
        return config

    async def resolve_identifier(
        self,
        identifier: str,
        api_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> Configuration:
        """Resolve a known identifier without a page."""
        return await self.resolve([identifier], api_token=api_token, client=client)

    # ------------------------------------------------------------------
    # Per-identifier pipeline
    # ------------------------------------------------------------------

    async def _fetch_identifier(self, identifier: str | None, context: FetchContext) -> list[SourceOutcome]:
        """Run fetchers in priority order until one yields experiments."""
        outcomes: list[SourceOutcome] = []

        for fetcher in self.fetchers:
            self._transition(ResolutionState.FETCH_CANDIDATE, fetcher.name, identifier)
            result = await fetcher.fetch(identifier, context)

            if result.skipped:
                continue
            if result.error is not None:
                outcomes.append(SourceOutcome(
                    source=result.source,
                    identifier=identifier,
                    errors=[ConfigError.from_exception(result.error, result.source, identifier)],
                ))
                continue

            self._transition(ResolutionState.PARSE_CANDIDATE, fetcher.name, identifier)
            outcome = self._parse(result.payload, identifier)
            outcomes.append(outcome)

            if outcome.fragment is not None and outcome.fragment.has_experiments:
                log("orchestrator", f"{identifier}: {fetcher.name} yielded experiments, skipping lower sources")
                break

        return outcomes

    def _parse(self, payload: RawPayload, identifier: str | None) -> SourceOutcome:
        """Parse a payload; structured failures fall back to heuristic text parsing."""
        outcome = SourceOutcome(source=payload.source, identifier=identifier)

        try:
            if payload.kind == "runtime":
                fragment, outcome.assignment = self.structured_parser.parse_runtime(
                    payload.content, source=payload.source
                )
                fragment.identifier = fragment.identifier or payload.identifier
                fragment.errors = list(payload.errors) + fragment.errors
            elif payload.kind in ("json", "listings"):
                try:
                    fragment = self.structured_parser.parse(payload)
                except ParseError as e:
                    outcome.errors.append(ConfigError.from_exception(e, payload.source, identifier))
                    fragment = self._parse_text(payload, self._as_text(payload.content))
            else:
                fragment = self._parse_text(payload, self._as_text(payload.content))
        except Exception as e:
            outcome.errors.append(ConfigError(
                source=payload.source,
                message=f"Failed to parse payload: {e}",
                kind="parse",
                identifier=identifier,
            ))
            return outcome

        fragment.errors = outcome.errors + fragment.errors
        outcome.fragment = fragment
        return outcome

    def _parse_text(self, payload: RawPayload, text: str) -> EntityFragment:
        fragment = self.text_parser.parse(text, source=payload.source, identifier=payload.identifier)
        fragment.errors = list(payload.errors) + fragment.errors
        return fragment

    def _as_text(self, content: object) -> str:
        if isinstance(content, str):
            return content
        try:
            return json.dumps(content)
        except (TypeError, ValueError):
            return str(content)

    # ------------------------------------------------------------------
    # Derivations
    # ------------------------------------------------------------------

    def _apply_assignment(self, config: Configuration, assignment: RuntimeAssignmentState) -> None:
        """Set is_active / current variation flags from the visitor's assignments."""
        for experiment in config.experiments:
            experiment.is_active = experiment.id in assignment.active_experiment_ids
            experiment.current_variation_id = assignment.variation_map.get(experiment.id)
            for variation in experiment.variations:
                variation.is_current = (
                    experiment.current_variation_id is not None
                    and variation.id == experiment.current_variation_id
                )

    def _identifier_origin(
        self,
        identifier: str | None,
        discovered: list[str],
        runtime_identifier: str | None,
        has_tag_manager: bool,
    ) -> LoadedVia:
        if identifier is None:
            return LoadedVia.UNKNOWN
        if identifier in discovered or identifier == runtime_identifier:
            return LoadedVia.DIRECT
        if self.policy.is_known(identifier):
            return LoadedVia.TAG_MANAGER if has_tag_manager else LoadedVia.KNOWN_IDENTIFIER
        return LoadedVia.UNKNOWN

    def _transition(
        self,
        state: ResolutionState,
        source: str | None = None,
        identifier: str | None = None,
    ) -> None:
        detail = f"({source})" if source else ""
        target = f" {identifier}" if identifier else ""
        log("orchestrator", f"{state.value}{detail}{target}")
