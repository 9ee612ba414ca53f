"""
Heuristic Text Parser.
Layered, tolerant extraction of configuration entities from (usually minified)
snippet script text.

Every strategy is a pure function of the original text. Strategies run from most
to least structured; each only adds entities the previous ones did not find, and
a failure in one never prevents the next from running.
"""

import json
import re
from typing import Any, Callable

from ..core.errors import ParseError, ExtractionError
from ..core.models import (
    Audience,
    ConfigError,
    EntityFragment,
    Event,
    Experiment,
    ExperimentKind,
    ExperimentStatus,
    Page,
)
from .structured import experiment_from_dict, iter_entities


# ==============================================================================
# Patterns
# ==============================================================================

def _key(name: str) -> str:
    """A JS object key, quoted or not."""
    return rf'["\']?{name}["\']?'


# A quoted string value in either quote style; the text lands in group 1 or 2
QUOTED = r'(?:"((?:[^"\\]|\\.)*)"|\'((?:[^\'\\]|\\.)*)\')'

SCALAR_PATTERNS = {
    "identifier": re.compile(_key("projectId") + r'\s*[:=]\s*["\']?(\d+)'),
    "account_id": re.compile(_key("accountId") + r'\s*[:=]\s*["\']?(\d+)'),
    "revision": re.compile(_key("revision") + r'\s*[:=]\s*["\']?(\d+)'),
}

EXPERIMENTS_ARRAY = re.compile(_key("experiments") + r'\s*:\s*\[')

FLAT_OBJECT = re.compile(r'\{[^{}]{1,800}\}')
OBJECT_ID = re.compile(r'(?:^|[{,\s])' + _key("id") + r'\s*:\s*["\']?(\d+)')
OBJECT_NAME = re.compile(_key("name") + r'\s*:\s*' + QUOTED)
OBJECT_STATUS = re.compile(_key("status") + r'\s*:\s*["\']([A-Za-z_ ]+)["\']')

KEYED_SECTIONS = ("campaigns", "audiences", "pages", "events")
KEYED_ENTRY = re.compile(
    r'["\'](\d+)["\']\s*:\s*\{[^{}]*?' + _key("name") + r'\s*:\s*' + QUOTED
)

GENERIC_PAIRS = (
    re.compile(
        r'(?:^|[{,\s])' + _key("id") + r'\s*:\s*["\']?(\d{6,})["\']?\s*,\s*'
        + _key("name") + r'\s*:\s*' + QUOTED
    ),
    re.compile(r'["\'](\d{6,})["\']\s*:\s*\{\s*' + _key("name") + r'\s*:\s*' + QUOTED),
)
CONTEXT_WINDOW = 100
CONTEXT_TOKENS = ("experiment", "variation", "campaign", "test")


def _quoted_text(match: re.Match, first_group: int) -> str:
    value = match.group(first_group)
    if value is None:
        value = match.group(first_group + 1) or ""
    return value.replace('\\"', '"').replace("\\'", "'")


# ==============================================================================
# Bracket matching
# ==============================================================================

BRACKET_PAIRS = {"[": "]", "{": "}"}


def find_balanced_end(text: str, open_index: int) -> int | None:
    """
    Find the end of the bracketed span opening at `open_index`.
    Brackets inside string literals are ignored.

    Returns:
        Index one past the matching close bracket, or None if unbalanced
    """
    if open_index >= len(text) or text[open_index] not in BRACKET_PAIRS:
        return None

    expected: list[str] = []
    quote: str | None = None
    escaped = False

    for index in range(open_index, len(text)):
        char = text[index]

        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue

        if char in ('"', "'"):
            quote = char
        elif char in BRACKET_PAIRS:
            expected.append(BRACKET_PAIRS[char])
        elif char in ("]", "}"):
            if not expected or expected.pop() != char:
                return None
            if not expected:
                return index + 1

    return None


# ==============================================================================
# Strategies
# ==============================================================================

def extract_scalar_fields(text: str) -> dict[str, str]:
    """Strategy 1: project id, account id and revision."""
    found: dict[str, str] = {}
    for field, pattern in SCALAR_PATTERNS.items():
        match = pattern.search(text)
        if match:
            found[field] = match.group(1)
    return found


def extract_experiment_array(text: str) -> list[Experiment]:
    """
    Strategy 2: strict parse of `"experiments": [...]` arrays.

    Raises:
        ParseError: If arrays were found but none parsed
    """
    experiments: list[Experiment] = []
    failures: list[str] = []

    for match in EXPERIMENTS_ARRAY.finditer(text):
        open_index = match.end() - 1
        end = find_balanced_end(text, open_index)
        if end is None:
            failures.append(f"unbalanced experiments array at offset {open_index}")
            continue
        try:
            items = json.loads(text[open_index:end])
        except json.JSONDecodeError as e:
            failures.append(f"experiments array at offset {open_index}: {e.msg}")
            continue
        for experiment_id, data in iter_entities(items):
            experiments.append(experiment_from_dict(experiment_id, data))

    if failures and not experiments:
        raise ParseError("; ".join(failures))
    return experiments


def extract_flat_experiments(text: str, seen_ids: set[str] | None = None) -> list[Experiment]:
    """Strategy 3: flat `{id, name, status}` objects anywhere in the text."""
    seen = set(seen_ids or ())
    experiments: list[Experiment] = []

    for match in FLAT_OBJECT.finditer(text):
        body = match.group(0)
        id_match = OBJECT_ID.search(body)
        name_match = OBJECT_NAME.search(body)
        status_match = OBJECT_STATUS.search(body)
        if not (id_match and name_match and status_match):
            continue

        experiment_id = id_match.group(1)
        if experiment_id in seen:
            continue
        seen.add(experiment_id)

        raw_status = status_match.group(1)
        experiments.append(Experiment(
            id=experiment_id,
            name=_quoted_text(name_match, 1),
            status=ExperimentStatus.parse(raw_status),
            raw_status=raw_status,
            kind=ExperimentKind.AB_TEST,
        ))

    return experiments


def extract_keyed_section(text: str, section: str) -> list[tuple[str, str]]:
    """
    Strategy 4: `"section": {"<id>": {"name": "..."}, ...}` blocks.
    Entries are matched within each section's own span only.

    Returns:
        Ordered, de-duplicated (id, name) pairs
    """
    anchor = re.compile(_key(section) + r'\s*:\s*\{')
    pairs: dict[str, str] = {}

    for match in anchor.finditer(text):
        open_index = match.end() - 1
        end = find_balanced_end(text, open_index)
        if end is None:
            continue
        span = text[open_index:end]
        for entry in KEYED_ENTRY.finditer(span):
            pairs.setdefault(entry.group(1), _quoted_text(entry, 2))

    return list(pairs.items())


def extract_generic_candidates(text: str, excluded_ids: set[str] | None = None) -> list[tuple[str, str]]:
    """
    Strategy 5: long numeric id + name pairs anywhere in the text.
    A pair is kept only when the preceding context mentions an experiment-like token.
    """
    excluded = set(excluded_ids or ())
    candidates: dict[str, str] = {}

    for pattern in GENERIC_PAIRS:
        for match in pattern.finditer(text):
            candidate_id = match.group(1)
            if candidate_id in excluded or candidate_id in candidates:
                continue
            start = match.start()
            context = text[max(0, start - CONTEXT_WINDOW):start].lower()
            if not any(token in context for token in CONTEXT_TOKENS):
                continue
            candidates[candidate_id] = _quoted_text(match, 2)

    return list(candidates.items())


# ==============================================================================
# Parser
# ==============================================================================

class HeuristicTextParser:
    """
    Best-effort extraction of a configuration fragment from script text.
    Never raises for bad input; problems are recorded on the fragment.
    """

    def parse(self, text: str, source: str = "", identifier: str | None = None) -> EntityFragment:
        """
        Run every strategy in order over the original text.

        Args:
            text: Script text
            source: Source tag for provenance
            identifier: Identifier the text was fetched for

        Returns:
            Entity fragment
        """
        fragment = EntityFragment(source=source, identifier=identifier)
        if not text:
            return fragment

        seen_experiments: set[str] = set()

        def add_experiments(experiments: list[Experiment]) -> None:
            for experiment in experiments:
                if experiment.id in seen_experiments:
                    continue
                seen_experiments.add(experiment.id)
                if source:
                    experiment.sources = [source]
                fragment.experiments.append(experiment)

        def scalars() -> None:
            fields = extract_scalar_fields(text)
            fragment.identifier = fields.get("identifier") or fragment.identifier
            fragment.account_id = fields.get("account_id")
            fragment.revision = fields.get("revision")

        def structured_array() -> None:
            add_experiments(extract_experiment_array(text))

        def flat_objects() -> None:
            add_experiments(extract_flat_experiments(text, seen_experiments))

        def keyed_sections() -> None:
            for section in KEYED_SECTIONS:
                self._run(fragment, source, f"keyed section {section}",
                          lambda s=section: self._add_section(fragment, s, text, add_experiments))

        def generic() -> None:
            excluded = seen_experiments | {
                entity.id
                for collection in (fragment.pages, fragment.events, fragment.audiences)
                for entity in collection
            }
            add_experiments([
                Experiment(id=candidate_id, name=name, kind=ExperimentKind.AB_TEST)
                for candidate_id, name in extract_generic_candidates(text, excluded)
            ])

        self._run(fragment, source, "scalar fields", scalars)
        self._run(fragment, source, "experiments array", structured_array)
        self._run(fragment, source, "flat objects", flat_objects)
        keyed_sections()
        self._run(fragment, source, "generic fallback", generic)

        return fragment

    def _add_section(
        self,
        fragment: EntityFragment,
        section: str,
        text: str,
        add_experiments: Callable[[list[Experiment]], None],
    ) -> None:
        pairs = extract_keyed_section(text, section)
        provenance = [fragment.source] if fragment.source else []

        if section == "campaigns":
            add_experiments([
                Experiment(id=entity_id, name=name, kind=ExperimentKind.CAMPAIGN)
                for entity_id, name in pairs
            ])
            return

        model: Any = {"audiences": Audience, "pages": Page, "events": Event}[section]
        collection = getattr(fragment, section)
        present = {entity.id for entity in collection}
        for entity_id, name in pairs:
            if entity_id not in present:
                present.add(entity_id)
                collection.append(model(id=entity_id, name=name, sources=list(provenance)))

    def _run(self, fragment: EntityFragment, source: str, strategy: str, func: Callable[[], None]) -> None:
        """Run one strategy, isolating its failure."""
        try:
            func()
        except ParseError as e:
            fragment.errors.append(ConfigError(
                source=source, message=f"{strategy}: {e}", kind="parse",
                identifier=fragment.identifier,
            ))
        except Exception as e:
            error = ExtractionError(f"{strategy}: {e}", source=source)
            fragment.errors.append(ConfigError.from_exception(error, source, fragment.identifier))
