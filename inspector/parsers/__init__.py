"""Parsers module - structured payload parsing and heuristic script-text extraction."""

from .structured import StructuredParser
from .heuristic import (
    HeuristicTextParser,
    find_balanced_end,
    extract_scalar_fields,
    extract_experiment_array,
    extract_flat_experiments,
    extract_keyed_section,
    extract_generic_candidates,
)

__all__ = [
    "StructuredParser",
    "HeuristicTextParser",
    "find_balanced_end",
    "extract_scalar_fields",
    "extract_experiment_array",
    "extract_flat_experiments",
    "extract_keyed_section",
    "extract_generic_candidates",
]
