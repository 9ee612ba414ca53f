import pytest

import inspector.parsers.heuristic as heuristic
from inspector.core.errors import ParseError
from inspector.core.models import ExperimentKind, ExperimentStatus
from inspector.parsers.heuristic import (
    HeuristicTextParser,
    extract_experiment_array,
    extract_generic_candidates,
    extract_keyed_section,
    extract_scalar_fields,
    find_balanced_end,
)


SNIPPET = 'window.optimizely=window.optimizely||[];var c={"experiments":[{"id":123,"name":"Banner Test","status":"running"}]};'


def test_find_balanced_end_ignores_brackets_in_strings():
    text = '[{"a":"]"},[1,2]] tail'
    assert find_balanced_end(text, 0) == text.index(" tail")


def test_find_balanced_end_unbalanced():
    assert find_balanced_end('[{"a":1}', 0) is None
    assert find_balanced_end('[1,2}', 0) is None
    assert find_balanced_end("abc", 0) is None


def test_scalar_fields():
    fields = extract_scalar_fields('{"projectId":"8765432",accountId:12,"revision":"77"}')
    assert fields == {"identifier": "8765432", "account_id": "12", "revision": "77"}


def test_snippet_experiments_array():
    fragment = HeuristicTextParser().parse(SNIPPET, source="SnippetScript", identifier="123")

    assert len(fragment.experiments) == 1
    experiment = fragment.experiments[0]
    assert experiment.id == "123"
    assert experiment.name == "Banner Test"
    assert experiment.status == ExperimentStatus.RUNNING
    assert experiment.raw_status == "running"
    assert experiment.sources == ["SnippetScript"]
    assert fragment.errors == []


def test_malformed_array_falls_back_to_flat_objects():
    text = 'x={"experiments":[{"id":"4001","name":"Checkout","status":"Paused"}, oops]}'

    with pytest.raises(ParseError):
        extract_experiment_array(text)

    fragment = HeuristicTextParser().parse(text, source="SnippetScript")

    assert [e.id for e in fragment.experiments] == ["4001"]
    assert fragment.experiments[0].status == ExperimentStatus.PAUSED
    assert [e.kind for e in fragment.errors] == ["parse"]


def test_unbalanced_array_falls_back_to_flat_objects():
    text = 'x={"experiments":[{"id":"4001","name":"A","status":"running"},'

    with pytest.raises(ParseError, match="unbalanced"):
        extract_experiment_array(text)

    fragment = HeuristicTextParser().parse(text, source="SnippetScript")

    assert [(e.id, e.name) for e in fragment.experiments] == [("4001", "A")]
    assert fragment.experiments[0].status == ExperimentStatus.RUNNING
    assert [e.kind for e in fragment.errors] == ["parse"]


def test_keyed_sections_do_not_cross_contaminate():
    text = (
        'var x={"campaigns":{"2001":{"name":"Summer Campaign"}},'
        '"audiences":{"301":{"name":"Returning"}},'
        '"pages":{"401":{"name":"Home","apiName":"home"}},'
        '"events":{"501":{"name":"Add to cart"}}};'
    )

    assert extract_keyed_section(text, "audiences") == [("301", "Returning")]
    assert extract_keyed_section(text, "pages") == [("401", "Home")]

    fragment = HeuristicTextParser().parse(text, source="SnippetScript")

    assert [(e.id, e.kind) for e in fragment.experiments] == [("2001", ExperimentKind.CAMPAIGN)]
    assert [a.id for a in fragment.audiences] == ["301"]
    assert [p.id for p in fragment.pages] == ["401"]
    assert [e.id for e in fragment.events] == ["501"]


def test_unbalanced_keyed_section_is_skipped():
    assert extract_keyed_section('"pages":{"401":{"name":"Home"}', "pages") == []


def test_generic_candidate_needs_experiment_context():
    accepted = 'window.cfg = {experiment: {"id": 1234567, "name": "Checkout Flow"}}'
    assert extract_generic_candidates(accepted) == [("1234567", "Checkout Flow")]

    rejected = "x" * 150 + 'var widget = {"id": 7654321, "name": "Footer Links"};'
    assert extract_generic_candidates(rejected) == []


def test_generic_candidate_excludes_known_ids():
    text = 'experiment {"id": 1234567, "name": "Landing"}'
    assert extract_generic_candidates(text, excluded_ids={"1234567"}) == []


def test_generic_fallback_skips_page_ids():
    text = '"pages":{"1234567":{"name":"Landing"}} experiment {"id": 1234567, "name": "Landing"}'

    fragment = HeuristicTextParser().parse(text, source="SnippetScript")

    assert [p.id for p in fragment.pages] == ["1234567"]
    assert fragment.experiments == []


def test_failing_strategy_does_not_stop_the_others(monkeypatch):
    def explode(text):
        raise RuntimeError("boom")

    monkeypatch.setattr(heuristic, "extract_experiment_array", explode)
    text = '{"id":"4001","name":"Checkout","status":"running"}'

    fragment = HeuristicTextParser().parse(text, source="SnippetScript")

    assert [e.id for e in fragment.experiments] == ["4001"]
    assert len(fragment.errors) == 1
    assert fragment.errors[0].kind == "extraction"
    assert "boom" in fragment.errors[0].message


def test_empty_text():
    fragment = HeuristicTextParser().parse("", source="SnippetScript", identifier="1")
    assert fragment.is_empty
    assert fragment.identifier == "1"


def test_generic_fallback_skips_audience_ids():
    text = 'var test={"audiences":{"1234567":{"name":"Returning visitors"}}};'

    fragment = HeuristicTextParser().parse(text, source="SnippetScript")

    assert [a.id for a in fragment.audiences] == ["1234567"]
    assert fragment.experiments == []
