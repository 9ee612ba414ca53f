import pytest

from inspector.core.errors import ParseError
from inspector.core.models import ExperimentKind, ExperimentStatus, RawPayload
from inspector.parsers.structured import StructuredParser


RUNTIME = {
    "state": {
        "activeExperimentIds": ["1"],
        "variationMap": {"1": {"id": "10"}},
    },
    "data": {
        "projectId": "24680",
        "accountId": "13579",
        "revision": "42",
        "experiments": {
            "1": {
                "name": "Test",
                "status": "Running",
                "audienceIds": ["300"],
                "variations": {
                    "10": {"name": "Ctrl", "weight": 5000},
                    "11": {"name": "Var", "weight": 5000},
                },
            },
        },
        "campaigns": {"900": {"name": "Homepage personalization", "status": "Active"}},
        "audiences": {"300": {"name": "Mobile", "conditions": ["and", {"type": "device"}]}},
        "pages": {"400": {"name": "Home", "apiName": "home", "category": "landing"}},
        "events": {"500": {"name": "Purchase", "apiName": "purchase"}},
    },
    "visitor": {"visitorId": "oeu123", "custom": {"plan": "pro"}},
}


def test_runtime_namespaces():
    fragment, assignment = StructuredParser().parse_runtime(RUNTIME)

    assert fragment.identifier == "24680"
    assert fragment.account_id == "13579"
    assert fragment.revision == "42"
    assert fragment.visitor.visitor_id == "oeu123"
    assert fragment.visitor.attributes == {"plan": "pro"}

    experiment = fragment.experiments[0]
    assert experiment.id == "1"
    assert experiment.status == ExperimentStatus.RUNNING
    assert experiment.raw_status == "Running"
    assert experiment.audience_ids == ["300"]
    assert [(v.id, v.weight) for v in experiment.variations] == [("10", 5000), ("11", 5000)]

    campaign = fragment.experiments[1]
    assert (campaign.id, campaign.kind) == ("900", ExperimentKind.CAMPAIGN)

    assert [a.id for a in fragment.audiences] == ["300"]
    assert fragment.pages[0].api_name == "home"
    assert fragment.events[0].name == "Purchase"

    assert assignment.active_experiment_ids == {"1"}
    assert assignment.variation_map == {"1": "10"}


def test_runtime_namespace_failure_is_isolated():
    content = dict(RUNTIME, state="not an object", errors={"visitor": "getVisitorProfile is not a function"})
    content.pop("visitor")

    fragment, assignment = StructuredParser().parse_runtime(content)

    assert assignment is None
    assert [e.id for e in fragment.experiments] == ["1", "900"]
    assert fragment.visitor is None
    assert {e.kind for e in fragment.errors} == {"extraction"}
    messages = " ".join(e.message for e in fragment.errors)
    assert "state" in messages
    assert "getVisitorProfile" in messages


def test_runtime_without_namespaces():
    fragment, assignment = StructuredParser().parse_runtime({})
    assert fragment.is_empty
    assert assignment is None


def test_bare_variation_map_values():
    fragment, assignment = StructuredParser().parse_runtime(
        {"state": {"activeExperimentIds": [7], "variationMap": {"7": 70}}}
    )
    assert assignment.active_experiment_ids == {"7"}
    assert assignment.variation_map == {"7": "70"}


DATAFILE = {
    "projectId": "555",
    "accountId": "9",
    "revision": "12",
    "experiments": [
        {
            "id": "e1",
            "key": "exp_one",
            "status": "Running",
            "audienceIds": ["a1"],
            "variations": [{"id": "v1", "key": "control"}, {"id": "v2", "key": "treatment"}],
            "trafficAllocation": [
                {"entityId": "v1", "endOfRange": 2500},
                {"entityId": "v2", "endOfRange": 5000},
            ],
        },
    ],
    "groups": [
        {"id": "g1", "experiments": [{"id": "e2", "key": "grouped", "status": "Paused", "variations": []}]},
    ],
    "audiences": [{"id": "a1", "name": "Mobile", "conditions": "[]"}],
    "events": [{"id": "ev1", "key": "purchase", "experimentIds": ["e1"]}],
    "featureFlags": [{"id": "f1", "key": "new_checkout", "experimentIds": ["e1"], "rolloutId": "r1"}],
}


def test_datafile_allocation_ranges():
    fragment = StructuredParser().parse_datafile(DATAFILE)

    assert (fragment.identifier, fragment.account_id, fragment.revision) == ("555", "9", "12")

    experiment = fragment.experiments[0]
    assert experiment.name == "exp_one"
    assert experiment.kind == ExperimentKind.FEATURE_FLAG
    assert experiment.traffic_percent == 50
    assert [(v.id, v.weight) for v in experiment.variations] == [("v1", 25), ("v2", 25)]

    assert [e.id for e in fragment.experiments] == ["e1", "e2"]
    assert fragment.experiments[1].status == ExperimentStatus.PAUSED

    assert fragment.events[0].experiment_ids == ["e1"]
    feature = fragment.features[0]
    assert (feature.key, feature.rollout_id) == ("new_checkout", "r1")


def test_keyed_datafile_reads_like_runtime_data():
    fragment = StructuredParser().parse_datafile(RUNTIME["data"])
    assert [e.id for e in fragment.experiments] == ["1", "900"]
    assert fragment.identifier == "24680"


def test_datafile_root_must_be_object():
    with pytest.raises(ParseError):
        StructuredParser().parse(RawPayload(source="JsonDatafile", kind="json", content=[1, 2]))


LISTINGS = {
    "experiments": [
        {
            "id": 1001,
            "name": "Hero",
            "key": "hero",
            "status": "running",
            "type": "a/b",
            "traffic_allocation": 10000,
            "holdback": 500,
            "audience_conditions": '["and", {"audience_id": 77}]',
            "variations": [
                {"variation_id": 1, "name": "Original", "weight": 5000},
                {"variation_id": 2, "name": "B", "weight": 5000},
            ],
        },
        {"id": 1002, "name": "P13n", "type": "personalization", "status": "paused"},
    ],
    "audiences": [{"id": 77, "name": "Returning"}],
    "pages": [{"id": 88, "name": "Home", "api_name": "home", "edit_url": "https://example.com"}],
}


def test_rest_listings():
    fragment = StructuredParser().parse(
        RawPayload(source="RestApi", identifier="24680", kind="listings", content=LISTINGS)
    )

    assert fragment.identifier == "24680"
    hero, p13n = fragment.experiments
    assert hero.id == "1001"
    assert hero.traffic_percent == 10000
    assert hero.holdback_percent == 500
    assert hero.audience_ids == ["77"]
    assert [v.id for v in hero.variations] == ["1", "2"]
    assert p13n.kind == ExperimentKind.CAMPAIGN
    assert p13n.status == ExperimentStatus.PAUSED

    assert fragment.audiences[0].id == "77"
    assert fragment.pages[0].edit_url == "https://example.com"
    assert fragment.events == []


def test_text_payload_is_not_structured():
    with pytest.raises(ParseError):
        StructuredParser().parse(RawPayload(source="SnippetScript", kind="text", content="var x;"))
