import asyncio

from inspector.core.models import ExperimentStatus, LoadedVia, RuntimeSnapshot
from inspector.fetchers import LiveRuntimeFetcher
from inspector.resolution import ResolutionOrchestrator


SNIPPET = 'var c={"experiments":[{"id":123,"name":"Banner Test","status":"running"}]};'


def _resolve(orchestrator, cdn, *args, **kwargs):
    async def run():
        async with cdn.client() as client:
            return await orchestrator.resolve(*args, client=client, **kwargs)

    return asyncio.run(run())


SCENARIO_RUNTIME = dict(
    state={"activeExperimentIds": ["1"], "variationMap": {"1": {"id": "10"}}},
    data={
        "experiments": {
            "1": {
                "name": "Test",
                "status": "Running",
                "variations": {
                    "10": {"name": "Ctrl", "weight": 5000},
                    "11": {"name": "Var", "weight": 5000},
                },
            },
        },
    },
)


def test_runtime_state_resolves_active_experiment(mock_cdn):
    runtime = RuntimeSnapshot(**SCENARIO_RUNTIME)
    cdn = mock_cdn()

    config = _resolve(ResolutionOrchestrator(known_identifier=""), cdn, runtime=runtime)

    assert cdn.calls == []
    assert len(config.experiments) == 1
    experiment = config.experiments[0]
    assert experiment.id == "1"
    assert experiment.status == ExperimentStatus.RUNNING
    assert experiment.raw_status == "Running"
    assert experiment.is_active is True
    assert experiment.current_variation_id == "10"

    control, variant = experiment.variations
    assert (control.id, control.weight, control.is_current) == ("10", 50, True)
    assert (variant.id, variant.weight, variant.is_current) == ("11", 50, False)
    assert config.loaded_via == LoadedVia.DIRECT


def test_snippet_resolution_without_runtime(mock_cdn):
    cdn = mock_cdn({"cdn.optimizely.com/js/123.js": (200, SNIPPET)})

    config = _resolve(ResolutionOrchestrator(known_identifier=""), cdn, ["123"])

    assert [(e.id, e.name, e.status) for e in config.experiments] == [("123", "Banner Test", "running")]
    assert config.loaded_via == LoadedVia.SNIPPET_SCRIPT
    assert config.primary_identifier == "123"
    assert config.identifier_origin == LoadedVia.DIRECT
    assert config.resolved_identifiers == ["123"]
    # Lower-priority datafile is never requested once the snippet yields experiments
    assert cdn.calls == ["cdn.optimizely.com/js/123.js"]


def test_unauthorized_rest_api_falls_through(mock_cdn):
    routes = {
        f"api.optimizely.com/v2/{name}": (403, "forbidden")
        for name in ("experiments", "audiences", "pages", "events")
    }
    routes["cdn.optimizely.com/js/123.js"] = (200, SNIPPET)
    cdn = mock_cdn(routes)

    config = _resolve(ResolutionOrchestrator(known_identifier=""), cdn, ["123"], api_token="bad")

    assert "unauthorized" in [e.kind for e in config.errors]
    assert [e.id for e in config.experiments] == ["123"]
    assert config.loaded_via == LoadedVia.SNIPPET_SCRIPT


def test_datafile_used_when_snippet_missing(mock_cdn):
    cdn = mock_cdn({
        "cdn.optimizely.com/json/123.json": (200, {
            "projectId": "123",
            "experiments": [{"id": "e1", "key": "exp_one", "status": "Running", "variations": []}],
        }),
    })

    config = _resolve(ResolutionOrchestrator(known_identifier=""), cdn, ["123"])

    assert [e.id for e in config.experiments] == ["e1"]
    assert config.loaded_via == LoadedVia.JSON_DATAFILE
    assert [e.source for e in config.errors] == ["SnippetScript"]


def test_known_identifier_always_checked(mock_cdn):
    cdn = mock_cdn({
        "cdn.optimizely.com/js/111.js": (200, 'x={"experiments":[{"id":1,"name":"Page test","status":"running"}]}'),
        "cdn.optimizely.com/js/999.js": (200, 'x={"experiments":[{"id":9,"name":"GTM test","status":"paused"}]}'),
    })

    config = _resolve(ResolutionOrchestrator(known_identifier="999"), cdn, ["111"])

    assert "cdn.optimizely.com/js/999.js" in cdn.calls
    assert [e.id for e in config.experiments] == ["1", "9"]
    assert config.primary_identifier == "111"
    assert config.is_known_project
    assert config.resolved_identifiers == ["111", "999"]


def test_known_identifier_from_tag_manager(mock_cdn):
    cdn = mock_cdn({"cdn.optimizely.com/js/999.js": (200, SNIPPET)})

    config = _resolve(ResolutionOrchestrator(known_identifier="999"), cdn, [], has_tag_manager=True)

    assert config.primary_identifier == "999"
    assert config.identifier_origin == LoadedVia.TAG_MANAGER
    assert config.is_known_project


def test_nothing_found_is_an_empty_success(mock_cdn):
    cdn = mock_cdn()

    config = _resolve(ResolutionOrchestrator(known_identifier=""), cdn, [])

    assert cdn.calls == []
    assert not config.detected
    assert config.experiments == []
    assert config.errors == []
    assert not config.is_known_project


def test_failed_sources_are_recorded_not_raised(mock_cdn):
    config = _resolve(ResolutionOrchestrator(known_identifier=""), mock_cdn(), ["123"])

    assert config.experiments == []
    assert [e.source for e in config.errors] == ["SnippetScript", "JsonDatafile"]
    assert all(e.identifier == "123" for e in config.errors)
    assert config.resolved_identifiers == []


def test_runtime_only_orchestrator():
    runtime = RuntimeSnapshot(data={"projectId": "555", "experiments": {"7": {"name": "Only"}}})
    orchestrator = ResolutionOrchestrator(known_identifier="", fetchers=[LiveRuntimeFetcher()])

    config = asyncio.run(orchestrator.resolve(runtime=runtime))

    assert config.primary_identifier == "555"
    assert [e.id for e in config.experiments] == ["7"]
    assert config.experiments[0].is_active is None


def test_runtime_without_project_is_not_credited_to_known_identifier(mock_cdn):
    cdn = mock_cdn()

    config = _resolve(
        ResolutionOrchestrator(known_identifier="999"), cdn, [], runtime=RuntimeSnapshot(**SCENARIO_RUNTIME)
    )

    assert [e.id for e in config.experiments] == ["1"]
    assert "cdn.optimizely.com/js/999.js" in cdn.calls
    assert not config.is_known_project
    assert config.resolved_identifiers == []
    assert config.loaded_via == LoadedVia.DIRECT


def test_runtime_without_project_and_known_identifier_present(mock_cdn):
    cdn = mock_cdn({"cdn.optimizely.com/js/999.js": (200, SNIPPET)})

    config = _resolve(
        ResolutionOrchestrator(known_identifier="999"), cdn, [], runtime=RuntimeSnapshot(**SCENARIO_RUNTIME)
    )

    assert [e.id for e in config.experiments] == ["1", "123"]
    assert config.is_known_project
    assert config.resolved_identifiers == ["999"]


def test_resolve_identifier_without_page(mock_cdn):
    cdn = mock_cdn({"cdn.optimizely.com/js/123.js": (200, SNIPPET)})

    async def run():
        async with cdn.client() as client:
            return await ResolutionOrchestrator(known_identifier="").resolve_identifier("123", client=client)

    config = asyncio.run(run())

    assert config.primary_identifier == "123"
    assert [e.id for e in config.running_experiments()] == ["123"]
