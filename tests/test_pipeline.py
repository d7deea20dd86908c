from dataclasses import replace

import pytest

from conftest import FakeBackend, exit_error
from lowspec_bench.errors import NoModelsAvailable
from lowspec_bench.executor import BenchmarkExecutor
from lowspec_bench.pipeline import ProgressObserver, assess, execute, run_experiment


class RecordingObserver(ProgressObserver):
    def __init__(self):
        self.events = []

    def on_models_resolved(self, available, unavailable):
        self.events.append(("resolved", tuple(available), tuple(unavailable)))

    def on_model_start(self, model, index, total):
        self.events.append(("model", model, index, total))

    def on_result(self, result, current, total):
        self.events.append(("result", result.model, result.scenario, current, total))


def test_end_to_end(clock, make_executor, scenarios, desktop_profile):
    devlog = "## Summary\n- Added a cache in front of the database\n- " + "detail " * 50
    backend = FakeBackend(
        behaviour={"mistral:latest": devlog, "orca-mini:3b": exit_error("orca-mini:3b")},
        latency={"mistral:latest": 3.0, "orca-mini:3b": 0.5},
        clock=clock,
    )
    observer = RecordingObserver()

    run = run_experiment(
        backend,
        ["mistral:latest", "orca-mini:3b", "llama2:13b"],
        scenarios,
        runs=1,
        timeout=30,
        profile=desktop_profile,
        executor=make_executor(backend),
        observer=observer,
        unload_between_models=True,
    )

    assert run.available_models == ("mistral:latest", "orca-mini:3b")
    assert [(r.model, r.scenario) for r in run.results] == [
        ("mistral:latest", "Capture"),
        ("mistral:latest", "Devlog"),
        ("orca-mini:3b", "Capture"),
        ("orca-mini:3b", "Devlog"),
    ]
    assert all(r.success for r in run.results[:2])
    assert not any(r.success for r in run.results[2:])
    assert all(r.quality_score > 0 for r in run.results[:2])
    assert all(r.usability_score > 0 for r in run.results[:2])

    summary = run.summary
    assert summary.optimal_models == {"capture": "mistral:latest", "devlog": "mistral:latest"}
    assert summary.unreliable_models == ["orca-mini:3b"]
    assert summary.recommended_config.primary_model == "mistral:latest"
    assert summary.recommended_config.context_length == 4096

    assert backend.unloaded == ["mistral:latest", "orca-mini:3b"]
    assert observer.events[0] == ("resolved", ("mistral:latest", "orca-mini:3b"), ("llama2:13b",))
    assert ("model", "orca-mini:3b", 1, 2) in observer.events
    assert observer.events[-1] == ("result", "orca-mini:3b", "Devlog", 4, 4)


def test_no_models_fails_before_benchmarking(scenarios, desktop_profile):
    backend = FakeBackend()
    with pytest.raises(NoModelsAvailable):
        run_experiment(backend, ["llama2:13b"], scenarios, profile=desktop_profile)
    assert backend.calls == []


def test_pauses_between_invocations_only(backend, scenarios):
    slept = []
    executor = BenchmarkExecutor(backend, memory_probe=lambda: 4000, pause_seconds=1, sleep=slept.append)

    results = execute(executor, ["mistral:latest"], scenarios, runs=2, timeout=10)

    assert len(results) == 4
    assert [r.run_index for r in results] == [0, 1, 0, 1]
    assert slept == [1, 1, 1]
    assert backend.unloaded == []


def test_assess_uses_scenario_length_hint(scenarios, make_executor, clock):
    backend = FakeBackend(behaviour={"mistral:latest": "a" * 300}, clock=clock)
    raw = (make_executor(backend).run("mistral:latest", scenarios[0]),)

    plain = assess(raw, scenarios)
    hinted = assess(raw, [replace(scenarios[0], expected_length=300)])

    # 300 chars against the default 100 is overlong; against the hint it is ideal
    assert plain[0].quality_score == 2.5
    assert hinted[0].quality_score == 4.5
    assert raw[0].quality_score == 0.0


def test_two_models_two_scenarios_all_succeeding(clock, make_executor, scenarios, laptop_profile):
    backend = FakeBackend(
        behaviour={
            "mistral:latest": "## Notes\n- Added a cache layer to the server",
            "orca-mini:3b": "Fixed the login bug in the auth service.",
        },
        latency={"mistral:latest": 6.0, "orca-mini:3b": 2.0},
        clock=clock,
    )

    run = run_experiment(
        backend,
        ["mistral:latest", "orca-mini:3b"],
        scenarios,
        profile=laptop_profile,
        executor=make_executor(backend),
    )

    assert len(run.results) == 4
    assert all(r.success and r.response_time_s > 0 for r in run.results)
    assert all(r.output_length == len(r.output.strip()) for r in run.results)
    assert set(run.summary.optimal_models) == {"capture", "devlog"}
    assert all(model in run.available_models for model in run.summary.optimal_models.values())
    assert run.summary.recommended_config.primary_model in run.available_models
    assert run.summary.unreliable_models == []
