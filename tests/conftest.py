import pytest

from lowspec_bench.errors import ProcessExecutionError, ProcessTimeout
from lowspec_bench.executor import BenchmarkExecutor, BenchmarkResult
from lowspec_bench.hardware import HardwareProfile
from lowspec_bench.runtime import InferenceBackend
from lowspec_bench.scenarios import TestScenario

# ----------------------------------------------------------------------
# Fake runtime
# ----------------------------------------------------------------------
LISTING = """NAME                    ID              SIZE      MODIFIED
mistral:latest          61e88e884507    4.1 GB    2 weeks ago
orca-mini:3b            2dbd9f439647    1.9 GB    3 weeks ago
nomic-embed-text:latest 0a109f422b47    274 MB    1 month ago
"""


class FakeClock:
    """perf_counter stand-in advanced by the fake backend."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeBackend(InferenceBackend):
    """Scripted backend. ``behaviour`` maps model -> output string or exception."""

    name = "fake"

    def __init__(self, behaviour=None, listing=LISTING, latency=None, clock=None):
        self.behaviour = behaviour or {}
        self.listing = listing
        self.latency = latency or {}
        self.clock = clock
        self.calls = []
        self.unloaded = []
        self.loaded = []

    def generate(self, model, prompt, timeout):
        self.calls.append((model, prompt, timeout))
        if self.clock is not None:
            self.clock.now += self.latency.get(model, 1.0)
        outcome = self.behaviour.get(model, "A short answer about the api server.")
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(prompt)
        return outcome

    def list_models(self, timeout):
        if isinstance(self.listing, Exception):
            raise self.listing
        return self.listing

    def unload(self, model):
        self.unloaded.append(model)

    def loaded_models(self):
        return list(self.loaded)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return FakeBackend(clock=clock)


@pytest.fixture
def make_executor(clock):
    """Executor with a fake clock, a fixed memory probe and no pauses."""

    def factory(backend, memory_readings=(8000, 7500)):
        readings = list(memory_readings)

        def probe():
            return readings.pop(0) if len(readings) > 1 else readings[0]

        return BenchmarkExecutor(backend, memory_probe=probe, pause_seconds=0, clock=clock)

    return factory


def timeout_error(model="slow:7b", timeout=60):
    return ProcessTimeout(model, timeout)


def exit_error(model="broken:7b"):
    return ProcessExecutionError(model, "model crashed", 1)


# ----------------------------------------------------------------------
# Profiles and records
# ----------------------------------------------------------------------
@pytest.fixture
def laptop_profile():
    return HardwareProfile(
        device_name="Test Laptop",
        os="linux",
        architecture="x86_64",
        cpu_cores=4,
        total_ram_mb=8192,
        available_ram_mb=4096,
        storage_type="SSD",
        thermal_profile="laptop",
        power_profile="battery",
    )


@pytest.fixture
def desktop_profile():
    return HardwareProfile(
        device_name="desk.local",
        os="linux",
        architecture="x86_64",
        cpu_cores=8,
        total_ram_mb=16384,
        available_ram_mb=12000,
        storage_type="SSD",
        thermal_profile="desktop",
        power_profile="plugged",
    )


@pytest.fixture
def scenarios():
    return [
        TestScenario(name="Capture", use_case="capture", priority="speed",
                     prompt="Summarize: fixed a bug"),
        TestScenario(name="Devlog", use_case="devlog", priority="quality",
                     prompt="Write a devlog about caching"),
    ]


def make_result(model="mistral:latest", use_case="capture", success=True, response_time_s=2.0,
                quality_score=4.0, peak_memory_mb=500, priority="speed", run_index=0, **kwargs):
    """BenchmarkResult with sensible defaults for ranking tests."""
    output = kwargs.pop("output", "x" * 100 if success else "")
    return BenchmarkResult(
        model=model,
        scenario=kwargs.pop("scenario", f"{use_case} scenario"),
        use_case=use_case,
        priority=priority,
        run_index=run_index,
        prompt="prompt",
        success=success,
        response_time_s=response_time_s,
        timestamp="2025-01-01T10:00:00",
        output=output,
        output_length=len(output),
        peak_memory_mb=peak_memory_mb,
        quality_score=quality_score if success else 0.0,
        error=None if success else "Exit status 1: boom",
        error_type=None if success else "ProcessExecutionError",
        **kwargs,
    )
