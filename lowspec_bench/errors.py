"""Error taxonomy for benchmark runs.

Per-invocation errors (ProcessTimeout, ProcessExecutionError) are recorded on
the BenchmarkResult they belong to and never abort a run. NoModelsAvailable is
the only error that stops an experiment, and it is raised before any
benchmarking starts.
"""

from typing import Optional


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""


class ModelUnavailable(BenchmarkError):
    """A candidate model is not installed in the inference runtime."""

    def __init__(self, model: str):
        super().__init__(f"Model not installed: {model}")
        self.model = model


class NoModelsAvailable(BenchmarkError):
    """None of the candidate models are installed."""

    def __init__(self, candidates: Optional[list[str]] = None):
        candidates = candidates or []
        if candidates:
            message = f"No models available out of {len(candidates)} candidates: {', '.join(candidates)}"
        else:
            message = "No models available"
        super().__init__(message + ". Install one with: ollama pull <model>")
        self.candidates = candidates


class ProcessTimeout(BenchmarkError):
    """An inference invocation exceeded its time bound and was killed."""

    def __init__(self, model: str, timeout: float):
        super().__init__(f"Timeout after {timeout:g} seconds")
        self.model = model
        self.timeout = timeout


class ProcessExecutionError(BenchmarkError):
    """An inference invocation exited non-zero or could not be launched."""

    def __init__(self, model: str, detail: str, returncode: Optional[int] = None):
        if returncode is not None:
            message = f"Exit status {returncode}: {detail}" if detail else f"Exit status {returncode}"
        else:
            message = detail
        super().__init__(message)
        self.model = model
        self.detail = detail
        self.returncode = returncode


class ExperimentConfigError(BenchmarkError, ValueError):
    """The experiment definition file is missing fields or malformed."""
