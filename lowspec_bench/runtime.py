"""Inference runtime backends.

The benchmark talks to the runtime only through ``InferenceBackend`` so the
measurement logic can run against a fake in tests. ``OllamaBackend`` shells out
to the ``ollama`` CLI: the prompt goes in on stdin, generated text comes back
on stdout, and a non-zero exit or a timeout are the only failure signals.
"""

import logging
import subprocess
import threading
from abc import ABC, abstractmethod

from .errors import ProcessExecutionError, ProcessTimeout

logger = logging.getLogger(__name__)

# Held for the lifetime of every inference process. Two local models running
# at once can exhaust memory and would corrupt the memory-delta measurement.
INVOCATION_LOCK = threading.Lock()

STDERR_TAIL_CHARS = 500


class InferenceBackend(ABC):
    """Capability interface for an external text-generation runtime."""

    name = "backend"

    @abstractmethod
    def generate(self, model: str, prompt: str, timeout: float) -> str:
        """Generate text for ``prompt``.

        Raises:
            ProcessTimeout: the invocation ran longer than ``timeout`` seconds
            ProcessExecutionError: the invocation failed to launch or exited non-zero
        """

    @abstractmethod
    def list_models(self, timeout: float) -> str:
        """Return the runtime's newline-delimited listing of installed models."""

    def unload(self, model: str) -> None:
        """Release a model from memory. Backends without the notion do nothing."""

    def loaded_models(self) -> list[str]:
        """Models currently resident in memory."""
        return []


class OllamaBackend(InferenceBackend):
    """Drives the ``ollama`` command-line client."""

    name = "ollama"

    def __init__(self, binary: str = "ollama", stop_timeout: float = 10):
        self.binary = binary
        self.stop_timeout = stop_timeout

    def generate(self, model: str, prompt: str, timeout: float) -> str:
        try:
            # subprocess.run kills the child before raising TimeoutExpired
            result = subprocess.run(
                [self.binary, "run", model],
                input=prompt,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessTimeout(model, timeout) from e
        except OSError as e:
            raise ProcessExecutionError(model, f"{type(e).__name__}: {e}") from e

        if result.returncode != 0:
            detail = (result.stderr or "").strip()[-STDERR_TAIL_CHARS:]
            raise ProcessExecutionError(model, detail, result.returncode)
        return result.stdout

    def list_models(self, timeout: float) -> str:
        try:
            result = subprocess.run(
                [self.binary, "list"],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ProcessTimeout("list", timeout) from e
        except OSError as e:
            raise ProcessExecutionError("list", f"{type(e).__name__}: {e}") from e

        if result.returncode != 0:
            raise ProcessExecutionError("list", (result.stderr or "").strip(), result.returncode)
        return result.stdout

    def unload(self, model: str) -> None:
        try:
            result = subprocess.run(
                [self.binary, "stop", model],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.stop_timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Could not unload %s: %s", model, e)
            return
        # Not being loaded is fine
        if result.returncode != 0:
            logger.debug("ollama stop %s exited with %d", model, result.returncode)

    def loaded_models(self) -> list[str]:
        """Models listed by ``ollama ps`` (first line is a header)."""
        try:
            result = subprocess.run(
                [self.binary, "ps"],
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=5,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("ollama ps failed: %s", e)
            return []
        if result.returncode != 0:
            return []

        lines = [line.strip() for line in result.stdout.strip().split("\n") if line.strip()]
        return [line.split()[0] for line in lines[1:]]
