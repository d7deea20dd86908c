"""Single benchmark invocations.

Each call to ``BenchmarkExecutor.run`` drives exactly one external inference
process and turns what it observes into a ``BenchmarkResult``. Two of the
recorded numbers are estimates rather than instrumentation:

- tokens/sec assumes 4 characters per token (no tokenizer is involved)
- peak memory is the drop in *system* available memory across the
  invocation, not the RSS of the runtime process
"""

import logging
import re
import time
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Callable, Optional

from .errors import ProcessExecutionError, ProcessTimeout
from .hardware import get_available_memory_mb
from .runtime import INVOCATION_LOCK, InferenceBackend
from .scenarios import TestScenario

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 60
DEFAULT_PAUSE_SEC = 2
CHARS_PER_TOKEN = 4.0


@dataclass(frozen=True)
class BenchmarkResult:
    """One (model, scenario, run) measurement.

    Produced by the executor, then copied with quality and risk fields filled
    in by later stages. ``quality_score`` is 0 for failed runs.
    """

    model: str
    scenario: str
    use_case: str
    priority: str
    run_index: int
    prompt: str
    success: bool
    response_time_s: float
    timestamp: str
    output: str = ""
    output_length: int = 0
    tokens_per_second: float = 0.0
    peak_memory_mb: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    model_size: str = "unknown"
    quantization: str = "fp16"

    # Risk flags
    oom_risk: str = "unknown"
    thermal_throttling: bool = False
    battery_impact: str = "n/a"
    swap_used: bool = False
    memory_efficiency: float = 0.0

    # Quality
    quality_score: float = 0.0
    format_compliant: bool = False
    technical_vocabulary: bool = False
    usability_score: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BenchmarkResult":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})


def infer_model_size(model: str) -> str:
    """Parameter count tag from the model identifier, e.g. ``llama2:7b`` -> ``7b``."""
    match = re.search(r"(?<![\d.])(\d+(?:\.\d+)?)b(?![a-z])", model.lower())
    if not match:
        return "unknown"
    size = float(match.group(1))
    if size >= 30:
        return "30b+"
    return f"{match.group(1)}b"


def infer_quantization(model: str) -> str:
    """Quantization from the identifier, assuming fp16 when nothing is named."""
    model = model.lower()
    match = re.search(r"(?:\bq|int)(\d)", model)
    if match:
        return f"int{match.group(1)}"
    return "fp16"


def estimate_tokens_per_second(output_length: int, response_time_s: float) -> float:
    """Estimated throughput at a fixed 4 characters per token."""
    if output_length <= 0 or response_time_s <= 0:
        return 0.0
    return (output_length / CHARS_PER_TOKEN) / response_time_s


class BenchmarkExecutor:
    """Runs one scenario prompt through one model and measures it."""

    def __init__(
        self,
        backend: InferenceBackend,
        memory_probe: Callable[[], int] = get_available_memory_mb,
        pause_seconds: float = DEFAULT_PAUSE_SEC,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.backend = backend
        self.memory_probe = memory_probe
        self.pause_seconds = pause_seconds
        self.clock = clock
        self.sleep = sleep

    def run(
        self,
        model: str,
        scenario: TestScenario,
        run_index: int = 0,
        timeout: float = DEFAULT_TIMEOUT_SEC,
    ) -> BenchmarkResult:
        timestamp = datetime.now().isoformat()
        error = None

        with INVOCATION_LOCK:
            # Sampling must bracket the process lifetime as tightly as possible
            memory_before = self.memory_probe()
            start = self.clock()
            try:
                raw_output = self.backend.generate(model, scenario.prompt, timeout)
            except (ProcessTimeout, ProcessExecutionError) as e:
                raw_output = ""
                error = e
            response_time_s = self.clock() - start
            memory_after = self.memory_probe()

        peak_memory_mb = memory_before - memory_after

        if error is not None:
            logger.debug("%s / %s run %d failed: %s", model, scenario.name, run_index, error)
            return BenchmarkResult(
                model=model,
                scenario=scenario.name,
                use_case=scenario.use_case,
                priority=scenario.priority,
                run_index=run_index,
                prompt=scenario.prompt,
                success=False,
                response_time_s=response_time_s,
                timestamp=timestamp,
                peak_memory_mb=peak_memory_mb,
                error=str(error),
                error_type=type(error).__name__,
                model_size=infer_model_size(model),
                quantization=infer_quantization(model),
            )

        output = raw_output.strip()
        return BenchmarkResult(
            model=model,
            scenario=scenario.name,
            use_case=scenario.use_case,
            priority=scenario.priority,
            run_index=run_index,
            prompt=scenario.prompt,
            success=True,
            response_time_s=response_time_s,
            timestamp=timestamp,
            output=output,
            output_length=len(output),
            tokens_per_second=estimate_tokens_per_second(len(output), response_time_s),
            peak_memory_mb=peak_memory_mb,
            model_size=infer_model_size(model),
            quantization=infer_quantization(model),
        )

    def pause(self) -> None:
        """Let memory and thermal state settle before the next measurement."""
        if self.pause_seconds > 0:
            self.sleep(self.pause_seconds)
