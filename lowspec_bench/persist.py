"""Results persistence.

Every experiment is written as one self-contained JSON document holding the
hardware profile, every result in execution order (failed runs included) and
the summary. Each result is also appended to a CSV run log shared by all
experiments in the results directory.
"""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from .executor import BenchmarkResult
from .hardware import HardwareProfile
from .ranking import Summary

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

CSV_FILENAME = "benchmark_log.csv"
CSV_COLUMNS = [
    "timestamp", "device_name", "model", "scenario", "use_case", "priority",
    "run_index", "success", "error_type",
    "time_sec", "output_length", "tokens_per_sec_est", "memory_delta_mb",
    "oom_risk", "thermal_throttling", "battery_impact",
    "quality_score", "usability_score", "error",
]


def sanitize_device_name(name: str) -> str:
    """Lowercase with spaces, dashes and dots replaced by underscores."""
    sanitized = name
    for char in (" ", "-", "."):
        sanitized = sanitized.replace(char, "_")
    return sanitized.lower()


class ResultsPersister:
    """Writes and reads experiment records under one results directory."""

    def __init__(self, results_dir="results"):
        self.results_dir = Path(results_dir)

    def record_path(self, profile: HardwareProfile, when: datetime) -> Path:
        stem = f"low_spec_benchmark_{sanitize_device_name(profile.device_name)}_{when.strftime('%Y-%m-%d_%H-%M-%S')}"
        path = self.results_dir / f"{stem}.json"
        counter = 2
        while path.exists():
            path = self.results_dir / f"{stem}_{counter}.json"
            counter += 1
        return path

    def save(
        self,
        profile: HardwareProfile,
        results: list[BenchmarkResult],
        summary: Summary,
        experiment: Optional[dict] = None,
        when: Optional[datetime] = None,
    ) -> Path:
        """Write the full experiment record and return its path."""
        when = when or datetime.now()
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path = self.record_path(profile, when)

        document = {
            "schema_version": SCHEMA_VERSION,
            "generated_at": when.isoformat(),
            "experiment": experiment or {},
            "device_profile": profile.to_dict(),
            "test_results": [result.to_dict() for result in results],
            "summary": summary.to_dict(),
        }

        with open(path, "w") as f:
            json.dump(document, f, indent=2, default=str)

        logger.debug("Saved %d results to %s", len(results), path)
        return path

    def append_log(self, profile: HardwareProfile, results: list[BenchmarkResult]) -> Path:
        """Append one row per result to the CSV run log."""
        self.results_dir.mkdir(parents=True, exist_ok=True)
        csv_file = self.results_dir / CSV_FILENAME
        file_exists = csv_file.exists()

        with open(csv_file, "a", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
            if not file_exists:
                writer.writeheader()
            for r in results:
                writer.writerow({
                    "timestamp": r.timestamp,
                    "device_name": profile.device_name,
                    "model": r.model,
                    "scenario": r.scenario,
                    "use_case": r.use_case,
                    "priority": r.priority,
                    "run_index": r.run_index,
                    "success": r.success,
                    "error_type": r.error_type or "",
                    "time_sec": round(r.response_time_s, 2),
                    "output_length": r.output_length,
                    "tokens_per_sec_est": round(r.tokens_per_second, 2),
                    "memory_delta_mb": r.peak_memory_mb,
                    "oom_risk": r.oom_risk,
                    "thermal_throttling": r.thermal_throttling,
                    "battery_impact": r.battery_impact,
                    "quality_score": r.quality_score,
                    "usability_score": round(r.usability_score, 3),
                    "error": r.error or "",
                })
        return csv_file

    @staticmethod
    def load(path) -> tuple[HardwareProfile, list[BenchmarkResult], dict]:
        """Read a saved record back as (profile, results, experiment).

        Raises:
            ValueError: If the document is not a benchmark record this version understands
        """
        with open(path) as f:
            document = json.load(f)

        version = document.get("schema_version")
        if version != SCHEMA_VERSION:
            raise ValueError(f"Unsupported results schema version: {version!r}")

        profile = HardwareProfile.from_dict(document["device_profile"])
        results = [BenchmarkResult.from_dict(item) for item in document.get("test_results", [])]
        return profile, results, document.get("experiment", {})
