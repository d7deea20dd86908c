"""Resolve which candidate models are installed in the inference runtime."""

import logging
from typing import Optional

from .errors import BenchmarkError, ModelUnavailable, NoModelsAvailable
from .runtime import InferenceBackend

logger = logging.getLogger(__name__)

LIST_TIMEOUT_SEC = 10

# Embedding models cannot generate text
EXCLUDED_MARKERS = ("embed",)

# Headroom above the requirement for a model to count as comfortably fitting
MEMORY_COMFORTABLE_HEADROOM_MB = 4096


class ModelAvailabilityChecker:
    """Queries the runtime's model listing once and answers from that snapshot.

    The listing is matched by substring containment, not parsed strictly, so a
    candidate such as ``mistral`` matches an installed ``mistral:latest``.
    """

    def __init__(self, backend: InferenceBackend, timeout: float = LIST_TIMEOUT_SEC):
        self.backend = backend
        self.timeout = min(timeout, LIST_TIMEOUT_SEC)
        self._listing: Optional[str] = None

    def listing(self) -> str:
        """Raw listing text, cached for the rest of the run. Empty on failure."""
        if self._listing is None:
            try:
                self._listing = self.backend.list_models(self.timeout)
            except BenchmarkError as e:
                logger.warning("Error checking installed models: %s", e)
                self._listing = ""
        return self._listing

    def check_available(self, candidates: list[str]) -> list[str]:
        """Subset of ``candidates`` present in the listing, in input order."""
        listing = self.listing()
        if not listing:
            return []

        available = []
        for model in candidates:
            if model and model in listing and model not in available:
                available.append(model)
        return available

    def unavailable(self, candidates: list[str]) -> list[ModelUnavailable]:
        available = set(self.check_available(candidates))
        return [ModelUnavailable(model) for model in candidates if model not in available]

    def require_available(self, candidates: list[str]) -> list[str]:
        """Like check_available, but an empty result is fatal.

        Raises:
            NoModelsAvailable: none of the candidates are installed
        """
        available = self.check_available(candidates)
        if not available:
            raise NoModelsAvailable(list(candidates))
        return available

    def _rows(self) -> list[list[str]]:
        lines = self.listing().strip().split("\n")
        # First line is the header
        return [line.split() for line in lines[1:] if line.strip()]

    def installed_models(self) -> list[str]:
        """Every installed text-generation model."""
        models = []
        for parts in self._rows():
            name = parts[0]
            if any(marker in name.lower() for marker in EXCLUDED_MARKERS):
                continue
            models.append(name)
        return models

    def installed_model_sizes(self) -> dict[str, float]:
        """Installed model sizes in MB, parsed from the SIZE column."""
        sizes = {}
        for parts in self._rows():
            # NAME ID SIZE UNIT MODIFIED...
            if len(parts) < 4:
                continue
            try:
                size = float(parts[2])
            except ValueError:
                continue
            unit = parts[3].upper()
            if unit == "GB":
                size *= 1024
            elif unit == "KB":
                size /= 1024
            elif unit != "MB":
                continue
            sizes[parts[0]] = size
        return sizes

    def estimate_model_memory_mb(self, model: str) -> Optional[float]:
        """Weights plus 20% for KV cache and runtime, plus 1 GB."""
        sizes = self.installed_model_sizes()
        size = sizes.get(model)
        if size is None:
            matches = [value for name, value in sizes.items() if model in name]
            size = matches[0] if matches else None
        if size is None:
            return None
        return round(size * 1.2 + 1024)


def memory_fit_indicator(estimated_mb: float, available_mb: float, buffer_mb: float) -> str:
    """Return a memory fit indicator string."""
    required = estimated_mb + buffer_mb
    if available_mb >= required + MEMORY_COMFORTABLE_HEADROOM_MB:
        return "✓ fits"
    elif available_mb >= required:
        return "⚠ tight"
    else:
        return "✗ won't fit"
