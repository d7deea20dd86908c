"""Experiment definition loading.

An experiment file is optional YAML (JSON works too, being a YAML subset)::

    models:
      - mistral:latest
      - orca-mini:3b
    catalog: lowspec          # or an explicit scenarios list
    timeout_seconds: 60
    runs: 2
    settings:
      pause_seconds: 2
      results_dir: results
"""

import copy
from dataclasses import dataclass, field
from typing import Optional

import yaml

from .errors import ExperimentConfigError
from .recommend import DEFAULT_ENV_PREFIX, DEFAULT_FALLBACK_CHAIN
from .scenarios import DEFAULT_CATALOG, get_catalog, scenario_from_dict

DEFAULT_MODELS = [
    "mistral:latest",
    "llama2:7b",
    "llama2:13b",
    "codellama:7b",
    "codellama:13b",
    "dolphin-mistral:latest",
    "orca-mini:3b",
    "neural-chat:7b",
]

DEFAULT_TIMEOUT_SEC = 60
DEFAULT_RUNS = 1

DEFAULT_SETTINGS = {
    "pause_seconds": 2,
    "results_dir": "results",
    "env_prefix": DEFAULT_ENV_PREFIX,
    "fallback_chain": list(DEFAULT_FALLBACK_CHAIN),
    "unload_between_models": True,
    "min_free_ram_buffer_mb": 1024,
    "list_timeout_seconds": 10,
}


@dataclass
class ExperimentConfig:
    models: list
    scenarios: tuple
    timeout_seconds: float = DEFAULT_TIMEOUT_SEC
    runs: int = DEFAULT_RUNS
    settings: dict = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS))
    catalog: Optional[str] = DEFAULT_CATALOG
    source: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "models": list(self.models),
            "catalog": self.catalog,
            "scenarios": [scenario.to_dict() for scenario in self.scenarios],
            "timeout_seconds": self.timeout_seconds,
            "runs": self.runs,
            "settings": dict(self.settings),
        }


def default_experiment(catalog: str = DEFAULT_CATALOG) -> ExperimentConfig:
    return ExperimentConfig(
        models=list(DEFAULT_MODELS),
        scenarios=get_catalog(catalog),
        catalog=catalog,
    )


def _model_id(entry, index: int) -> str:
    if isinstance(entry, dict):
        entry = entry.get("model_id") or entry.get("model")
    if not isinstance(entry, str) or not entry.strip():
        raise ExperimentConfigError(f"Model {index + 1} must be a non-empty model identifier")
    return entry.strip()


def _positive_number(value, name: str, kind=float):
    if isinstance(value, bool):
        raise ExperimentConfigError(f"'{name}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ExperimentConfigError(f"'{name}' must be a number, got {value!r}") from None
    if kind is int:
        if not number.is_integer():
            raise ExperimentConfigError(f"'{name}' must be a whole number, got {value!r}")
        number = int(number)
    if number <= 0:
        raise ExperimentConfigError(f"'{name}' must be positive, got {value!r}")
    return number


def load_experiment(config_path: str) -> ExperimentConfig:
    """Load and validate an experiment file.

    Args:
        config_path: Path to the YAML or JSON experiment file

    Returns:
        Validated experiment with defaults filled in

    Raises:
        ExperimentConfigError: If fields are missing or invalid
        FileNotFoundError: If the file doesn't exist
    """
    with open(config_path) as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ExperimentConfigError(f"Cannot parse {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ExperimentConfigError("Experiment file must contain a mapping")

    models = config.get("models", DEFAULT_MODELS)
    if not isinstance(models, list) or len(models) == 0:
        raise ExperimentConfigError("Config 'models' must be a non-empty list")
    models = [_model_id(entry, i) for i, entry in enumerate(models)]

    catalog = config.get("catalog", DEFAULT_CATALOG)
    raw_scenarios = config.get("scenarios", config.get("test_cases"))
    if raw_scenarios is not None:
        if not isinstance(raw_scenarios, list) or len(raw_scenarios) == 0:
            raise ExperimentConfigError("Config 'scenarios' must be a non-empty list")
        scenarios = tuple(scenario_from_dict(entry, i) for i, entry in enumerate(raw_scenarios))
        catalog = None
    else:
        scenarios = get_catalog(catalog)

    timeout = _positive_number(
        config.get("timeout_seconds", config.get("timeout_sec", DEFAULT_TIMEOUT_SEC)), "timeout_seconds"
    )
    runs = _positive_number(config.get("runs", DEFAULT_RUNS), "runs", int)

    settings = config.get("settings") or {}
    if not isinstance(settings, dict):
        raise ExperimentConfigError("Config 'settings' must be a mapping")
    for key, value in DEFAULT_SETTINGS.items():
        if key not in settings:
            settings[key] = copy.deepcopy(value)

    return ExperimentConfig(
        models=models,
        scenarios=scenarios,
        timeout_seconds=timeout,
        runs=runs,
        settings=settings,
        catalog=catalog,
        source=str(config_path),
    )
