"""Benchmark local LLMs on low-spec hardware and recommend a configuration."""

__version__ = "0.1.0"

from .executor import BenchmarkExecutor, BenchmarkResult
from .hardware import HardwareProfile, profile_hardware
from .pipeline import run_experiment
from .ranking import RankingEngine, Summary
from .recommend import ConfigRecommender, RecommendedConfig
from .runtime import InferenceBackend, OllamaBackend
from .scenarios import TestScenario

__all__ = [
    "BenchmarkExecutor",
    "BenchmarkResult",
    "ConfigRecommender",
    "HardwareProfile",
    "InferenceBackend",
    "OllamaBackend",
    "RankingEngine",
    "RecommendedConfig",
    "Summary",
    "TestScenario",
    "profile_hardware",
    "run_experiment",
]
