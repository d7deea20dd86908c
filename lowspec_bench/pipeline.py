"""The benchmark pipeline as a sequence of stages.

Profile -> available models -> raw results -> assessed results ->
enriched results -> summary -> recommended config. Each stage returns new
records and leaves its input untouched. Progress reporting is an observer
the stages call into; nothing in the pipeline depends on it.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from .availability import ModelAvailabilityChecker
from .executor import BenchmarkExecutor, BenchmarkResult
from .hardware import HardwareProfile, profile_hardware
from .quality import QualityAssessor
from .ranking import RankingEngine, Summary
from .recommend import ConfigRecommender
from .runtime import InferenceBackend
from .scenarios import TestScenario

logger = logging.getLogger(__name__)


class ProgressObserver:
    """Receives progress events. The default implementation ignores them."""

    def on_models_resolved(self, available: list[str], unavailable: list[str]) -> None:
        pass

    def on_model_start(self, model: str, index: int, total: int) -> None:
        pass

    def on_invocation_start(self, model: str, scenario: TestScenario, run_index: int,
                            current: int, total: int) -> None:
        pass

    def on_result(self, result: BenchmarkResult, current: int, total: int) -> None:
        pass


@dataclass(frozen=True)
class ExperimentRun:
    profile: HardwareProfile
    available_models: tuple
    results: tuple
    summary: Summary


def resolve_models(checker: ModelAvailabilityChecker, candidates: list[str],
                   observer: Optional[ProgressObserver] = None) -> list[str]:
    """Installed subset of ``candidates``.

    Raises:
        NoModelsAvailable: none of the candidates are installed
    """
    observer = observer or ProgressObserver()
    available = checker.check_available(candidates)
    unavailable = [e.model for e in checker.unavailable(candidates)]
    observer.on_models_resolved(available, unavailable)
    return checker.require_available(candidates)


def execute(
    executor: BenchmarkExecutor,
    models: list[str],
    scenarios: list[TestScenario],
    runs: int,
    timeout: float,
    observer: Optional[ProgressObserver] = None,
    unload_between_models: bool = False,
) -> tuple:
    """Run every (model, scenario, run) combination, one process at a time."""
    observer = observer or ProgressObserver()
    total = len(models) * len(scenarios) * runs
    current = 0
    results = []

    for model_index, model in enumerate(models):
        observer.on_model_start(model, model_index, len(models))
        for scenario in scenarios:
            for run_index in range(runs):
                current += 1
                observer.on_invocation_start(model, scenario, run_index, current, total)
                result = executor.run(model, scenario, run_index, timeout)
                results.append(result)
                observer.on_result(result, current, total)
                if current < total:
                    executor.pause()

        if unload_between_models:
            executor.backend.unload(model)

    return tuple(results)


def assess(results: tuple, scenarios: list[TestScenario],
           assessor: Optional[QualityAssessor] = None) -> tuple:
    """Attach heuristic quality scores to successful results."""
    assessor = assessor or QualityAssessor()
    hints = {scenario.name: scenario.expected_length for scenario in scenarios}

    assessed = []
    for result in results:
        if not result.success:
            assessed.append(result)
            continue
        assessed.append(replace(
            result,
            quality_score=assessor.score(result.output, result.use_case, hints.get(result.scenario)),
            format_compliant=assessor.check_format_compliance(result.output, result.use_case),
            technical_vocabulary=assessor.has_technical_vocabulary(result.output),
        ))
    return tuple(assessed)


def enrich(results: tuple, profile: HardwareProfile, engine: Optional[RankingEngine] = None) -> tuple:
    engine = engine or RankingEngine()
    return tuple(engine.enrich(result, profile) for result in results)


def summarize(results: tuple, profile: HardwareProfile,
              engine: Optional[RankingEngine] = None,
              recommender: Optional[ConfigRecommender] = None) -> Summary:
    """Rank the results and attach the recommended configuration."""
    engine = engine or RankingEngine()
    recommender = recommender or ConfigRecommender()
    summary = engine.rank(list(results), profile)
    return replace(summary, recommended_config=recommender.recommend(summary, profile))


def run_experiment(
    backend: InferenceBackend,
    candidates: list[str],
    scenarios: list[TestScenario],
    runs: int = 1,
    timeout: float = 60,
    profile: Optional[HardwareProfile] = None,
    executor: Optional[BenchmarkExecutor] = None,
    checker: Optional[ModelAvailabilityChecker] = None,
    assessor: Optional[QualityAssessor] = None,
    engine: Optional[RankingEngine] = None,
    recommender: Optional[ConfigRecommender] = None,
    observer: Optional[ProgressObserver] = None,
    unload_between_models: bool = False,
) -> ExperimentRun:
    """Profile the host, benchmark every installed candidate and summarize.

    Raises:
        NoModelsAvailable: before any benchmarking, when no candidate is installed
    """
    profile = profile or profile_hardware()
    checker = checker or ModelAvailabilityChecker(backend)
    executor = executor or BenchmarkExecutor(backend)
    engine = engine or RankingEngine()

    models = resolve_models(checker, candidates, observer)
    logger.info("Benchmarking %d models x %d scenarios x %d runs", len(models), len(scenarios), runs)

    raw = execute(executor, models, scenarios, runs, timeout, observer, unload_between_models)
    results = enrich(assess(raw, scenarios, assessor), profile, engine)
    summary = summarize(results, profile, engine, recommender)

    return ExperimentRun(
        profile=profile,
        available_models=tuple(models),
        results=results,
        summary=summary,
    )
