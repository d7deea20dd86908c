#!/usr/bin/env python3
"""
Low-Spec Local LLM Benchmark
============================
Benchmark locally installed models across use-case scenarios, rank them for
this device and generate a ready-to-source configuration.

Usage:
    lowspec-bench                              # Default candidates and catalog
    lowspec-bench --installed --runs 2         # Every installed model, 2 runs each
    lowspec-bench -c experiment.yaml --skip-warnings
    lowspec-bench --from-results results/low_spec_benchmark_host_2025-01-01_10-00-00.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .availability import ModelAvailabilityChecker, memory_fit_indicator
from .errors import ExperimentConfigError, NoModelsAvailable
from .executor import BenchmarkExecutor, BenchmarkResult
from .experiment import ExperimentConfig, default_experiment, load_experiment
from .hardware import HardwareProfile, get_available_memory_mb, profile_hardware
from .persist import CSV_FILENAME, ResultsPersister
from .pipeline import ProgressObserver, run_experiment, summarize
from .ranking import Summary
from .recommend import ConfigRecommender
from .reports import write_artifacts
from .runtime import InferenceBackend, OllamaBackend
from .scenarios import CATALOGS, DEFAULT_CATALOG, TestScenario, get_catalog

logger = logging.getLogger(__name__)


# =============================================================================
# Console Output
# =============================================================================

def print_rule(char: str = "=") -> None:
    print(char * 60)


def print_hardware_profile(profile: HardwareProfile) -> None:
    print(f"Device:     {profile.device_name}")
    print(f"OS:         {profile.os}/{profile.architecture}")
    print(f"CPU cores:  {profile.cpu_cores}")
    print(f"RAM:        {profile.total_ram_mb}MB total, {profile.available_ram_mb}MB available")
    print(f"Storage:    {profile.storage_type}")
    print(f"Thermal:    {profile.thermal_profile} (inferred)")
    print(f"Power:      {profile.power_profile} (inferred)")


class ConsoleProgress(ProgressObserver):
    """Prints a pass/fail line per invocation and a memory check per model."""

    def __init__(self, checker: Optional[ModelAvailabilityChecker] = None, buffer_mb: float = 1024):
        self.checker = checker
        self.buffer_mb = buffer_mb

    def on_models_resolved(self, available: list[str], unavailable: list[str]) -> None:
        print("\nChecking model availability...")
        for model in available:
            print(f"  ✓ {model}")
        for model in unavailable:
            print(f"  ✗ {model} (not installed)")

    def on_model_start(self, model: str, index: int, total: int) -> None:
        print()
        print_rule()
        print(f"Model {index + 1} of {total}: {model}")
        print_rule()

        if self.checker is None:
            return
        estimated = self.checker.estimate_model_memory_mb(model)
        if estimated is None:
            return
        available = get_available_memory_mb()
        indicator = memory_fit_indicator(estimated, available, self.buffer_mb)
        print(f"  Memory: ~{estimated:.0f}MB needed + {self.buffer_mb:.0f}MB buffer, "
              f"{available}MB available  {indicator}")

    def on_invocation_start(self, model: str, scenario: TestScenario, run_index: int,
                            current: int, total: int) -> None:
        print(f"  {scenario.name} ({scenario.use_case}) run {run_index + 1} "
              f"[{current}/{total}] ", end="", flush=True)

    def on_result(self, result: BenchmarkResult, current: int, total: int) -> None:
        if result.success:
            print(f"✓ {result.response_time_s:.1f}s "
                  f"(~{result.tokens_per_second:.1f} tok/s, Δ{result.peak_memory_mb}MB)")
        else:
            print(f"✗ {result.error_type}: {result.error}")


def print_summary(summary: Summary) -> None:
    print()
    print_rule()
    print("LOW-SPEC OPTIMIZATION RESULTS")
    print_rule()

    print("\nOptimal models by use case:")
    if summary.optimal_models:
        for use_case, model in summary.optimal_models.items():
            print(f"  {use_case:<10} {model}")
    else:
        print("  (none - no model completed a run)")

    print("\nModel success rates:")
    for model, stats in summary.model_stats.items():
        flag = "  ⚠ unreliable" if model in summary.unreliable_models else ""
        line = f"  {model:<30} {stats.successes}/{stats.total_tests} ({stats.success_rate:.0%})"
        if stats.successes:
            line += f", avg {stats.avg_response_time_s:.1f}s"
        print(line + flag)

    print("\nMemory recommendations:")
    for rec in summary.memory_recommendations:
        print(f"  • {rec}")

    print("\nPerformance insights:")
    for insight in summary.performance_insights:
        print(f"  • {insight}")

    print(f"\nCost efficiency score: {summary.cost_efficiency_score:.4f}")

    config = summary.recommended_config
    if config is None:
        return
    print("\nRecommended configuration:")
    print(f"  Primary model:       {config.primary_model or '-'}")
    print(f"  Fallback chain:      {', '.join(config.fallback_chain)}")
    print(f"  Context length:      {config.context_length} tokens")
    print(f"  Concurrent requests: {config.concurrent_requests}")
    print(f"  Memory buffer:       {config.memory_buffer_mb}MB")
    print(f"  Swap:                {config.swap_recommendation}")
    print("\n  Environment variables:")
    for key, value in config.environment_vars.items():
        print(f"    {key}={value}")


def print_process_warning(loaded: list[str], stage: str) -> bool:
    """Warn about models already resident in memory.

    Returns:
        True if a warning was printed, False otherwise.
    """
    if not loaded:
        return False

    if stage == "pre":
        print(f"\n⚠ WARNING: model(s) already loaded in memory: {', '.join(loaded)}")
        print("  This skews the memory-delta measurement and may cause conflicts.")
    else:
        print(f"\n⚠ WARNING: model(s) still loaded in memory: {', '.join(loaded)}")
        print("  You may want to unload these to free memory.")
    print("  To unload: ollama stop <model_name>")
    return True


def confirm(question: str) -> bool:
    return input(f"\n{question} [y/N] ").strip().lower() == "y"


# =============================================================================
# Commands
# =============================================================================

def build_recommender(settings: dict) -> ConfigRecommender:
    return ConfigRecommender(
        fallback_chain=tuple(settings["fallback_chain"]),
        env_prefix=settings["env_prefix"],
    )


def emit_outputs(profile: HardwareProfile, results, summary: Summary,
                 settings: dict, write_files: bool) -> None:
    print_summary(summary)
    if not write_files:
        return

    print()
    print("Generating configuration...")
    paths = write_artifacts(summary, profile, list(results), settings["results_dir"], settings["env_prefix"])
    print(f"  Shell config:   {paths['env']}")
    print(f"  JSON config:    {paths['json']}")
    print(f"  Setup guide:    {paths['setup']}")
    print(f"  HTML report:    {paths['html']}")


def rerank_saved_results(path: str, args) -> int:
    """Regenerate the summary and artifacts from a saved results file."""
    try:
        profile, results, experiment = ResultsPersister.load(path)
    except FileNotFoundError:
        print(f"Error: Results file not found: {path}")
        return 1
    except (ValueError, KeyError) as e:
        print(f"Error reading results: {e}")
        return 1

    settings = dict(default_experiment().settings)
    settings.update(experiment.get("settings") or {})
    if args.results_dir:
        settings["results_dir"] = args.results_dir

    print(f"Re-ranking {len(results)} results from {path}")
    print_hardware_profile(profile)
    summary = summarize(tuple(results), profile, recommender=build_recommender(settings))
    emit_outputs(profile, results, summary, settings, not args.no_artifacts)
    return 0


def resolve_experiment(args) -> ExperimentConfig:
    if args.config:
        experiment = load_experiment(args.config)
    else:
        experiment = default_experiment(args.catalog or DEFAULT_CATALOG)

    if args.catalog and args.config:
        experiment.scenarios = get_catalog(args.catalog)
        experiment.catalog = args.catalog
    if args.models:
        experiment.models = list(args.models)
    if args.runs is not None:
        if args.runs < 1:
            raise ExperimentConfigError("--runs must be at least 1")
        experiment.runs = args.runs
    if args.timeout is not None:
        if args.timeout <= 0:
            raise ExperimentConfigError("--timeout must be positive")
        experiment.timeout_seconds = args.timeout
    if args.results_dir:
        experiment.settings["results_dir"] = args.results_dir
    if args.pause is not None:
        experiment.settings["pause_seconds"] = args.pause
    if args.no_unload:
        experiment.settings["unload_between_models"] = False
    return experiment


def run_benchmarks(args, backend: Optional[InferenceBackend] = None) -> int:
    try:
        experiment = resolve_experiment(args)
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}")
        return 1
    except ExperimentConfigError as e:
        print(f"Error loading config: {e}")
        return 1

    settings = experiment.settings
    backend = backend or OllamaBackend()

    print_rule()
    print("Low-Spec Local LLM Benchmark")
    print_rule()
    print("Profiling device hardware...")
    profile = profile_hardware()
    print_hardware_profile(profile)

    if print_process_warning(backend.loaded_models(), "pre"):
        if args.skip_warnings:
            print("  (--skip-warnings: continuing anyway)")
        elif not confirm("Continue anyway?"):
            return 0

    checker = ModelAvailabilityChecker(backend, settings["list_timeout_seconds"])
    candidates = checker.installed_models() if args.installed else experiment.models
    if args.installed:
        experiment.models = list(candidates)

    print(f"\nCandidates: {len(candidates)} models, {len(experiment.scenarios)} scenarios, "
          f"{experiment.runs} run(s) each, {experiment.timeout_seconds:g}s timeout")

    executor = BenchmarkExecutor(backend, pause_seconds=settings["pause_seconds"])
    try:
        run = run_experiment(
            backend,
            candidates,
            list(experiment.scenarios),
            runs=experiment.runs,
            timeout=experiment.timeout_seconds,
            profile=profile,
            executor=executor,
            checker=checker,
            recommender=build_recommender(settings),
            observer=ConsoleProgress(checker, settings["min_free_ram_buffer_mb"]),
            unload_between_models=settings["unload_between_models"],
        )
    except NoModelsAvailable as e:
        print(f"\n✗ {e}")
        return 1

    persister = ResultsPersister(settings["results_dir"])
    record = persister.save(run.profile, list(run.results), run.summary, experiment.to_dict())
    persister.append_log(run.profile, list(run.results))
    print(f"\n✓ Results saved to {record}")
    print(f"✓ Results logged to {Path(settings['results_dir']) / CSV_FILENAME}")

    emit_outputs(run.profile, run.results, run.summary, settings, not args.no_artifacts)

    print_process_warning(backend.loaded_models(), "post")
    return 0


# =============================================================================
# Main
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Benchmark local LLMs on this device and recommend a configuration"
    )
    parser.add_argument(
        "--config", "-c",
        help="Experiment file (YAML or JSON) with models, scenarios, runs and timeout",
    )
    parser.add_argument(
        "--models", "-m",
        nargs="+",
        metavar="MODEL",
        help="Candidate models (overrides the experiment file)",
    )
    parser.add_argument(
        "--installed",
        action="store_true",
        help="Benchmark every installed model instead of the candidate list",
    )
    parser.add_argument(
        "--catalog",
        choices=sorted(CATALOGS),
        help="Built-in scenario catalog (default: lowspec)",
    )
    parser.add_argument("--runs", type=int, help="Repetitions per model and scenario")
    parser.add_argument("--timeout", type=float, help="Seconds allowed per invocation")
    parser.add_argument("--results-dir", help="Output directory (default: results)")
    parser.add_argument("--pause", type=float, help="Seconds to pause between invocations")
    parser.add_argument(
        "--skip-warnings",
        action="store_true",
        help="Skip confirmation prompts for loaded-model warnings",
    )
    parser.add_argument(
        "--no-unload",
        action="store_true",
        help="Keep each model loaded after its runs finish",
    )
    parser.add_argument(
        "--no-artifacts",
        action="store_true",
        help="Do not write the shell/JSON/markdown/HTML configuration files",
    )
    parser.add_argument(
        "--from-results",
        metavar="PATH",
        help="Re-rank a saved results file instead of running benchmarks",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.installed and args.models:
        print("Error: Cannot use --installed and --models together")
        return 1

    if args.from_results:
        return rerank_saved_results(args.from_results, args)
    return run_benchmarks(args)


if __name__ == "__main__":
    sys.exit(main())
