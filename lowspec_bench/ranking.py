"""Risk flags, usability scoring and per-use-case model ranking."""

import logging
from dataclasses import asdict, dataclass, field, replace
from statistics import mean
from typing import Optional

from .executor import BenchmarkResult
from .hardware import HardwareProfile
from .recommend import RecommendedConfig

logger = logging.getLogger(__name__)

SCORE_PRECISION = 6


@dataclass(frozen=True)
class RankingWeights:
    """Weights, penalties and thresholds used when ranking models."""

    # priority -> (time weight, quality weight)
    priority_weights: dict = field(default_factory=lambda: {
        "speed": (0.7, 0.3),
        "quality": (0.3, 0.7),
        "memory": (0.5, 0.5),
    })
    default_weights: tuple = (0.5, 0.5)
    low_ram_threshold_mb: int = 8192
    oom_penalty: float = 2.0
    battery_penalty: float = 1.0
    no_throttle_bonus: float = 0.5
    oom_medium_ratio: float = 0.5
    oom_high_ratio: float = 0.8
    reliable_success_rate: float = 0.5


@dataclass(frozen=True)
class ThermalBaselines:
    """Expected response time per thermal class, in seconds."""

    baselines: dict = field(default_factory=lambda: {
        "mobile": 10.0,
        "laptop": 8.0,
        "desktop": 5.0,
    })
    default_baseline: float = 3.0
    multiplier: float = 2.0

    def baseline(self, thermal_profile: str) -> float:
        return self.baselines.get(thermal_profile, self.default_baseline)


DEFAULT_WEIGHTS = RankingWeights()
DEFAULT_BASELINES = ThermalBaselines()


# =============================================================================
# Risk Flags
# =============================================================================

def assess_oom_risk(memory_delta_mb: float, available_ram_mb: float,
                    weights: RankingWeights = DEFAULT_WEIGHTS) -> str:
    """Classify out-of-memory danger from the delta / available ratio.

    <0.5 low, [0.5, 0.8) medium, >=0.8 high. A delta that did not grow counts
    as low; an unknown amount of available RAM gives "unknown".
    """
    if available_ram_mb <= 0:
        return "unknown"
    if memory_delta_mb <= 0:
        return "low"

    ratio = memory_delta_mb / available_ram_mb
    if ratio < weights.oom_medium_ratio:
        return "low"
    elif ratio < weights.oom_high_ratio:
        return "medium"
    return "high"


def assess_thermal_throttling(response_time_s: float, thermal_profile: str,
                              baselines: ThermalBaselines = DEFAULT_BASELINES) -> bool:
    """Suspect throttling when latency exceeds twice the class baseline."""
    return response_time_s > baselines.baseline(thermal_profile) * baselines.multiplier


def assess_battery_impact(response_time_s: float, memory_delta_mb: float, power_profile: str) -> str:
    if power_profile != "battery":
        return "n/a"

    impact = response_time_s + max(memory_delta_mb, 0) / 1000.0
    if impact < 5.0:
        return "minimal"
    elif impact < 15.0:
        return "moderate"
    return "high"


def time_score(response_time_s: float) -> float:
    """5 for an instant answer, losing a point per 10 seconds, floored at 1."""
    return max(1.0, 5.0 - response_time_s / 10.0)


def usability_score(response_time_s: float, quality_score: float, priority: str,
                    weights: RankingWeights = DEFAULT_WEIGHTS) -> float:
    """Quality and speed blended by the scenario's declared priority."""
    time_weight, quality_weight = weights.priority_weights.get(priority, weights.default_weights)
    return time_weight * time_score(response_time_s) + quality_weight * quality_score


# =============================================================================
# Summary Types
# =============================================================================

@dataclass(frozen=True)
class ModelRanking:
    model: str
    score: float
    avg_response_time_s: float
    successes: int
    failures: int
    reason: str = ""

    def sort_key(self):
        return (-self.score, self.avg_response_time_s, self.failures, self.model)


@dataclass(frozen=True)
class ModelStats:
    total_tests: int
    successes: int
    success_rate: float
    avg_response_time_s: float
    avg_output_length: float
    avg_tokens_per_second: float
    reliable: bool


@dataclass(frozen=True)
class Summary:
    """Rankings and recommendations derived from one set of results."""

    optimal_models: dict
    rankings: dict
    model_stats: dict
    unreliable_models: list
    memory_recommendations: list
    performance_insights: list
    cost_efficiency_score: float
    recommended_config: Optional[RecommendedConfig] = None

    def best_overall(self) -> Optional[ModelRanking]:
        """Best ranking entry across every use case."""
        entries = [entry for rankings in self.rankings.values() for entry in rankings]
        if not entries:
            return None
        return min(entries, key=ModelRanking.sort_key)

    def to_dict(self) -> dict:
        return {
            "optimal_models": dict(self.optimal_models),
            "rankings": {
                use_case: [asdict(entry) for entry in entries]
                for use_case, entries in self.rankings.items()
            },
            "model_stats": {model: asdict(stats) for model, stats in self.model_stats.items()},
            "unreliable_models": list(self.unreliable_models),
            "memory_recommendations": list(self.memory_recommendations),
            "performance_insights": list(self.performance_insights),
            "cost_efficiency_score": self.cost_efficiency_score,
            "recommended_config": (
                self.recommended_config.to_dict() if self.recommended_config else None
            ),
        }


# =============================================================================
# Ranking
# =============================================================================

class RankingEngine:
    """Derives risk flags per result and ranks models per use case.

    Ranking is deterministic: models and use cases are visited in sorted
    order and ties are broken by average response time, then by failed run
    count, then by model id.
    """

    def __init__(self, weights: RankingWeights = DEFAULT_WEIGHTS,
                 baselines: ThermalBaselines = DEFAULT_BASELINES):
        self.weights = weights
        self.baselines = baselines

    def enrich(self, result: BenchmarkResult, profile: HardwareProfile) -> BenchmarkResult:
        """Copy of ``result`` with risk flags and usability score filled in."""
        flags = {
            "oom_risk": assess_oom_risk(result.peak_memory_mb, profile.available_ram_mb, self.weights),
            "swap_used": result.peak_memory_mb > profile.available_ram_mb > 0,
        }
        if result.success:
            flags["thermal_throttling"] = assess_thermal_throttling(
                result.response_time_s, profile.thermal_profile, self.baselines
            )
            flags["battery_impact"] = assess_battery_impact(
                result.response_time_s, result.peak_memory_mb, profile.power_profile
            )
            flags["memory_efficiency"] = (
                result.output_length / result.peak_memory_mb if result.peak_memory_mb > 0 else 0.0
            )
            flags["usability_score"] = usability_score(
                result.response_time_s, result.quality_score, result.priority, self.weights
            )
        return replace(result, **flags)

    def adjusted_score(self, result: BenchmarkResult, profile: HardwareProfile) -> float:
        """Usability score with hardware penalties and the thermal bonus applied."""
        score = result.usability_score
        if profile.available_ram_mb < self.weights.low_ram_threshold_mb and result.oom_risk == "high":
            score -= self.weights.oom_penalty
        if result.battery_impact == "high":
            score -= self.weights.battery_penalty
        if not result.thermal_throttling:
            score += self.weights.no_throttle_bonus
        return score

    def rank_use_case(self, results: list[BenchmarkResult], profile: HardwareProfile) -> list[ModelRanking]:
        """Rank the models tested on one use case, best first.

        Models without a single successful run are left out, so they can
        never win.
        """
        by_model: dict[str, list[BenchmarkResult]] = {}
        for result in results:
            by_model.setdefault(result.model, []).append(result)

        rankings = []
        for model in sorted(by_model):
            model_results = by_model[model]
            successes = [r for r in model_results if r.success]
            failures = len(model_results) - len(successes)
            if not successes:
                continue

            score = round(mean(self.adjusted_score(r, profile) for r in successes), SCORE_PRECISION)
            avg_time = round(mean(r.response_time_s for r in successes), SCORE_PRECISION)
            avg_quality = mean(r.quality_score for r in successes)
            rankings.append(ModelRanking(
                model=model,
                score=score,
                avg_response_time_s=avg_time,
                successes=len(successes),
                failures=failures,
                reason=(
                    f"Avg quality: {avg_quality:.1f}/5, Avg time: {avg_time:.1f}s, "
                    f"Success: {len(successes)}/{len(model_results)}"
                ),
            ))

        return sorted(rankings, key=ModelRanking.sort_key)

    def model_stats(self, results: list[BenchmarkResult]) -> dict[str, ModelStats]:
        by_model: dict[str, list[BenchmarkResult]] = {}
        for result in results:
            by_model.setdefault(result.model, []).append(result)

        stats = {}
        for model in sorted(by_model):
            model_results = by_model[model]
            successes = [r for r in model_results if r.success]
            success_rate = len(successes) / len(model_results)
            stats[model] = ModelStats(
                total_tests=len(model_results),
                successes=len(successes),
                success_rate=success_rate,
                avg_response_time_s=mean(r.response_time_s for r in successes) if successes else 0.0,
                avg_output_length=mean(r.output_length for r in successes) if successes else 0.0,
                avg_tokens_per_second=mean(r.tokens_per_second for r in successes) if successes else 0.0,
                reliable=success_rate >= self.weights.reliable_success_rate,
            )
        return stats

    def rank(self, results: list[BenchmarkResult], profile: HardwareProfile) -> Summary:
        enriched = [self.enrich(result, profile) for result in results]

        by_use_case: dict[str, list[BenchmarkResult]] = {}
        for result in enriched:
            by_use_case.setdefault(result.use_case, []).append(result)

        rankings = {}
        optimal_models = {}
        for use_case in sorted(by_use_case):
            use_case_rankings = self.rank_use_case(by_use_case[use_case], profile)
            rankings[use_case] = use_case_rankings
            if use_case_rankings:
                optimal_models[use_case] = use_case_rankings[0].model
            else:
                logger.info("No successful runs for use case %s, no winner selected", use_case)

        stats = self.model_stats(enriched)
        unreliable = [model for model, model_stats in stats.items() if not model_stats.reliable]

        return Summary(
            optimal_models=optimal_models,
            rankings=rankings,
            model_stats=stats,
            unreliable_models=unreliable,
            memory_recommendations=memory_recommendations(enriched, profile),
            performance_insights=performance_insights(enriched, stats),
            cost_efficiency_score=cost_efficiency_score(enriched),
        )


# =============================================================================
# Narrative
# =============================================================================

def memory_recommendations(results: list[BenchmarkResult], profile: HardwareProfile) -> list[str]:
    recommendations = []

    if profile.available_ram_mb < 4096:
        recommendations.append("Consider using 3B models only for this device")
        recommendations.append("Enable swap file (4GB minimum) for stability")
        recommendations.append("Close other applications during AI processing")
    elif profile.available_ram_mb < 8192:
        recommendations.append("7B models should work well with careful memory management")
        recommendations.append("Monitor memory usage and consider swap for larger models")
    else:
        recommendations.append("Your device can handle most models efficiently")
        recommendations.append("Consider running multiple models for different use cases")

    high_risk = sorted({r.model for r in results if r.oom_risk == "high"})
    if high_risk:
        recommendations.append(f"High OOM risk observed for: {', '.join(high_risk)}")

    return recommendations


def performance_insights(results: list[BenchmarkResult], stats: dict[str, ModelStats]) -> list[str]:
    insights = []
    successful = [r for r in results if r.success]

    if results:
        insights.append(
            f"Success rate: {len(successful)}/{len(results)} tests "
            f"({len(successful) / len(results):.0%})"
        )

    if not successful:
        insights.append("No successful tests - device may be too constrained")
        return insights

    avg_time = mean(r.response_time_s for r in successful)
    insights.append(f"Average response time: {avg_time:.1f}s")
    avg_tps = mean(r.tokens_per_second for r in successful)
    insights.append(f"Average throughput: ~{avg_tps:.1f} tokens/s (estimated at 4 chars/token)")

    throttled = sum(1 for r in successful if r.thermal_throttling)
    if throttled:
        insights.append(f"Thermal throttling suspected in {throttled}/{len(successful)} tests")

    responding = {model: s for model, s in stats.items() if s.successes}
    fastest = min(responding.items(), key=lambda item: (item[1].avg_response_time_s, item[0]))
    insights.append(f"Fastest: {fastest[0]} ({fastest[1].avg_response_time_s:.1f}s avg)")
    most_reliable = min(stats.items(), key=lambda item: (-item[1].success_rate, item[0]))
    insights.append(f"Most reliable: {most_reliable[0]} ({most_reliable[1].success_rate:.0%} success)")

    failed_all = [model for model, s in stats.items() if s.successes == 0]
    if failed_all:
        insights.append(f"Unreliable (failed every run): {', '.join(failed_all)}")

    return insights


def cost_efficiency_score(results: list[BenchmarkResult]) -> float:
    """Mean of quality x tokens/sec per MB over runs with a measurable memory delta."""
    scores = [
        (r.quality_score * r.tokens_per_second) / r.peak_memory_mb
        for r in results
        if r.success and r.peak_memory_mb > 0
    ]
    if not scores:
        return 0.0
    return mean(scores)
