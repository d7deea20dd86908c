"""Deployable configuration derived from a benchmark summary."""

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Optional

from .hardware import HardwareProfile

if TYPE_CHECKING:
    from .ranking import Summary

LOW_RAM_THRESHOLD_MB = 8192

# Known-lightweight models offered regardless of benchmark outcome
DEFAULT_FALLBACK_CHAIN = ("mistral:latest", "llama2:7b", "orca-mini:3b")

DEFAULT_ENV_PREFIX = "UROBORO"

USE_CASE_TIMEOUTS = {
    "capture": 15,
    "summary": 30,
    "social": 30,
    "devlog": 45,
    "blog": 60,
}
DEFAULT_USE_CASE_TIMEOUT = 45


@dataclass(frozen=True)
class RecommendedConfig:
    primary_model: Optional[str]
    fallback_chain: list
    context_length: int
    concurrent_requests: int
    memory_buffer_mb: int
    swap_recommendation: str
    use_case_models: dict = field(default_factory=dict)
    timeouts: dict = field(default_factory=dict)
    environment_vars: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ResourceTier:
    context_length: int
    concurrent_requests: int
    memory_buffer_mb: int
    swap_recommendation: str


LOW_RAM_TIER = ResourceTier(2048, 1, 1024, "Enable 4GB swap file")
STANDARD_TIER = ResourceTier(4096, 2, 2048, "Optional")


class ConfigRecommender:
    """Maps a summary and hardware profile onto a RecommendedConfig.

    A pure function of its inputs: the same summary and profile always give
    the same configuration.
    """

    def __init__(
        self,
        fallback_chain: tuple = DEFAULT_FALLBACK_CHAIN,
        env_prefix: str = DEFAULT_ENV_PREFIX,
        low_ram_threshold_mb: int = LOW_RAM_THRESHOLD_MB,
    ):
        self.fallback_chain = tuple(fallback_chain)
        self.env_prefix = env_prefix.upper().rstrip("_")
        self.low_ram_threshold_mb = low_ram_threshold_mb

    def resource_tier(self, profile: HardwareProfile) -> ResourceTier:
        if profile.available_ram_mb < self.low_ram_threshold_mb:
            return LOW_RAM_TIER
        return STANDARD_TIER

    def environment_vars(self, primary_model: Optional[str], tier: ResourceTier,
                         use_case_models: dict, profile: HardwareProfile) -> dict:
        prefix = self.env_prefix
        env = {
            "OLLAMA_MAX_LOADED_MODELS": "1",
            "OLLAMA_NUM_PARALLEL": "1",
        }
        if profile.thermal_profile in ("mobile", "laptop"):
            env["OLLAMA_FLASH_ATTENTION"] = "1"

        if primary_model:
            env[f"{prefix}_DEFAULT_MODEL"] = primary_model
        env[f"{prefix}_CONTEXT_LENGTH"] = str(tier.context_length)
        env[f"{prefix}_MAX_CONCURRENT"] = str(tier.concurrent_requests)
        env[f"{prefix}_MEMORY_BUFFER"] = str(tier.memory_buffer_mb)
        for use_case in sorted(use_case_models):
            env[f"{prefix}_MODEL_{use_case.upper()}"] = use_case_models[use_case]
        return env

    def recommend(self, summary: "Summary", profile: HardwareProfile) -> RecommendedConfig:
        best = summary.best_overall()
        primary_model = best.model if best else None
        tier = self.resource_tier(profile)

        use_case_models = {use_case: summary.optimal_models[use_case]
                           for use_case in sorted(summary.optimal_models)}
        timeouts = {use_case: USE_CASE_TIMEOUTS.get(use_case, DEFAULT_USE_CASE_TIMEOUT)
                    for use_case in use_case_models}

        return RecommendedConfig(
            primary_model=primary_model,
            fallback_chain=list(self.fallback_chain),
            context_length=tier.context_length,
            concurrent_requests=tier.concurrent_requests,
            memory_buffer_mb=tier.memory_buffer_mb,
            swap_recommendation=tier.swap_recommendation,
            use_case_models=use_case_models,
            timeouts=timeouts,
            environment_vars=self.environment_vars(primary_model, tier, use_case_models, profile),
        )
