"""Built-in test scenario catalogs.

Two catalogs ship with the tool. ``lowspec`` covers each use case once with a
prompt sized for resource-constrained devices. ``uroboro`` mirrors the prompt
templates of the uroboro publishing tool and carries expected-length hints.
"""

from dataclasses import asdict, dataclass
from typing import Optional

from .errors import ExperimentConfigError

USE_CASES = ("capture", "summary", "social", "devlog", "blog")
PRIORITIES = ("speed", "quality", "memory")
DEFAULT_PRIORITY = "memory"


@dataclass(frozen=True)
class TestScenario:
    """One prompt to run against every model."""

    __test__ = False

    name: str
    use_case: str
    prompt: str
    priority: str = DEFAULT_PRIORITY
    max_tokens: Optional[int] = None
    expected_length: Optional[int] = None
    description: str = ""
    input: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


def scenario_from_dict(data: dict, index: int = 0) -> TestScenario:
    """Build a scenario from an experiment file entry.

    Raises:
        ExperimentConfigError: If required fields are missing or invalid
    """
    if not isinstance(data, dict):
        raise ExperimentConfigError(f"Scenario {index + 1} must be a mapping")

    for field in ("name", "use_case", "prompt"):
        if not data.get(field):
            raise ExperimentConfigError(f"Scenario {index + 1} missing required field: {field}")

    priority = data.get("priority", DEFAULT_PRIORITY)
    if priority not in PRIORITIES:
        raise ExperimentConfigError(f"Scenario {index + 1} has invalid priority: {priority}")

    def optional_int(key):
        value = data.get(key)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ExperimentConfigError(f"Scenario {index + 1} has invalid {key}: {value!r}")

    return TestScenario(
        name=str(data["name"]),
        use_case=str(data["use_case"]).lower(),
        prompt=str(data["prompt"]),
        priority=priority,
        max_tokens=optional_int("max_tokens"),
        expected_length=optional_int("expected_length"),
        description=str(data.get("description", "")),
        input=str(data.get("input", "")),
    )


# =============================================================================
# Low-spec catalog
# =============================================================================

LOWSPEC_SCENARIOS = (
    TestScenario(
        name="Ultra-Fast Capture",
        description="Minimal latency for real-time development capture",
        use_case="capture",
        priority="speed",
        max_tokens=100,
        prompt="Summarize in one sentence: Fixed authentication bug in user service",
    ),
    TestScenario(
        name="Memory-Efficient Summary",
        description="Quality summary with minimal memory footprint",
        use_case="summary",
        priority="memory",
        max_tokens=200,
        prompt=(
            "Create a concise technical summary: Implemented Redis caching layer, "
            "reduced database queries by 60%, improved API response time from 800ms to 200ms"
        ),
    ),
    TestScenario(
        name="Battery-Friendly Social",
        description="Social media content optimized for battery life",
        use_case="social",
        priority="speed",
        max_tokens=150,
        prompt=(
            "Create engaging social media post: Successfully deployed microservices "
            "architecture, achieved 99.9% uptime"
        ),
    ),
    TestScenario(
        name="Quality-Focused Devlog",
        description="Technical content that balances quality and resources",
        use_case="devlog",
        priority="quality",
        max_tokens=400,
        prompt=(
            "Write technical development log: Migrated from monolith to microservices. "
            "Challenges: data consistency, service discovery, monitoring. "
            "Solutions: event sourcing, Consul, Prometheus"
        ),
    ),
    TestScenario(
        name="Resource-Constrained Blog",
        description="Blog post generation for very low-spec devices",
        use_case="blog",
        priority="memory",
        max_tokens=600,
        prompt=(
            "Write engaging blog post about: Building resilient distributed systems. "
            "Cover: fault tolerance, circuit breakers, graceful degradation. "
            "Target: developers learning microservices"
        ),
    ),
)


# =============================================================================
# uroboro catalog
# =============================================================================

def build_capture_prompt(work: str) -> str:
    return (
        "Convert this development insight into a concise, professional summary "
        "suitable for a development log:\n\n"
        f"Input: {work}\n\n"
        "Requirements:\n"
        "- Keep it brief (1-2 sentences)\n"
        "- Professional tone\n"
        "- Technical accuracy\n"
        "- Include the key benefit or outcome\n\n"
        "Summary:"
    )


def build_devlog_prompt(work: str) -> str:
    return (
        "Create a technical development log entry from this work summary. "
        "Format as markdown with clear sections:\n\n"
        f"Work Summary: {work}\n\n"
        "Generate a technical devlog that includes:\n"
        "- ## What Was Done\n"
        "- ## Technical Details\n"
        "- ## Challenges Faced\n"
        "- ## Outcomes & Benefits\n"
        "- ## Next Steps\n\n"
        "Keep it detailed but focused, suitable for technical team members."
    )


def build_blog_prompt(work: str, title: str) -> str:
    return (
        "Transform this development work into an engaging blog post for a technical audience:\n\n"
        f"Work Summary: {work}\n"
        f"Suggested Title: {title}\n\n"
        "Create a professional blog post with:\n"
        "- Engaging introduction\n"
        "- Technical details and decisions\n"
        "- Challenges and solutions\n"
        "- Key takeaways\n"
        "- Conclusion\n\n"
        "Target audience: Software engineers and technical leaders\n"
        "Tone: Professional but approachable\n"
        "Format: Well-structured markdown"
    )


def build_social_prompt(work: str) -> str:
    return (
        "Create engaging social media content for LinkedIn/Twitter from this development work:\n\n"
        f"Achievement: {work}\n\n"
        "Requirements:\n"
        "- Professional but engaging tone\n"
        "- Include relevant technical hashtags\n"
        "- Highlight the impact/benefit\n"
        "- Keep it concise but informative\n"
        "- Make it shareable\n\n"
        "Social Post:"
    )


def _uroboro_scenario(name, use_case, priority, work, prompt, expected_length):
    return TestScenario(
        name=name,
        use_case=use_case,
        priority=priority,
        input=work,
        prompt=prompt,
        expected_length=expected_length,
    )


_BUG_FIX = "Fixed memory leak in HTTP client by properly closing response bodies"
_FEATURE = "Added JWT authentication middleware with token refresh logic"
_PERF = "Optimized database queries, reduced response time from 2s to 200ms"
_REFACTOR = (
    "Migrated from monolithic to microservices architecture. Split user service, "
    "auth service, and notification service. Implemented service mesh with Istio."
)
_API = (
    "Built RESTful API with Go and Gin. Added rate limiting, request validation, and "
    "comprehensive error handling. Integrated with PostgreSQL using GORM."
)
_K8S = (
    "Successfully migrated legacy system to Kubernetes. Achieved 99.9% uptime, reduced "
    "infrastructure costs by 40%, improved deployment frequency from weekly to daily."
)
_LESSONS = (
    "Learned about distributed systems challenges while debugging intermittent service "
    "failures. Root cause was network partitions and improper timeout handling."
)
_LATENCY = (
    "Reduced API latency by 85% through intelligent caching strategy. Production system "
    "now handles 10x more requests."
)
_GC = (
    "Deep dive into Go's garbage collector revealed interesting optimization "
    "opportunities. Small changes, big performance impact."
)

UROBORO_SCENARIOS = (
    _uroboro_scenario("Quick Bug Fix Capture", "capture", "speed", _BUG_FIX,
                      build_capture_prompt(_BUG_FIX), 150),
    _uroboro_scenario("Feature Implementation Capture", "capture", "speed", _FEATURE,
                      build_capture_prompt(_FEATURE), 200),
    _uroboro_scenario("Performance Optimization Capture", "capture", "speed", _PERF,
                      build_capture_prompt(_PERF), 180),
    _uroboro_scenario("Architecture Refactor Devlog", "devlog", "quality", _REFACTOR,
                      build_devlog_prompt(_REFACTOR), 800),
    _uroboro_scenario("API Development Devlog", "devlog", "quality", _API,
                      build_devlog_prompt(_API), 600),
    _uroboro_scenario("Technical Achievement Blog", "blog", "quality", _K8S,
                      build_blog_prompt(_K8S, "Building Resilient Systems: Our Kubernetes Migration Story"),
                      1200),
    _uroboro_scenario("Lessons Learned Blog", "blog", "quality", _LESSONS,
                      build_blog_prompt(_LESSONS, "Debugging Distributed Systems: A Learning Journey"),
                      1000),
    _uroboro_scenario("Achievement Social Post", "social", "speed", _LATENCY,
                      build_social_prompt(_LATENCY), 300),
    _uroboro_scenario("Learning Social Post", "social", "speed", _GC,
                      build_social_prompt(_GC), 250),
)

CATALOGS = {
    "lowspec": LOWSPEC_SCENARIOS,
    "uroboro": UROBORO_SCENARIOS,
}
DEFAULT_CATALOG = "lowspec"


def get_catalog(name: str = DEFAULT_CATALOG) -> tuple[TestScenario, ...]:
    """Return a built-in catalog by name.

    Raises:
        ExperimentConfigError: If no catalog has that name
    """
    try:
        return CATALOGS[name]
    except KeyError:
        raise ExperimentConfigError(
            f"Unknown scenario catalog: {name} (choose from {', '.join(sorted(CATALOGS))})"
        ) from None
