"""Configuration artifacts rendered from a summary.

Each artifact is a projection of the Summary and RecommendedConfig: an
environment file for the downstream tool, a JSON document with the same keys,
a markdown setup report and an HTML results report. None of them adds logic
of its own.
"""

import json
import shlex
from datetime import datetime
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .executor import BenchmarkResult
from .hardware import HardwareProfile
from .persist import sanitize_device_name
from .ranking import Summary
from .recommend import DEFAULT_ENV_PREFIX

TEMPLATE_DIR = Path(__file__).parent / "templates"


def _environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.filters["shell_quote"] = lambda value: shlex.quote(str(value))
    return env


def _render(template_name: str, **context) -> str:
    return _environment().get_template(template_name).render(**context)


def artifact_paths(results_dir: Path, profile: HardwareProfile, env_prefix: str = DEFAULT_ENV_PREFIX) -> dict:
    device = sanitize_device_name(profile.device_name)
    prefix = env_prefix.lower().rstrip("_")
    return {
        "env": results_dir / f"{prefix}_lowspec_config_{device}.sh",
        "json": results_dir / f"{prefix}_lowspec_config_{device}.json",
        "setup": results_dir / f"LOWSPEC_SETUP_{device}.md",
        "html": results_dir / "report.html",
    }


def render_env_script(summary: Summary, profile: HardwareProfile, generated_at: str) -> str:
    return _render(
        "env.sh.j2",
        profile=profile,
        config=summary.recommended_config,
        generated_at=generated_at,
    )


def build_json_config(summary: Summary, profile: HardwareProfile, generated_at: str) -> dict:
    config = summary.recommended_config
    return {
        "device_profile": profile.to_dict(),
        "optimal_models": dict(summary.optimal_models),
        "recommended_model": config.primary_model,
        "fallback_chain": list(config.fallback_chain),
        "context_length": config.context_length,
        "concurrent_requests": config.concurrent_requests,
        "memory_buffer": config.memory_buffer_mb,
        "swap_recommendation": config.swap_recommendation,
        "timeouts": dict(config.timeouts),
        "environment_vars": dict(config.environment_vars),
        "performance_notes": list(summary.performance_insights),
        "generated_at": generated_at,
    }


def render_setup_report(summary: Summary, profile: HardwareProfile, generated_at: str, env_script: str) -> str:
    return _render(
        "recommendations.md.j2",
        profile=profile,
        summary=summary,
        config=summary.recommended_config,
        generated_at=generated_at,
        env_script=env_script,
    )


def render_html_report(summary: Summary, profile: HardwareProfile, results: list[BenchmarkResult],
                       generated_at: str) -> str:
    return _render(
        "report.html.j2",
        profile=profile,
        summary=summary,
        config=summary.recommended_config,
        results=list(results),
        generated_at=generated_at,
    )


def write_artifacts(
    summary: Summary,
    profile: HardwareProfile,
    results: list[BenchmarkResult],
    results_dir="results",
    env_prefix: str = DEFAULT_ENV_PREFIX,
    when: Optional[datetime] = None,
) -> dict:
    """Write every artifact and return a mapping of artifact name to path.

    Raises:
        ValueError: If the summary carries no recommended configuration
    """
    if summary.recommended_config is None:
        raise ValueError("Summary has no recommended configuration")

    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    generated_at = (when or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    paths = artifact_paths(results_dir, profile, env_prefix)

    with open(paths["env"], "w") as f:
        f.write(render_env_script(summary, profile, generated_at))
    paths["env"].chmod(0o755)

    with open(paths["json"], "w") as f:
        json.dump(build_json_config(summary, profile, generated_at), f, indent=2)

    with open(paths["setup"], "w") as f:
        f.write(render_setup_report(summary, profile, generated_at, str(paths["env"])))

    with open(paths["html"], "w") as f:
        f.write(render_html_report(summary, profile, results, generated_at))

    return paths
