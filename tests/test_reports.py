import json
import os
from dataclasses import replace
from datetime import datetime

import pytest

from conftest import make_result
from lowspec_bench.pipeline import summarize
from lowspec_bench.reports import artifact_paths, write_artifacts

WHEN = datetime(2025, 3, 14, 9, 26, 53)


@pytest.fixture
def run(laptop_profile):
    results = [
        make_result("orca-mini:3b", use_case="capture"),
        make_result("mistral:latest", use_case="blog", priority="quality", output="## Intro\n- point"),
        replace(make_result("broken:7b", use_case="blog", success=False), error="<b>bold</b>"),
    ]
    return results, summarize(tuple(results), laptop_profile)


def test_artifact_names(tmp_path, laptop_profile):
    paths = artifact_paths(tmp_path, laptop_profile)
    assert paths["env"].name == "uroboro_lowspec_config_test_laptop.sh"
    assert paths["json"].name == "uroboro_lowspec_config_test_laptop.json"
    assert paths["setup"].name == "LOWSPEC_SETUP_test_laptop.md"
    assert paths["html"].name == "report.html"


def test_env_script(tmp_path, laptop_profile, run):
    results, summary = run
    paths = write_artifacts(summary, laptop_profile, results, tmp_path, when=WHEN)
    script = paths["env"].read_text()

    assert script.startswith("#!/bin/bash")
    assert "export UROBORO_MODEL_CAPTURE=orca-mini:3b" in script
    assert "export OLLAMA_MAX_LOADED_MODELS=1" in script
    assert "Generated: 2025-03-14 09:26:53" in script
    assert os.access(paths["env"], os.X_OK)


def test_env_script_quotes_values(tmp_path, laptop_profile, run):
    results, summary = run
    config = replace(summary.recommended_config, environment_vars={"UROBORO_DEFAULT_MODEL": "odd model; rm"})
    paths = write_artifacts(replace(summary, recommended_config=config), laptop_profile, results, tmp_path)
    assert "export UROBORO_DEFAULT_MODEL='odd model; rm'" in paths["env"].read_text()


def test_json_config_mirrors_recommendation(tmp_path, laptop_profile, run):
    results, summary = run
    paths = write_artifacts(summary, laptop_profile, results, tmp_path, when=WHEN)
    document = json.loads(paths["json"].read_text())
    config = summary.recommended_config

    assert document["recommended_model"] == config.primary_model
    assert document["fallback_chain"] == config.fallback_chain
    assert document["context_length"] == 2048
    assert document["memory_buffer"] == 1024
    assert document["environment_vars"] == config.environment_vars
    assert document["optimal_models"] == {"blog": "mistral:latest", "capture": "orca-mini:3b"}
    assert document["device_profile"]["thermal_profile"] == "laptop"


def test_setup_report(tmp_path, laptop_profile, run):
    results, summary = run
    paths = write_artifacts(summary, laptop_profile, results, tmp_path, when=WHEN)
    report = paths["setup"].read_text()

    assert report.startswith("# Local AI Setup: Test Laptop")
    assert f"source {paths['env']}" in report
    assert "| capture | orca-mini:3b | 15s |" in report
    assert "broken:7b ⚠ unreliable" in report


def test_html_report_escapes_output(tmp_path, laptop_profile, run):
    results, summary = run
    paths = write_artifacts(summary, laptop_profile, results, tmp_path, when=WHEN)
    html = paths["html"].read_text()

    assert "<table" in html
    assert "broken:7b" in html
    assert "<b>bold</b>" not in html
    assert "&lt;b&gt;bold&lt;/b&gt;" in html


def test_requires_recommended_config(tmp_path, laptop_profile, run):
    results, summary = run
    with pytest.raises(ValueError):
        write_artifacts(replace(summary, recommended_config=None), laptop_profile, results, tmp_path)
