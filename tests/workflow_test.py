"""Scheduled update workflow wiring.
Run: pytest -q
"""
import pathlib
import re

REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
WORKFLOW = REPO_ROOT / ".github" / "workflows" / "update.yml"


def scripts_declared():
    text = (REPO_ROOT / "pyproject.toml").read_text(encoding="utf-8")
    section = text.split("[project.scripts]", 1)[1].split("\n[", 1)[0]
    return set(re.findall(r'^([\w-]+)\s*=', section, re.M))


def test_workflow_runs_declared_entry_points():
    text = WORKFLOW.read_text(encoding="utf-8")
    assert "cron:" in text
    for script in ("insert-svg", "update-profile"):
        assert script in text
        assert script in scripts_declared()


def test_workflow_passes_required_settings_and_commits_cache():
    text = WORKFLOW.read_text(encoding="utf-8")
    for var in ("ACCESS_TOKEN", "USER_NAME", "DATE_OF_BIRTH"):
        assert f"{var}:" in text
    assert "git add ./*_mode.svg ./cache/*.txt" in text
