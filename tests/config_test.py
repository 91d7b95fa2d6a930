"""Environment configuration and small helpers of update_profile.
Run: pytest -q
"""
import datetime

import pytest

import update_profile
from update_profile import ConfigError, load_config

BASE = {"USER_NAME": "octocat", "ACCESS_TOKEN": "tok", "DATE_OF_BIRTH": "2005-01-17"}


def test_defaults():
    cfg = load_config(BASE)
    assert cfg.user_name == "octocat"
    assert cfg.birthdate == datetime.datetime(2005, 1, 17)
    assert cfg.do_heavy is True and cfg.force_cache is False and cfg.debug is False
    assert (cfg.max_retries, cfg.retry_backoff) == (3, 1.5)
    assert cfg.cache_dir == "cache"
    assert cfg.svg_files == ["dark_mode.svg", "light_mode.svg"]


def test_fallbacks():
    cfg = load_config({"GITHUB_REPOSITORY": "owner/profile", "GITHUB_TOKEN": "t", "BIRTHDATE": "2000-02-29",
                       "FORCE_CACHE": "1", "DO_HEAVY": "0", "SVG_FILES": " a.svg, ,b.svg "})
    assert cfg.user_name == "owner"
    assert cfg.access_token == "t"
    assert cfg.force_cache is True and cfg.do_heavy is False
    assert cfg.svg_files == ["a.svg", "b.svg"]


@pytest.mark.parametrize("missing", ["USER_NAME", "ACCESS_TOKEN", "DATE_OF_BIRTH"])
def test_required_settings(missing):
    env = dict(BASE)
    del env[missing]
    with pytest.raises(ConfigError):
        load_config(env)


def test_invalid_birthdate():
    with pytest.raises(ConfigError, match="YYYY-MM-DD"):
        load_config(dict(BASE, DATE_OF_BIRTH="17/01/2005"))


def test_main_reports_config_error(monkeypatch, capsys):
    for key in ["USER_NAME", "GITHUB_ACTOR", "GITHUB_REPOSITORY"]:
        monkeypatch.delenv(key, raising=False)
    assert update_profile.main() == 1
    assert "[ERROR] Cannot infer USER_NAME" in capsys.readouterr().err


def test_rel_age():
    born = datetime.datetime(2005, 1, 17)
    assert update_profile.rel_age(born, datetime.datetime(2025, 3, 18)) == "20 years, 2 months, 1 day"
    assert update_profile.rel_age(born, datetime.datetime(2006, 1, 17)) == "1 year, 0 months, 0 days"
    assert update_profile.rel_age(born, datetime.datetime(2004, 1, 1)) == "0 years, 0 months, 0 days"
