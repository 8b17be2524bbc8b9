"""Tests for config module."""

import importlib
from pathlib import Path

import dotenv
import pytest

import league_bot.config as config_mod


@pytest.fixture()
def reload_config():
    # Listed before monkeypatch so the final reload sees the restored env.
    yield lambda: importlib.reload(config_mod)
    importlib.reload(config_mod)


def test_defaults(reload_config, monkeypatch):
    for name in (
        "LEAGUE_BOT_DATA_DIR",
        "LEAGUE_BOT_REMIND_BEFORE",
        "LEAGUE_BOT_REFRESH_HOURS",
        "ML_COOKIE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(dotenv, "load_dotenv", lambda: None)

    reload_config()

    assert config_mod.DATA_DIR == Path.home() / ".league-bot"
    assert config_mod.REMIND_BEFORE_MINUTES == 60
    assert config_mod.REFRESH_HOURS == 6
    assert config_mod.ML_COOKIE == ""


def test_env_overrides(reload_config, monkeypatch, tmp_path):
    monkeypatch.setenv("LEAGUE_BOT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("LEAGUE_BOT_TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("LEAGUE_BOT_REMIND_BEFORE", "30")
    monkeypatch.setenv("LEAGUE_BOT_REFRESH_HOURS", "0")
    monkeypatch.setenv("ML_COOKIE", "sessionid=abc")
    monkeypatch.setattr(dotenv, "load_dotenv", lambda: None)

    reload_config()

    assert config_mod.DATA_DIR == tmp_path
    assert config_mod.TZ.key == "Europe/Berlin"
    assert config_mod.REMIND_BEFORE_MINUTES == 30
    assert config_mod.REFRESH_HOURS == 0
    assert config_mod.ML_COOKIE == "sessionid=abc"


def test_non_integer_setting_exits(reload_config, monkeypatch):
    monkeypatch.setenv("LEAGUE_BOT_REMIND_BEFORE", "an hour")
    monkeypatch.setattr(dotenv, "load_dotenv", lambda: None)

    with pytest.raises(SystemExit):
        reload_config()
