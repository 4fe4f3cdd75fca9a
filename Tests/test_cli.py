"""Tests for the command line interface (settings commands only, no network)."""

import json

import pytest

from reserve_adjuster import cli
from reserve_adjuster.settings import ReserveSettings
from reserve_adjuster.settings_store import SettingsStore


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.setenv("HA_API_URL", "http://127.0.0.1:9")
    settings_file = tmp_path / "settings.json"

    def _run(*args):
        argv = ["--config", str(tmp_path / "options.json"), "--settings-file", str(settings_file), *args]
        return cli.main(argv)

    _run.settings = ReserveSettings(SettingsStore(str(settings_file)))
    return _run


class TestCli:
    def test_reserve_show_default(self, run, capsys):
        assert run("reserve") == 0
        assert capsys.readouterr().out.strip() == "20"

    def test_reserve_set_clamps(self, run, capsys):
        assert run("reserve", "250") == 0
        assert capsys.readouterr().out.strip() == "100"
        assert run.settings.peak_reserve() == 100

    def test_reserve_invalid(self, run):
        assert run("reserve", "abc") == 1

    def test_holiday_commands(self, run, capsys):
        assert run("holiday", "add", "2026-12-25", "2026-12-26") == 0
        assert run("holiday", "remove", "2026-12-25") == 0
        capsys.readouterr()

        assert run("holiday", "list") == 0
        assert json.loads(capsys.readouterr().out) == ["2026-12-26"]

    def test_notify_subscribe(self, run):
        assert run("notify", "subscribe", "notify.mobile_app_pixel") == 0
        assert run.settings.subscriptions() == ["mobile_app_pixel"]

    def test_settings_snapshot(self, run, capsys):
        run("reserve", "30")
        capsys.readouterr()

        assert run("settings") == 0
        assert json.loads(capsys.readouterr().out) == {"notify": [], "holiday": [], "reserve": 30}

    def test_session_state(self, run, capsys):
        assert run("session") == 0
        assert capsys.readouterr().out.strip() == "no_credential"
