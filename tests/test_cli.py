"""CLI tests via click's CliRunner against a temporary database."""

import json

import pytest
from click.testing import CliRunner

import grindtime.cli as cli_module
from grindtime.budget import BudgetState
from grindtime.cli import cli
from grindtime.engine import BudgetEngine
from grindtime.store import StateStore


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.setenv("GRINDTIME_HOME", str(tmp_path))
    monkeypatch.setenv("GRINDTIME_NOTIFY", "off")
    monkeypatch.delenv("GRINDTIME_DB", raising=False)
    runner = CliRunner()
    db = str(tmp_path / "state.db")

    def _run(*args, input=None):
        return runner.invoke(cli, ["--db", db, *args], obj={}, input=input)

    return _run


def status_json(run) -> dict:
    result = run("status", "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_status_on_first_run(run):
    data = status_json(run)
    assert data["studyElapsed"] == 0
    assert data["gameAvailable"] == 0
    assert data["studyRunning"] is False
    assert data["gameRunning"] is False
    assert data["date"] is not None


def test_status_panel(run):
    result = run("status")
    assert result.exit_code == 0
    assert "Study" in result.output
    assert "Lives" in result.output


def test_study_toggles(run):
    assert run("study").exit_code == 0
    assert status_json(run)["studyRunning"] is True
    assert run("study").exit_code == 0
    assert status_json(run)["studyRunning"] is False


def test_game_without_time_is_refused(run):
    result = run("game")
    assert result.exit_code == 1
    assert "No game time available" in result.output
    assert status_json(run)["gameRunning"] is False


def test_bonus_then_game(run):
    result = run("bonus")
    assert result.exit_code == 0
    assert "+1 life" in result.output
    assert status_json(run)["gameAvailable"] == 1800

    run("study")
    assert run("game").exit_code == 0
    data = status_json(run)
    assert data["gameRunning"] is True
    assert data["studyRunning"] is False


def test_reset_confirmed(run):
    run("bonus")
    result = run("reset", input="y\n")
    assert result.exit_code == 0
    assert "Budget reset." in result.output
    assert status_json(run)["gameAvailable"] == 0


def test_reset_declined(run):
    run("bonus")
    result = run("reset", input="n\n")
    assert result.exit_code == 0
    assert "Reset cancelled." in result.output
    assert status_json(run)["gameAvailable"] == 1800


def test_reset_yes_flag(run):
    run("bonus")
    assert run("reset", "--yes").exit_code == 0
    assert status_json(run)["gameTotalEarned"] == 0


def test_invalid_env_config(run, monkeypatch):
    monkeypatch.setenv("GRINDTIME_CONTINUOUS_LIMIT", "soon")
    result = run("status")
    assert result.exit_code != 0
    assert "GRINDTIME_CONTINUOUS_LIMIT must be an integer" in result.output


def test_invalid_notify_mode(run, monkeypatch):
    monkeypatch.setenv("GRINDTIME_NOTIFY", "pigeon")
    result = run("status")
    assert result.exit_code != 0
    assert "Invalid notify mode" in result.output


def test_events_follow_notify_mode(run, tmp_path, monkeypatch):
    StateStore(tmp_path / "state.db").save(BudgetState(date="2000-01-01"))
    monkeypatch.setenv("GRINDTIME_NOTIFY", "console")
    assert "New Day" in run("status").output

    StateStore(tmp_path / "state.db").save(BudgetState(date="2000-01-01"))
    monkeypatch.setenv("GRINDTIME_NOTIFY", "off")
    assert "New Day" not in run("status").output


def test_watch_keeps_commands_from_other_terminals(run, tmp_path, monkeypatch):
    calls = []

    def fake_sleep(seconds):
        calls.append(seconds)
        if len(calls) == 1:
            BudgetEngine(StateStore(tmp_path / "state.db")).award_bonus()
            return
        raise KeyboardInterrupt

    monkeypatch.setattr(cli_module.time, "sleep", fake_sleep)
    result = run("watch", "--interval", "0")
    assert result.exit_code == 0, result.output
    assert "Stopped watching" in result.output
    assert len(calls) == 2
    assert status_json(run)["gameAvailable"] == 1800
