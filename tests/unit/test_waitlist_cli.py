"""
Unit tests for the typer CLI, wired to in-memory stores
"""

import json
import logging

import pytest
import yaml
from typer.testing import CliRunner

from event_waitlist.cli.waitlist_cli import WaitlistCLI, app

runner = CliRunner()


@pytest.fixture
def cli_db(db, monkeypatch):
    """Route every command to a shared in-memory database."""
    monkeypatch.setattr(WaitlistCLI, "from_firestore", classmethod(lambda cls, config=None: cls.in_memory(db)))
    return db


def test_demo_runs_end_to_end():
    result = runner.invoke(app, ["demo"])

    assert result.exit_code == 0, result.output
    assert "already_exists" in result.output
    assert "registeredEventIds after leave: ['other']" in result.output
    assert "Store Stats" in result.output


def test_join_json_output(cli_db):
    result = runner.invoke(app, ["--log-level", "ERROR", "join", "event-123", "user-456", "--format", "json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"status": "success", "entryId": "doc-1", "decisionId": "doc-2"}
    assert set(cli_db.documents_under("events/event-123/waitingList")) == {"doc-1"}


def test_notify_status_yaml_output(cli_db):
    runner.invoke(app, ["--log-level", "ERROR", "join", "E", "u1"])

    result = runner.invoke(app, [
        "--log-level", "ERROR", "notify-status", "E", "PENDING", "LOST",
        "--title", "Update", "--message", "Draw results", "--format", "yaml",
    ])

    assert result.exit_code == 0, result.output
    data = yaml.safe_load(result.output)
    assert data["status"] == "success"
    assert data["statusCounts"] == {"PENDING": 0, "LOST": 0}


def test_domain_error_exits_with_code_1(cli_db):
    result = runner.invoke(app, ["accept", "E", "u1", "missing"])

    assert result.exit_code == 1
    assert "DocumentNotFoundError" in result.output


@pytest.fixture
def basic_config_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    return calls


def test_log_level_defaults_to_environment(cli_db, basic_config_calls, monkeypatch):
    monkeypatch.setenv("WAITLIST_LOG_LEVEL", "debug")

    result = runner.invoke(app, ["inbox", "u1"])

    assert result.exit_code == 0, result.output
    assert basic_config_calls == [{"level": logging.DEBUG}]


def test_log_level_option_overrides_environment(cli_db, basic_config_calls, monkeypatch):
    monkeypatch.setenv("WAITLIST_LOG_LEVEL", "DEBUG")

    result = runner.invoke(app, ["--log-level", "error", "inbox", "u1"])

    assert result.exit_code == 0, result.output
    assert basic_config_calls == [{"level": logging.ERROR}]


def test_unknown_log_level_rejected(cli_db, basic_config_calls):
    result = runner.invoke(app, ["--log-level", "LOUD", "inbox", "u1"])

    assert result.exit_code == 2
    assert basic_config_calls == []
