"""Tests for the twx operator CLI."""

from __future__ import annotations

import re
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from twx import cli
from twx.cli import app
from twx.config import reset_config
from twx.db import connection

runner = CliRunner()


@pytest.fixture
def database(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "_session_factory", None)
    reset_config()

    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output


def _element_id(output: str) -> str:
    match = re.search(r"Element ID: ([0-9a-f-]{36})", output)
    assert match, output
    return match.group(1)


def test_register_and_history(database, monkeypatch):
    monkeypatch.setattr(cli.console, "width", 200)

    result = runner.invoke(
        app, ["register", "--ifc-type", "IfcBeam", "--project", "proj-a", "--actor", "ops"]
    )
    assert result.exit_code == 0, result.output
    assert "IfcBeam-000001" in result.output

    history = runner.invoke(app, ["history", _element_id(result.output)])
    assert history.exit_code == 0, history.output
    assert "proj-a" in history.output
    assert "registration" in history.output


def test_transfer_commands(database):
    registered = runner.invoke(app, ["register", "--ifc-type", "IfcBeam", "--project", "proj-a"])
    element_id = _element_id(registered.output)

    assert runner.invoke(app, ["transfer", "request", element_id, "--to", "proj-b"]).exit_code == 0

    refused = runner.invoke(
        app, ["transfer", "receive", element_id, "--project", "proj-b", "--condition", "Good"]
    )
    assert refused.exit_code == 1
    assert "approval" in refused.output

    for role in ("source", "destination"):
        approved = runner.invoke(
            app, ["transfer", "approve", element_id, "--project", "proj-b", "--role", role]
        )
        assert approved.exit_code == 0, approved.output

    received = runner.invoke(
        app, ["transfer", "receive", element_id, "--project", "proj-b", "--condition", "Fair"]
    )
    assert received.exit_code == 0, received.output
    assert "received in proj-b" in received.output


def test_domain_error_exits_non_zero(database):
    result = runner.invoke(
        app, ["register", "--ifc-type", "IfcBeam", "--project", "proj-a", "--condition", "Mint"]
    )

    assert result.exit_code == 1
    assert "condition" in result.output


def test_session_issue_prints_token():
    client = MagicMock()
    with patch("twx.web.auth.get_redis_client", return_value=client):
        result = runner.invoke(app, ["session", "issue", "--user-id", "user-ops"])

    assert result.exit_code == 0, result.output
    token = result.output.strip().splitlines()[-1]
    client.setex.assert_called_once()
    assert client.setex.call_args.args[0] == f"session:{token}"
