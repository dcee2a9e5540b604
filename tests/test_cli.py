from __future__ import annotations

import json
from pathlib import Path

import pytest

from spoeconf import cli
from tests.utils import write_config


@pytest.fixture
def run(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("SPOECONF_SETTINGS", raising=False)
    monkeypatch.delenv("SPOECONF_DEBUG", raising=False)
    settings = tmp_path / "settings.ini"
    settings.write_text("[spoeconf]\n")
    config = write_config(tmp_path)
    base = ["--config", str(config), "--transaction-dir", str(tmp_path / "tx"), "--settings", str(settings)]

    def _run(*argv: str) -> int:
        return cli.main(base + list(argv))

    return _run


def test_version_and_increment(run, capsys):
    assert run("version") == 0
    assert capsys.readouterr().out.strip() == "3"
    assert run("increment-version") == 0
    assert capsys.readouterr().out.strip() == "4"


def test_transaction_roundtrip(run, capsys):
    assert run("start", "--version", "3") == 0
    tid = capsys.readouterr().out.strip()
    assert run("create-section", "ip-reputation", "spoe-message", "m2", "args ip=src", "-t", tid) == 0
    assert run("transactions", "--json") == 0
    listed = json.loads(capsys.readouterr().out)
    assert listed == [{"id": tid, "status": "in_progress", "version": 3}]
    assert run("sections", "ip-reputation", "spoe-message") == 0
    assert capsys.readouterr().out.split() == ["check-client-ip"]
    assert run("sections", "ip-reputation", "spoe-message", "-t", tid) == 0
    assert capsys.readouterr().out.split() == ["check-client-ip", "m2"]
    assert run("commit", tid) == 0
    assert capsys.readouterr().out.strip() == f"{tid} success 3"
    assert run("show") == 0
    assert "spoe-message m2" in capsys.readouterr().out


def test_abort(run, capsys):
    run("start", "--version", "3")
    tid = capsys.readouterr().out.strip()
    assert run("abort", tid) == 0
    assert run("transactions") == 0
    assert capsys.readouterr().out == ""


def test_implicit_delete(run, capsys):
    assert run("delete-section", "ip-reputation", "spoe-agent", "agent1", "--version", "3") == 0
    assert run("scopes") == 0
    assert capsys.readouterr().out.strip() == "ip-reputation"
    assert run("sections", "ip-reputation", "spoe-agent") == 0
    assert capsys.readouterr().out == ""


def test_errors_are_reported(run, capsys):
    assert run("delete-section", "ip-reputation", "spoe-agent", "agent1", "--version", "1") == 1
    assert "version mismatch" in capsys.readouterr().err
    assert run("commit", "missing") == 1
    assert "transaction missing does not exist" in capsys.readouterr().err


def test_missing_config(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.delenv("SPOECONF_CONFIG_FILE", raising=False)
    settings = tmp_path / "settings.ini"
    settings.write_text("[spoeconf]\n")
    assert cli.main(["--settings", str(settings), "version"]) == 1
    assert "configuration file missing" in capsys.readouterr().err
