"""CLI tests; logging is silenced so stdout holds command output only."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skill_runtime.orchestrator import main as cli
from skill_runtime.orchestrator.engine.session import Session
from skill_runtime.orchestrator.state.store import SessionStore


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda level: None)


@pytest.mark.parametrize(
    ("value", "expected"), [("5k", "5000"), ("1.5m", "1500000"), ("2.5", "2.5")]
)
def test_parse_amount(
    runtime_env: Path, capsys: pytest.CaptureFixture[str], value: str, expected: str
) -> None:
    assert cli.main(["parse-amount", value]) == 0
    assert capsys.readouterr().out.strip() == expected


def test_parse_amount_rejects_garbage(
    runtime_env: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main(["parse-amount", "5kk"]) == 3
    assert "Invalid amount" in capsys.readouterr().err


def test_list_modes(runtime_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["list-modes"]) == 0
    out = capsys.readouterr().out
    assert "research: clock, select_mode, web_fetch" in out
    assert "    Transfers" in out


def test_list_workflows(runtime_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["list-workflows"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("token_transfer@1.0.0\t4 tasks\tmodes: finance")
    assert lines[1].startswith("web_research@1.0.0\t0 tasks\tmodes: research")


def test_validate_workflow(runtime_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = runtime_env / "workflows" / "token_transfer.json"
    assert cli.main(["validate-workflow", str(path)]) == 0
    assert capsys.readouterr().out.startswith("OK token_transfer@1.0.0 (4 tasks; modes: finance)")


def test_validate_workflow_reports_problems(
    runtime_env: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    unknown = runtime_env / "unknown_tool.json"
    unknown.write_text(
        json.dumps({"name": "x", "version": "1", "required_tools": ["teleport"]}),
        encoding="utf-8",
    )
    assert cli.main(["validate-workflow", str(unknown)]) == 3
    assert "teleport" in capsys.readouterr().err

    mixed = runtime_env / "mixed.json"
    mixed.write_text(
        json.dumps({"name": "y", "version": "1", "required_tools": ["web_fetch", "token_lookup"]}),
        encoding="utf-8",
    )
    assert cli.main(["validate-workflow", str(mixed)]) == 3
    assert "no mode allows every required tool" in capsys.readouterr().err

    broken = runtime_env / "broken.json"
    broken.write_text("{", encoding="utf-8")
    assert cli.main(["validate-workflow", str(broken)]) == 3


def test_show_session(
    runtime_env: Path, session: Session, capsys: pytest.CaptureFixture[str]
) -> None:
    session.select_mode("research")
    SessionStore(runtime_env / "agent_state" / "sessions").save(session.snapshot())

    assert cli.main(["show-session", "s1"]) == 0
    shown = json.loads(capsys.readouterr().out)
    assert shown["session_id"] == "s1"
    assert shown["selected_mode"] == "research"


def test_show_missing_session(runtime_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["show-session", "nobody"]) == 3
    assert "Unknown session: nobody" in capsys.readouterr().err


def test_configuration_error(
    runtime_env: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("SKILL_RUNTIME_FAILED_TASK_POLICY", "give_up")
    assert cli.main(["list-modes"]) == 2
    assert "Configuration error" in capsys.readouterr().err
