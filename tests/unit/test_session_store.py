"""Unit tests for file-backed session snapshots."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skill_runtime.orchestrator.engine.session import Session
from skill_runtime.orchestrator.state.store import SessionNotFound, SessionStore


def test_store_roundtrip(tmp_path: Path, at_broadcast: Session) -> None:
    store = SessionStore(tmp_path / "sessions")
    path = store.save(at_broadcast.snapshot())

    assert path == tmp_path / "sessions" / "s1.json"
    assert path.read_text(encoding="utf-8").endswith("\n")
    assert store.list_ids() == ["s1"]
    assert store.exists("s1")

    loaded = store.load("s1")
    assert loaded.session_id == "s1"
    assert loaded.selected_mode == "finance"
    assert loaded.workflow is not None and loaded.workflow.name == "token_transfer"
    assert [t.ordinal for t in loaded.tasks] == [1, 2, 3, 4]
    assert {r.name for r in loaded.registers} >= {"transfer_tx", "tx_hash"}
    assert [op.id for op in loaded.operations] == ["0xtx1"]


def test_save_replaces_previous_snapshot(tmp_path: Path, session: Session) -> None:
    store = SessionStore(tmp_path)
    store.save(session.snapshot())
    session.select_mode("research")
    store.save(session.snapshot())

    assert store.load("s1").selected_mode == "research"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["s1.json"]


def test_unknown_and_malformed_ids(tmp_path: Path) -> None:
    store = SessionStore(tmp_path)
    with pytest.raises(SessionNotFound):
        store.load("missing")
    with pytest.raises(SessionNotFound):
        store.load("../etc/passwd")
    with pytest.raises(SessionNotFound):
        store.delete("missing")
    assert not store.exists("../x")
    assert store.list_ids() == []


def test_delete(tmp_path: Path, session: Session) -> None:
    store = SessionStore(tmp_path)
    store.save(session.snapshot())
    store.delete("s1")
    assert store.list_ids() == []


def test_list_skips_unreadable_files(tmp_path: Path, session: Session) -> None:
    store = SessionStore(tmp_path)
    store.save(session.snapshot())
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    (tmp_path / "wrong.json").write_text(json.dumps({"nope": 1}), encoding="utf-8")

    assert [s.session_id for s in store.list()] == ["s1"]
