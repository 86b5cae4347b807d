"""Unit tests for the tool catalog."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from skill_runtime.orchestrator.workflow.catalog import ToolCatalog, load_catalog
from skill_runtime.orchestrator.workflow.definitions import WorkflowRegistry


def test_catalog_lookup(catalog: ToolCatalog) -> None:
    spec = catalog.get("prepare_transfer")
    assert spec is not None
    assert spec.register_inputs == ["token_address", "recipient_address", "transfer_amount"]
    assert catalog.get("nope") is None
    assert "web_fetch" in catalog.names()


def test_allowed_in_unknown_mode_is_only_mode_selection(catalog: ToolCatalog) -> None:
    assert catalog.allowed_in("nope") == {"select_mode"}


def test_duplicate_tools_rejected() -> None:
    with pytest.raises(ValidationError, match="Duplicate tool"):
        ToolCatalog.model_validate({"tools": [{"name": "a"}, {"name": "a"}]})


def test_modes_may_only_name_catalog_tools() -> None:
    with pytest.raises(ValidationError, match="unknown tools"):
        ToolCatalog.model_validate(
            {"tools": [{"name": "a"}], "modes": {"m": {"tools": ["a", "ghost"]}}}
        )


def test_load_catalog_missing_file_is_empty(tmp_path: Path) -> None:
    catalog = load_catalog(tmp_path / "missing.json")
    assert catalog.tools == []
    assert catalog.modes == {}


def test_load_catalog_from_file(tmp_path: Path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(
        json.dumps(
            {
                "mode_selection_tool": "choose_toolbox",
                "tools": [{"name": "web_fetch", "outputs": ["page_text"]}],
                "modes": {"research": {"tools": ["web_fetch"]}},
            }
        ),
        encoding="utf-8",
    )
    catalog = load_catalog(path)
    assert catalog.mode_selection_tool == "choose_toolbox"
    assert catalog.allowed_in("research") == {"choose_toolbox", "web_fetch"}


def test_shipped_catalog_and_workflows_agree() -> None:
    root = Path(__file__).resolve().parents[2]
    catalog = load_catalog(root / "config" / "tool_catalog.json")
    assert catalog.get("prepare_transfer") is not None

    registry = WorkflowRegistry.from_directories([root / "workflows"])
    assert registry.list()
    for definition in registry.list():
        assert definition.missing_from(catalog) == []
