"""Test configuration and fixtures."""

from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

from skill_runtime.orchestrator.engine.operations import OperationReport, OperationStatus
from skill_runtime.orchestrator.engine.session import Session
from skill_runtime.orchestrator.tools.handlers import HandlerRegistry, ToolResponse
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog
from skill_runtime.orchestrator.workflow.definitions import WorkflowDefinition, WorkflowRegistry

CATALOG: dict[str, object] = {
    "mode_selection_tool": "select_mode",
    "tools": [
        {"name": "select_mode", "group": "system"},
        {"name": "clock", "group": "system", "outputs": ["now"]},
        {"name": "identity_lookup", "group": "finance", "outputs": ["recipient_address"]},
        {
            "name": "token_lookup",
            "group": "finance",
            "outputs": ["token_address", "token_decimals"],
        },
        {
            "name": "verify_intent",
            "group": "finance",
            "outputs": ["transfer_amount"],
            "amount_arguments": ["amount"],
        },
        {
            "name": "prepare_transfer",
            "group": "finance",
            "outputs": ["transfer_tx"],
            "register_inputs": ["token_address", "recipient_address", "transfer_amount"],
        },
        {
            "name": "broadcast_transaction",
            "group": "finance",
            "outputs": ["tx_hash"],
            "register_inputs": ["transfer_tx"],
        },
        {
            "name": "transaction_status",
            "group": "finance",
            "outputs": ["tx_receipt"],
            "register_inputs": ["tx_hash"],
        },
        {"name": "web_fetch", "group": "web", "outputs": ["page_text"]},
    ],
    "modes": {
        "finance": {"description": "Transfers", "groups": ["finance"]},
        "research": {"description": "Reading", "tools": ["web_fetch"]},
    },
}

TRANSFER_WORKFLOW: dict[str, object] = {
    "name": "token_transfer",
    "version": "1.0.0",
    "required_tools": [
        "identity_lookup",
        "token_lookup",
        "verify_intent",
        "prepare_transfer",
        "broadcast_transaction",
        "transaction_status",
    ],
    "tasks": [
        {"ordinal": 1, "description": "Resolve recipient", "checklist": ["identity_lookup"]},
        {"ordinal": 2, "description": "Look up token", "checklist": ["token_lookup"]},
        {
            "ordinal": 3,
            "description": "Prepare transfer",
            "checklist": ["verify_intent", "prepare_transfer"],
        },
        {"ordinal": 4, "description": "Broadcast", "checklist": ["broadcast_transaction"]},
    ],
}

RESEARCH_WORKFLOW: dict[str, object] = {
    "name": "web_research",
    "version": "1.0.0",
    "required_tools": ["web_fetch", "clock"],
}


class FakeTools:
    """One handler for every catalog tool; records what it was called with."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, object]]] = []
        self.failures: dict[str, str] = {}
        self.confirm_status = OperationStatus.CONFIRMED
        self.broadcasts = 0

    def __call__(self, tool: str, arguments: dict[str, object]) -> ToolResponse:
        self.calls.append((tool, copy.deepcopy(arguments)))
        if tool in self.failures:
            return ToolResponse.failure(self.failures[tool], kind="upstream")
        return getattr(self, f"_{tool}")(**arguments)

    def _clock(self) -> ToolResponse:
        return ToolResponse.success({"now": "2026-01-01T00:00:00+00:00"})

    def _identity_lookup(self, name: str) -> ToolResponse:
        return ToolResponse.success({"recipient_address": f"0xRECIPIENT-{name}"})

    def _token_lookup(self, symbol: str) -> ToolResponse:
        return ToolResponse.success({"token_address": f"0xTOKEN-{symbol}", "token_decimals": 6})

    def _verify_intent(self, amount: object) -> ToolResponse:
        return ToolResponse.success({"transfer_amount": amount})

    def _prepare_transfer(
        self, token_address: str, recipient_address: str, transfer_amount: object
    ) -> ToolResponse:
        tx = {"token": token_address, "to": recipient_address, "amount": transfer_amount}
        return ToolResponse.success({"transfer_tx": tx})

    def _broadcast_transaction(self, transfer_tx: dict[str, object]) -> ToolResponse:
        self.broadcasts += 1
        tx_hash = f"0xtx{self.broadcasts}"
        return ToolResponse.success(
            {"tx_hash": tx_hash},
            operation=OperationReport(id=tx_hash, status=OperationStatus.SUBMITTED),
        )

    def _transaction_status(self, tx_hash: str) -> ToolResponse:
        return ToolResponse.success(
            {"tx_receipt": {"hash": tx_hash, "status": self.confirm_status.value}},
            operation=OperationReport(id=tx_hash, status=self.confirm_status),
        )

    def _web_fetch(self, url: str) -> ToolResponse:
        return ToolResponse.success({"page_text": f"contents of {url}"})


@pytest.fixture
def catalog() -> ToolCatalog:
    return ToolCatalog.model_validate(CATALOG)


@pytest.fixture
def transfer_workflow() -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(TRANSFER_WORKFLOW)


@pytest.fixture
def research_workflow() -> WorkflowDefinition:
    return WorkflowDefinition.model_validate(RESEARCH_WORKFLOW)


@pytest.fixture
def workflows(
    transfer_workflow: WorkflowDefinition, research_workflow: WorkflowDefinition
) -> WorkflowRegistry:
    return WorkflowRegistry([transfer_workflow, research_workflow])


@pytest.fixture
def tools() -> FakeTools:
    return FakeTools()


@pytest.fixture
def handlers(catalog: ToolCatalog, tools: FakeTools) -> HandlerRegistry:
    return HandlerRegistry.from_catalog(catalog, tools)


@pytest.fixture
def session(
    catalog: ToolCatalog, handlers: HandlerRegistry, workflows: WorkflowRegistry
) -> Session:
    return Session(catalog=catalog, handlers=handlers, workflows=workflows, session_id="s1")


@pytest.fixture
def runtime_dir(tmp_path: Path) -> Path:
    """A directory laid out like a deployment: catalog, workflows and state."""

    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "tool_catalog.json").write_text(json.dumps(CATALOG), encoding="utf-8")
    (tmp_path / "workflows").mkdir()
    for definition in (TRANSFER_WORKFLOW, RESEARCH_WORKFLOW):
        path = tmp_path / "workflows" / f"{definition['name']}.json"
        path.write_text(json.dumps(definition), encoding="utf-8")
    return tmp_path


@pytest.fixture
def runtime_env(runtime_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every runtime setting at `runtime_dir` and isolate from any local .env."""

    monkeypatch.chdir(runtime_dir)
    catalog_path = runtime_dir / "config" / "tool_catalog.json"
    monkeypatch.setenv("SKILL_RUNTIME_CATALOG_PATH", str(catalog_path))
    monkeypatch.setenv("SKILL_RUNTIME_WORKFLOWS_PATH", str(runtime_dir / "workflows"))
    monkeypatch.setenv("SKILL_RUNTIME_STATE_PATH", str(runtime_dir / "agent_state"))
    monkeypatch.delenv("SKILL_RUNTIME_TOOL_SERVICE_URL", raising=False)
    monkeypatch.delenv("SKILL_RUNTIME_FAILED_TASK_POLICY", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return runtime_dir


def _run_transfer_to_broadcast(session: Session) -> None:
    session.select_mode("finance")
    session.start_workflow("token_transfer")
    session.invoke("identity_lookup", {"name": "alice"})
    session.complete("recipient")
    session.invoke("token_lookup", {"symbol": "USDC"})
    session.complete("token")
    session.invoke("verify_intent", {"amount": "1.5k"})
    session.invoke("prepare_transfer")
    session.complete("prepared")
    session.invoke("broadcast_transaction")


@pytest.fixture
def at_broadcast(session: Session) -> Session:
    """`session` driven through tasks 1-3 with the transfer broadcast in task 4."""

    _run_transfer_to_broadcast(session)
    return session
