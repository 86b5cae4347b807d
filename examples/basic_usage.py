#!/usr/bin/env python3
"""Drive the token transfer workflow in-process.

This demonstrates using the runtime components directly:

* load settings, the tool catalog and workflow definitions
* back each tool with a local function instead of the HTTP tool service
* walk a session through mode selection, the task script and completion

Run from the repository root so the default `config/` and `workflows/` paths
resolve.
"""

from __future__ import annotations

import argparse
from typing import Sequence

from skill_runtime.orchestrator.config import RuntimeSettings
from skill_runtime.orchestrator.engine.errors import PendingOperationFailed, RuntimeFault
from skill_runtime.orchestrator.engine.operations import OperationReport, OperationStatus
from skill_runtime.orchestrator.engine.registers import RegisterRef
from skill_runtime.orchestrator.engine.session import Session
from skill_runtime.orchestrator.logging import configure_logging
from skill_runtime.orchestrator.tools.handlers import (
    CallableToolHandler,
    HandlerRegistry,
    ToolResponse,
)
from skill_runtime.orchestrator.workflow.catalog import load_catalog
from skill_runtime.orchestrator.workflow.definitions import WorkflowRegistry

_ADDRESSES = {
    "alice": "0x1111111111111111111111111111111111111111",
    "bob": "0x2222222222222222222222222222222222222222",
}


def _identity_lookup(name: str) -> dict[str, object]:
    return {"recipient_address": _ADDRESSES[name.lower()]}


def _token_lookup(symbol: str) -> dict[str, object]:
    return {"token_address": f"0x{symbol.upper():0>40}"[:42], "token_decimals": 6}


def _verify_intent(amount: object) -> dict[str, object]:
    return {"transfer_amount": amount}


def _prepare_transfer(
    token_address: str, recipient_address: str, transfer_amount: object
) -> dict[str, object]:
    return {
        "transfer_tx": {
            "to": token_address,
            "recipient": recipient_address,
            "amount": transfer_amount,
        }
    }


_TX_HASH = "0x" + "ab" * 32


def _broadcast(transfer_tx: dict[str, object]) -> ToolResponse:
    return ToolResponse.success(
        {"tx_hash": _TX_HASH},
        operation=OperationReport(id=_TX_HASH, status=OperationStatus.SUBMITTED),
    )


def _status(tx_hash: str, outcome: str) -> ToolResponse:
    return ToolResponse.success(
        {"tx_receipt": {"hash": tx_hash, "status": outcome}},
        operation=OperationReport(id=tx_hash, status=OperationStatus(outcome)),
    )


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the token transfer workflow locally.")
    parser.add_argument("--recipient", default="alice", help="Recipient name")
    parser.add_argument("--token", default="USDC", help="Token symbol")
    parser.add_argument("--amount", default="1.5k", help="Amount, k/m suffixes allowed")
    parser.add_argument(
        "--outcome",
        default="confirmed",
        choices=[s.value for s in OperationStatus if s.terminal],
        help="Simulated broadcast outcome",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    settings = RuntimeSettings()
    configure_logging(settings.log_level)

    catalog = load_catalog(settings.catalog_path)
    workflows = WorkflowRegistry.from_directories([settings.workflows_path])

    handlers = HandlerRegistry()
    handlers.register("identity_lookup", CallableToolHandler(_identity_lookup))
    handlers.register("token_lookup", CallableToolHandler(_token_lookup))
    handlers.register("verify_intent", CallableToolHandler(_verify_intent))
    handlers.register("prepare_transfer", CallableToolHandler(_prepare_transfer))
    handlers.register("broadcast_transaction", CallableToolHandler(_broadcast))
    handlers.register(
        "transaction_status",
        CallableToolHandler(lambda tx_hash: _status(tx_hash, args.outcome)),
    )

    session = Session(
        catalog=catalog,
        handlers=handlers,
        workflows=workflows,
        policy=settings.failed_task_policy,
    )

    try:
        session.invoke(catalog.mode_selection_tool, {"mode": "finance"})
        session.start_workflow("token_transfer")

        session.invoke("identity_lookup", {"name": args.recipient})
        print(session.complete("Recipient resolved").message)

        session.invoke("token_lookup", {"symbol": args.token})
        print(session.complete("Token found").message)

        session.invoke("verify_intent", {"amount": args.amount})
        # Register inputs bind to same-named registers; spelled out here for show.
        session.invoke(
            "prepare_transfer",
            {
                "token_address": RegisterRef("token_address").to_json(),
                "recipient_address": RegisterRef("recipient_address").to_json(),
            },
        )
        print(session.complete("Transfer prepared").message)

        session.invoke("broadcast_transaction")
        session.progress("Transfer submitted; waiting for confirmation")
        session.invoke("transaction_status")
        print(session.complete("Transfer broadcast").message)
    except RuntimeFault as e:
        print(f"{e.kind}: {e.detail}")
        if isinstance(e, PendingOperationFailed):
            print(session.acknowledge_failure().message)
        return 3

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
