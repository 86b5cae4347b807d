"""CLI entrypoint for the skill task runtime.

Inspection and validation only: sessions are driven through the library API
or the REST server.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from skill_runtime import __version__
from skill_runtime.orchestrator.config import RuntimeSettings
from skill_runtime.orchestrator.engine.amounts import parse_amount
from skill_runtime.orchestrator.engine.errors import RuntimeFault
from skill_runtime.orchestrator.logging import configure_logging
from skill_runtime.orchestrator.state.store import SessionNotFound, SessionStore
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog, load_catalog
from skill_runtime.orchestrator.workflow.definitions import (
    WorkflowDefinition,
    WorkflowRegistry,
    load_definition,
)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skill-runtime",
        description="Inspect workflows, modes and persisted sessions of the skill task runtime",
    )
    parser.add_argument("--version", action="version", version=f"skill-task-runtime {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list-workflows", help="List workflow definitions that are loaded")

    validate = subparsers.add_parser(
        "validate-workflow",
        help="Check a workflow definition file against the tool catalog",
    )
    validate.add_argument("path", type=Path, help="Path to the workflow JSON file")

    subparsers.add_parser("list-modes", help="List operating modes and the tools each allows")

    amount = subparsers.add_parser(
        "parse-amount",
        help="Parse an amount with optional k/m suffix, e.g. '1.5k'",
    )
    amount.add_argument("value", help="Amount text")

    show = subparsers.add_parser("show-session", help="Print a persisted session snapshot")
    show.add_argument("session_id", help="Session id")

    return parser


def _modes_for(definition: WorkflowDefinition, catalog: ToolCatalog) -> list[str]:
    return [
        mode
        for mode in sorted(catalog.modes)
        if definition.required_tools <= catalog.allowed_in(mode)
    ]


def _validate_workflow(path: Path, catalog: ToolCatalog) -> int:
    try:
        definition = load_definition(path)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        print(f"Invalid workflow definition {path}:", file=sys.stderr)
        print(e, file=sys.stderr)
        return 3

    problems: list[str] = []
    missing = definition.missing_from(catalog)
    if missing:
        problems.append(f"tools not in the catalog: {', '.join(missing)}")
    modes = _modes_for(definition, catalog)
    if not missing and not modes:
        problems.append("no mode allows every required tool")

    if problems:
        for problem in problems:
            print(f"{definition.ref}: {problem}", file=sys.stderr)
        return 3

    print(f"OK {definition.ref} ({len(definition.tasks)} tasks; modes: {', '.join(modes)})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = RuntimeSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level)

    try:
        if args.command == "parse-amount":
            print(parse_amount(args.value))
            return 0

        if args.command == "show-session":
            store = SessionStore(settings.sessions_state_dir)
            snapshot = store.load(args.session_id)
            print(snapshot.model_dump_json(indent=2))
            return 0

        try:
            catalog = load_catalog(settings.catalog_path)
        except (json.JSONDecodeError, ValidationError) as e:
            print(f"Invalid tool catalog {settings.catalog_path}:", file=sys.stderr)
            print(e, file=sys.stderr)
            return 2

        if args.command == "validate-workflow":
            return _validate_workflow(args.path, catalog)

        if args.command == "list-modes":
            for mode, spec in sorted(catalog.modes.items()):
                tools = sorted(catalog.allowed_in(mode))
                print(f"{mode}: {', '.join(tools)}")
                if spec.description:
                    print(f"    {spec.description}")
            return 0

        if args.command == "list-workflows":
            registry = WorkflowRegistry.from_directories([settings.workflows_path])
            definitions = registry.list()
            if not definitions:
                print(f"No workflows found in {settings.workflows_path}")
            for definition in definitions:
                modes = _modes_for(definition, catalog)
                print(
                    f"{definition.ref}\t{len(definition.tasks)} tasks\t"
                    f"modes: {', '.join(modes) or '-'}\t{definition.description}"
                )
            return 0

        logger.error("Unknown command", extra={"command": args.command})
        return 2

    except (RuntimeFault, SessionNotFound) as e:
        logger.warning(str(e), extra={"command": args.command})
        print(str(e), file=sys.stderr)
        return 3

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
