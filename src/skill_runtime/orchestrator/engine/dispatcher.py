"""Tool dispatcher.

Validates and routes a tool invocation to its external handler, then merges
the tool's declared outputs into the register store. Every structural check
runs before anything is mutated or any handler is called.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from skill_runtime.orchestrator.tools.handlers import HandlerRegistry, ToolError, ToolResponse
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog, ToolSpec
from skill_runtime.orchestrator.workflow.definitions import WorkflowDefinition

from .amounts import parse_amount
from .errors import (
    ExternalToolFailure,
    NoActiveTask,
    NoToolHandler,
    RegisterBindingViolation,
    ToolNotDeclared,
)
from .modes import ModeGate
from .operations import IllegalOperationTransition, OperationReport, OperationTracker
from .registers import RegisterRef, RegisterStore, dump_value, load_value
from .task_queue import TaskQueue

logger = logging.getLogger(__name__)


class ToolInvocation(BaseModel):
    """Immutable audit record of one call that reached a handler."""

    model_config = ConfigDict(frozen=True)

    sequence: int
    run: int
    task_ordinal: int
    task_attempt: int
    tool: str
    arguments: dict[str, object] = Field(description="As supplied; registers by reference")
    resolved_arguments: dict[str, object] = Field(description="As sent to the handler")
    status: Literal["ok", "error"]
    outputs: dict[str, object] = Field(default_factory=dict)
    error: ToolError | None = None
    register_writes: list[str] = Field(default_factory=list)
    operation: OperationReport | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    @field_validator("arguments", "resolved_arguments", "outputs", mode="before")
    @classmethod
    def _load_values(cls, value: object) -> object:
        return load_value(value)

    @field_serializer("arguments", "resolved_arguments", "outputs", when_used="json")
    def _dump_values(self, value: dict[str, object]) -> object:
        return dump_value(value)

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class ToolDispatcher:
    def __init__(
        self,
        *,
        catalog: ToolCatalog,
        gate: ModeGate,
        queue: TaskQueue,
        registers: RegisterStore,
        operations: OperationTracker,
        handlers: HandlerRegistry,
        history: list[ToolInvocation],
    ) -> None:
        self._catalog = catalog
        self._gate = gate
        self._queue = queue
        self._registers = registers
        self._operations = operations
        self._handlers = handlers
        self._history = history

    def _bind(
        self, tool: str, spec: ToolSpec | None, arguments: Mapping[str, object]
    ) -> tuple[dict[str, object], dict[str, object]]:
        """Resolve register references.

        Returns (recorded, resolved): the arguments as the caller expressed
        them and the arguments the handler will receive.
        """

        register_inputs = list(spec.register_inputs) if spec is not None else []
        refs: dict[str, str] = {}
        literals: dict[str, object] = {}
        for key, value in arguments.items():
            ref = value if isinstance(value, RegisterRef) else RegisterRef.from_json(value)
            if ref is not None:
                refs[key] = ref.name
            elif key in register_inputs:
                raise RegisterBindingViolation(tool, key)
            else:
                literals[key] = value

        # Declared register inputs bind to the register of the same name unless
        # the caller pointed them elsewhere.
        for param in register_inputs:
            refs.setdefault(param, param)

        wanted = [refs[p] for p in register_inputs] + [
            name for p, name in refs.items() if p not in register_inputs
        ]
        values = self._registers.require_all(wanted)

        recorded: dict[str, object] = dict(literals)
        resolved: dict[str, object] = dict(literals)
        for param, name in refs.items():
            recorded[param] = RegisterRef(name).to_json()
            resolved[param] = values[name]

        if spec is not None:
            for param in spec.amount_arguments:
                if param in resolved:
                    resolved[param] = parse_amount(resolved[param])

        return recorded, resolved

    def invoke(
        self,
        tool: str,
        arguments: Mapping[str, object],
        *,
        workflow: WorkflowDefinition | None,
        run: int,
    ) -> ToolInvocation:
        self._gate.check(tool)
        if workflow is None or tool not in workflow.required_tools:
            raise ToolNotDeclared(tool, None if workflow is None else workflow.name)

        task = self._queue.current_task()
        if task is None:
            raise NoActiveTask(f"'{tool}' cannot run: no task is active")

        spec = self._catalog.get(tool)
        recorded, resolved = self._bind(tool, spec, arguments)

        handler = self._handlers.get(tool)
        if handler is None:
            raise NoToolHandler(tool)

        logger.info(
            "Dispatching tool",
            extra={"tool": tool, "task_ordinal": task.ordinal, "workflow": workflow.ref},
        )
        try:
            response = handler(tool, resolved)
        except Exception as e:
            logger.exception("Tool handler crashed", extra={"tool": tool})
            response = ToolResponse.failure(str(e), kind=type(e).__name__)

        if response.operation is not None:
            try:
                self._operations.check(response.operation)
            except IllegalOperationTransition as e:
                response = ToolResponse.failure(str(e), kind="operation_conflict")

        writes: list[str] = []
        if response.ok:
            declared = spec.outputs if spec is not None else []
            for name in declared:
                if name in response.outputs:
                    self._registers.put(name, response.outputs[name], producer=tool)
                    writes.append(name)

        if response.operation is not None:
            self._operations.apply(response.operation, tool=tool, task_ordinal=task.ordinal)

        invocation = ToolInvocation(
            sequence=len(self._history) + 1,
            run=run,
            task_ordinal=task.ordinal,
            task_attempt=task.attempt,
            tool=tool,
            arguments=recorded,
            resolved_arguments=resolved,
            status=response.status,
            outputs=response.outputs,
            error=response.error,
            register_writes=writes,
            operation=response.operation,
        )
        self._history.append(invocation)

        if not response.ok:
            error = response.error or ToolError()
            logger.warning(
                "Tool call failed",
                extra={"tool": tool, "error_kind": error.kind, "detail": error.detail},
            )
            raise ExternalToolFailure(tool, error.detail, error_kind=error.kind)

        logger.info("Tool call succeeded", extra={"tool": tool, "register_writes": writes})
        return invocation
