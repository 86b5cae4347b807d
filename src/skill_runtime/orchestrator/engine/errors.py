"""Fault taxonomy for the runtime.

Structural violations are raised before any state mutation or external call.
External failures are surfaced verbatim and never retried.
"""

from __future__ import annotations

from collections.abc import Sequence


class RuntimeFault(Exception):
    """Base class for every fault the runtime reports to a caller."""

    kind: str = "runtime_fault"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_json(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": self.detail}


class StructuralViolation(RuntimeFault):
    """A call that would corrupt workflow state. Always rejected outright."""

    kind = "structural_violation"


class ModeNotSelected(StructuralViolation):
    kind = "mode_not_selected"

    def __init__(self, tool: str) -> None:
        super().__init__(f"No operating mode selected; '{tool}' is unavailable until one is")
        self.tool = tool


class UnknownMode(StructuralViolation):
    kind = "unknown_mode"

    def __init__(self, mode: str, known: Sequence[str]) -> None:
        super().__init__(f"Unknown mode '{mode}' (known: {', '.join(sorted(known))})")
        self.mode = mode


class ToolNotAllowed(StructuralViolation):
    kind = "tool_not_allowed"

    def __init__(self, tool: str, mode: str, *, others: Sequence[str] = ()) -> None:
        tools = [tool, *[t for t in others if t != tool]]
        super().__init__(f"Not allowed in mode '{mode}': {', '.join(tools)}")
        self.tool = tool
        self.tools = tools
        self.mode = mode


class ToolNotDeclared(StructuralViolation):
    kind = "tool_not_declared"

    def __init__(self, tool: str, workflow: str | None) -> None:
        if workflow is None:
            detail = f"'{tool}' cannot run: no workflow is active"
        else:
            detail = f"'{tool}' is not a required tool of workflow '{workflow}'"
        super().__init__(detail)
        self.tool = tool
        self.workflow = workflow


class RegisterNotSet(StructuralViolation):
    kind = "register_not_set"

    def __init__(self, name: str) -> None:
        super().__init__(f"Register '{name}' is not set")
        self.name = name


class MissingRegisters(StructuralViolation):
    kind = "missing_registers"

    def __init__(self, names: Sequence[str]) -> None:
        super().__init__(f"Missing registers: {', '.join(names)}")
        self.names = list(names)


class RegisterBindingViolation(StructuralViolation):
    kind = "register_binding_violation"

    def __init__(self, tool: str, parameter: str) -> None:
        super().__init__(
            f"'{tool}' parameter '{parameter}' must be bound to a register, not a literal value"
        )
        self.tool = tool
        self.parameter = parameter


class InvalidAmountFormat(StructuralViolation):
    kind = "invalid_amount_format"

    def __init__(self, raw: object) -> None:
        super().__init__(f"Invalid amount: {raw!r}")
        self.raw = raw


class WorkflowAlreadyActive(StructuralViolation):
    kind = "workflow_already_active"


class NoActiveWorkflow(StructuralViolation):
    kind = "no_active_workflow"


class UnknownWorkflow(StructuralViolation):
    kind = "unknown_workflow"

    def __init__(self, name: str, version: str | None = None) -> None:
        label = name if version is None else f"{name}@{version}"
        super().__init__(f"Unknown workflow '{label}'")
        self.name = name
        self.version = version


class InvalidTaskList(StructuralViolation, ValueError):
    kind = "invalid_task_list"


class NoActiveTask(StructuralViolation):
    kind = "no_active_task"

    def __init__(self, detail: str = "No task is active") -> None:
        super().__init__(detail)


class PrematureCompletion(StructuralViolation):
    kind = "premature_completion"


class OutOfOrderCompletion(PrematureCompletion):
    kind = "out_of_order_completion"

    def __init__(self, requested: int, active: int) -> None:
        super().__init__(f"Task {requested} is not active (active task: {active})")
        self.requested = requested
        self.active = active


class NoToolHandler(StructuralViolation):
    kind = "no_tool_handler"

    def __init__(self, tool: str) -> None:
        super().__init__(f"No handler registered for '{tool}'")
        self.tool = tool


class InvocationInProgress(StructuralViolation):
    kind = "invocation_in_progress"


class NoFailureToAcknowledge(StructuralViolation):
    kind = "no_failure_to_acknowledge"


class ExternalToolFailure(RuntimeFault):
    """The external handler reported a failure. Surfaced verbatim."""

    kind = "external_tool_failure"

    def __init__(self, tool: str, detail: str, *, error_kind: str = "tool_error") -> None:
        super().__init__(detail)
        self.tool = tool
        self.error_kind = error_kind

    def to_json(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": f"{self.tool}: {self.detail}"}


class PendingOperationFailed(RuntimeFault):
    """A pending operation of the active task ended in a terminal failure."""

    kind = "pending_operation_failed"

    def __init__(self, operation_id: str, detail: str) -> None:
        super().__init__(detail)
        self.operation_id = operation_id


class OperationReverted(PendingOperationFailed):
    kind = "reverted"


class OperationTimedOut(PendingOperationFailed):
    kind = "timed_out"
