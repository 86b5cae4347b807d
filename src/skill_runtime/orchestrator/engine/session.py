"""One workflow-execution context per conversation.

The session owns its mode gate, register store, task queue, operation tracker
and invocation history, and exposes the operations a caller may perform.
Lifecycle rule: whenever the task queue returns to empty (workflow ended or
mode switched) the registers, pending operations and active workflow go too.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from skill_runtime.orchestrator.tools.handlers import HandlerRegistry
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog, ToolSpec
from skill_runtime.orchestrator.workflow.definitions import (
    TaskDeclaration,
    WorkflowDefinition,
    WorkflowRegistry,
)

from .completion import AcknowledgeResult, CompletionController, CompletionResult, FailedTaskPolicy
from .dispatcher import ToolDispatcher, ToolInvocation
from .errors import (
    InvocationInProgress,
    NoActiveWorkflow,
    ToolNotDeclared,
    UnknownMode,
    UnknownWorkflow,
    WorkflowAlreadyActive,
)
from .modes import ModeGate
from .operations import OperationTracker, PendingOperation
from .registers import Register, RegisterStore
from .task_queue import QueueState, TaskPosition, TaskQueue, TaskSpec

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1"


class WorkflowRef(BaseModel):
    name: str
    version: str


class SessionSnapshot(BaseModel):
    """Everything needed to resume or audit a session at its last committed step."""

    version: str = Field(default=SNAPSHOT_VERSION)
    session_id: str
    selected_mode: str | None = None
    workflow: WorkflowRef | None = None
    workflow_definition: WorkflowDefinition | None = None
    run: int = 0
    queue_state: QueueState = QueueState.EMPTY
    tasks: list[TaskSpec] = Field(default_factory=list)
    registers: list[Register] = Field(default_factory=list)
    register_sequence: int = 0
    history: list[ToolInvocation] = Field(default_factory=list)
    operations: list[PendingOperation] = Field(default_factory=list)
    updated_at: str = Field(default_factory=lambda: datetime.now(tz=UTC).isoformat())


class Session:
    def __init__(
        self,
        *,
        catalog: ToolCatalog,
        handlers: HandlerRegistry,
        workflows: WorkflowRegistry | None = None,
        policy: FailedTaskPolicy = "restart_workflow",
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self._catalog = catalog
        self._workflows = workflows or WorkflowRegistry()
        self._workflow: WorkflowDefinition | None = None
        self._run = 0
        self._busy: str | None = None

        self._gate = ModeGate(catalog)
        self._registers = RegisterStore()
        self._queue = TaskQueue()
        self._operations = OperationTracker()
        self._history: list[ToolInvocation] = []

        self._dispatcher = ToolDispatcher(
            catalog=catalog,
            gate=self._gate,
            queue=self._queue,
            registers=self._registers,
            operations=self._operations,
            handlers=handlers,
            history=self._history,
        )
        self._completion = CompletionController(
            queue=self._queue,
            operations=self._operations,
            history=self._history,
            policy=policy,
        )

    # -- read-only views -------------------------------------------------

    @property
    def selected_mode(self) -> str | None:
        return self._gate.selected_mode

    @property
    def active_workflow(self) -> WorkflowDefinition | None:
        return self._workflow

    @property
    def queue_state(self) -> QueueState:
        return self._queue.state

    @property
    def tasks(self) -> list[TaskSpec]:
        return self._queue.tasks

    @property
    def history(self) -> list[ToolInvocation]:
        return list(self._history)

    @property
    def operations(self) -> list[PendingOperation]:
        return self._operations.all()

    def current_task(self) -> TaskSpec | None:
        return self._queue.current_task()

    def allowed_tools(self) -> list[ToolSpec]:
        return self._gate.allowed_tools()

    def is_tool_allowed(self, tool: str) -> bool:
        return self._gate.is_tool_allowed(tool)

    def register(self, name: str) -> object:
        return self._registers.get(name)

    def register_names(self) -> list[str]:
        return self._registers.names()

    # -- lifecycle -------------------------------------------------------

    def _guard(self, operation: str) -> None:
        # A handler re-entering the session must not change the state its
        # own result is about to be merged into.
        if self._busy is not None:
            raise InvocationInProgress(
                f"'{self._busy}' is still running; '{operation}' rejected"
            )

    def _end_workflow(self) -> None:
        self._queue.reset()
        self._registers.clear()
        self._operations.clear()
        if self._workflow is not None:
            logger.info(
                "Workflow ended",
                extra={"session_id": self.session_id, "workflow": self._workflow.ref},
            )
        self._workflow = None

    def _sync_lifecycle(self) -> None:
        if self._queue.state is QueueState.EMPTY and self._workflow is not None:
            self._end_workflow()

    def end_workflow(self) -> None:
        """Abandon the active workflow. Safe at any point between calls."""

        self._guard("end_workflow")
        self._end_workflow()

    def select_mode(self, mode: str) -> list[ToolSpec]:
        self._guard("select_mode")
        self._gate.select(mode)
        self._end_workflow()
        logger.info("Session mode set", extra={"session_id": self.session_id, "mode": mode})
        return self._gate.allowed_tools()

    def start_workflow(
        self, workflow: WorkflowDefinition | str, *, version: str | None = None
    ) -> TaskSpec | None:
        """Authorize and activate a workflow.

        Returns the first active task, or None when the workflow leaves task
        definition to the caller.
        """

        self._guard("start_workflow")
        definition = (
            self._workflows.get(workflow, version) if isinstance(workflow, str) else workflow
        )

        self._gate.authorize(definition)
        if self._workflow is not None and self._queue.state is not QueueState.COMPLETED:
            raise WorkflowAlreadyActive(
                f"Workflow '{self._workflow.ref}' is still active; end it before starting another"
            )
        if self._queue.state is QueueState.COMPLETED:
            self._end_workflow()

        first: TaskSpec | None = None
        if definition.tasks:
            first = self._queue.define_tasks(list(definition.tasks))
        self._workflow = definition
        self._run += 1
        logger.info(
            "Workflow started",
            extra={
                "session_id": self.session_id,
                "workflow": definition.ref,
                "tasks": len(definition.tasks),
            },
        )
        return first

    def define_tasks(self, tasks: Sequence[str | TaskDeclaration]) -> TaskSpec:
        self._guard("define_tasks")
        if self._workflow is None:
            raise NoActiveWorkflow("Start a workflow before defining its tasks")
        for task in tasks:
            if isinstance(task, TaskDeclaration):
                for tool in task.checklist:
                    if tool not in self._workflow.required_tools:
                        raise ToolNotDeclared(tool, self._workflow.name)
        return self._queue.define_tasks(tasks)

    def add_task(self, description: str, *, position: TaskPosition = "front") -> TaskSpec:
        """Insert a task mid-flight, e.g. an approval step discovered before a swap."""

        self._guard("add_task")
        return self._queue.add_task(description, position=position)

    # -- tools -----------------------------------------------------------

    def invoke(self, tool: str, arguments: Mapping[str, object] | None = None) -> ToolInvocation:
        self._guard(tool)
        arguments = dict(arguments or {})
        if tool == self._gate.mode_selection_tool:
            return self._invoke_mode_selection(tool, arguments)
        self._busy = tool
        try:
            return self._dispatcher.invoke(
                tool, arguments, workflow=self._workflow, run=self._run
            )
        finally:
            self._busy = None

    def _invoke_mode_selection(self, tool: str, arguments: dict[str, object]) -> ToolInvocation:
        mode = arguments.get("mode")
        if not isinstance(mode, str):
            raise UnknownMode(repr(mode), self._gate.modes())
        allowed = self.select_mode(mode)
        invocation = ToolInvocation(
            sequence=len(self._history) + 1,
            run=self._run,
            task_ordinal=0,
            task_attempt=0,
            tool=tool,
            arguments=arguments,
            resolved_arguments=arguments,
            status="ok",
            outputs={"mode": mode, "allowed_tools": [t.name for t in allowed]},
        )
        self._history.append(invocation)
        return invocation

    # -- completion ------------------------------------------------------

    def progress(self, message: str) -> TaskSpec:
        self._guard("progress")
        return self._completion.progress(message)

    def complete(self, summary: str = "", *, ordinal: int | None = None) -> CompletionResult:
        self._guard("complete")
        return self._completion.complete(summary, run=self._run, ordinal=ordinal)

    def skip(self, reason: str = "") -> CompletionResult:
        self._guard("skip")
        return self._completion.skip(reason)

    def acknowledge_failure(self) -> AcknowledgeResult:
        self._guard("acknowledge_failure")
        result = self._completion.acknowledge_failure()
        self._sync_lifecycle()
        return result

    # -- persistence -----------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        workflow = self._workflow
        return SessionSnapshot(
            session_id=self.session_id,
            selected_mode=self._gate.selected_mode,
            workflow=(
                None
                if workflow is None
                else WorkflowRef(name=workflow.name, version=workflow.version)
            ),
            workflow_definition=workflow,
            run=self._run,
            queue_state=self._queue.state,
            tasks=self._queue.tasks,
            registers=self._registers.snapshot(),
            register_sequence=self._registers.sequence,
            history=list(self._history),
            operations=self._operations.all(),
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: SessionSnapshot,
        *,
        catalog: ToolCatalog,
        handlers: HandlerRegistry,
        workflows: WorkflowRegistry | None = None,
        policy: FailedTaskPolicy = "restart_workflow",
    ) -> Session:
        session = cls(
            catalog=catalog,
            handlers=handlers,
            workflows=workflows,
            policy=policy,
            session_id=snapshot.session_id,
        )
        if snapshot.selected_mode is not None:
            session._gate.select(snapshot.selected_mode)

        definition = snapshot.workflow_definition
        if definition is None and snapshot.workflow is not None:
            try:
                ref = snapshot.workflow
                definition = session._workflows.get(ref.name, ref.version)
            except UnknownWorkflow:
                logger.warning(
                    "Snapshot workflow no longer available; restoring without it",
                    extra={"session_id": snapshot.session_id, "workflow": snapshot.workflow.name},
                )
        session._workflow = definition
        session._run = snapshot.run
        session._queue.restore(state=snapshot.queue_state, tasks=snapshot.tasks)
        session._registers.restore(snapshot.registers, sequence=snapshot.register_sequence)
        session._operations.restore(snapshot.operations)
        session._history.extend(snapshot.history)
        return session
