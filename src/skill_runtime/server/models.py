"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from skill_runtime.orchestrator.engine.operations import OperationReport, PendingOperation
from skill_runtime.orchestrator.engine.session import Session, WorkflowRef
from skill_runtime.orchestrator.engine.task_queue import QueueState, TaskPosition, TaskSpec
from skill_runtime.orchestrator.tools.handlers import ToolError
from skill_runtime.orchestrator.workflow.catalog import ToolSpec
from skill_runtime.orchestrator.workflow.definitions import TaskDeclaration


class CreateSessionRequest(BaseModel):
    session_id: str | None = Field(default=None, pattern=r"^[A-Za-z0-9_-]{1,128}$")


class SelectModeRequest(BaseModel):
    mode: str


class StartWorkflowRequest(BaseModel):
    name: str
    version: str | None = None


class DefineTasksRequest(BaseModel):
    tasks: list[TaskDeclaration | str]


class AddTaskRequest(BaseModel):
    description: str = Field(min_length=1)
    position: TaskPosition = "front"


class InvokeRequest(BaseModel):
    tool: str
    arguments: dict[str, object] = Field(default_factory=dict)


class ProgressRequest(BaseModel):
    message: str = Field(min_length=1)


class CompleteRequest(BaseModel):
    summary: str = ""
    ordinal: int | None = Field(default=None, ge=1)


class SkipRequest(BaseModel):
    reason: str = ""


class ApiTool(BaseModel):
    name: str
    group: str
    description: str

    @classmethod
    def from_spec(cls, spec: ToolSpec) -> ApiTool:
        return cls(name=spec.name, group=spec.group, description=spec.description)


class ApiMode(BaseModel):
    name: str
    description: str
    tools: list[str]


class ModeSelected(BaseModel):
    mode: str
    allowed_tools: list[ApiTool]


class ApiSession(BaseModel):
    session_id: str
    selected_mode: str | None
    workflow: WorkflowRef | None
    queue_state: QueueState
    current_task: TaskSpec | None
    tasks: list[TaskSpec]
    registers: list[str]
    operations: list[PendingOperation]
    invocations: int

    @classmethod
    def from_session(cls, session: Session) -> ApiSession:
        workflow = session.active_workflow
        return cls(
            session_id=session.session_id,
            selected_mode=session.selected_mode,
            workflow=(
                None
                if workflow is None
                else WorkflowRef(name=workflow.name, version=workflow.version)
            ),
            queue_state=session.queue_state,
            current_task=session.current_task(),
            tasks=session.tasks,
            registers=session.register_names(),
            operations=session.operations,
            invocations=len(session.history),
        )


class RpcResponse(BaseModel):
    """Tool RPC response shape returned by the invoke endpoint."""

    status: Literal["ok", "error"]
    outputs: dict[str, object] = Field(default_factory=dict)
    error: ToolError | None = None
    operation: OperationReport | None = None
