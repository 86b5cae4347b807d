"""Ordered task queue with a single active cursor.

"Do not work ahead" is a structural invariant here: at most one task is
active, and completed/skipped ordinals always form a prefix of the script.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from skill_runtime.orchestrator.workflow.definitions import TaskDeclaration

from .errors import InvalidTaskList, NoActiveTask, WorkflowAlreadyActive

logger = logging.getLogger(__name__)


class QueueState(str, Enum):
    EMPTY = "empty"
    DEFINED = "defined"
    EXECUTING = "executing"
    COMPLETED = "completed"


class TaskStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    SKIPPED = "skipped"


ALLOWED_TRANSITIONS: dict[QueueState, set[QueueState]] = {
    QueueState.EMPTY: {QueueState.DEFINED},
    QueueState.DEFINED: {QueueState.EXECUTING, QueueState.EMPTY},
    QueueState.EXECUTING: {QueueState.COMPLETED, QueueState.EMPTY},
    QueueState.COMPLETED: {QueueState.EMPTY},
}


class IllegalTransitionError(ValueError):
    pass


TaskPosition = Literal["front", "back"]


class TaskSpec(BaseModel):
    ordinal: int
    description: str
    checklist: list[str] = Field(default_factory=list)
    optional: bool = False
    status: TaskStatus = TaskStatus.PENDING
    attempt: int = 1
    messages: list[str] = Field(default_factory=list)
    summary: str | None = None

    @property
    def finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.SKIPPED)


def _coerce(tasks: Sequence[str | TaskDeclaration]) -> list[TaskSpec]:
    specs: list[TaskSpec] = []
    for idx, task in enumerate(tasks, start=1):
        if isinstance(task, TaskDeclaration):
            if task.ordinal != idx:
                raise InvalidTaskList(
                    f"Task ordinal {task.ordinal} out of sequence (expected {idx})"
                )
            specs.append(
                TaskSpec(
                    ordinal=idx,
                    description=task.description,
                    checklist=list(task.checklist),
                    optional=task.optional,
                )
            )
            continue
        description = task.strip() if isinstance(task, str) else ""
        if not description:
            raise InvalidTaskList(f"Task {idx} has an empty description")
        specs.append(TaskSpec(ordinal=idx, description=description))
    return specs


class TaskQueue:
    """Per-session queue: empty -> defined -> executing -> completed."""

    def __init__(self) -> None:
        self._state = QueueState.EMPTY
        self._tasks: list[TaskSpec] = []

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def tasks(self) -> list[TaskSpec]:
        return [t.model_copy(deep=True) for t in self._tasks]

    def _transition(self, to: QueueState) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self._state, set())
        if to not in allowed:
            raise IllegalTransitionError(f"Illegal transition: {self._state.value} -> {to.value}")
        self._state = to

    def _active(self) -> TaskSpec | None:
        for task in self._tasks:
            if task.status is TaskStatus.ACTIVE:
                return task
        return None

    def define_tasks(self, tasks: Sequence[str | TaskDeclaration]) -> TaskSpec:
        """Populate the queue and activate the first task. Only valid when empty."""

        if self._state is not QueueState.EMPTY:
            raise WorkflowAlreadyActive(
                f"Task queue is {self._state.value}; tasks cannot be redefined mid-flight"
            )
        if not tasks:
            raise InvalidTaskList("At least one task is required")

        specs = _coerce(tasks)
        self._transition(QueueState.DEFINED)
        self._tasks = specs
        self._tasks[0].status = TaskStatus.ACTIVE
        self._transition(QueueState.EXECUTING)
        logger.info("Tasks defined", extra={"count": len(specs)})
        return self._tasks[0].model_copy(deep=True)

    def current_task(self) -> TaskSpec | None:
        active = self._active()
        return None if active is None else active.model_copy(deep=True)

    def add_message(self, message: str) -> TaskSpec:
        active = self._active()
        if active is None:
            raise NoActiveTask()
        active.messages.append(message)
        return active.model_copy(deep=True)

    def advance(self, *, skipped: bool = False, summary: str | None = None) -> TaskSpec | None:
        """Finish the active task and activate the next one.

        Returns the newly active task, or None when the queue is completed.
        """

        active = self._active()
        if active is None:
            raise NoActiveTask()

        active.status = TaskStatus.SKIPPED if skipped else TaskStatus.COMPLETED
        active.summary = summary

        for task in self._tasks:
            if task.status is TaskStatus.PENDING:
                task.status = TaskStatus.ACTIVE
                logger.info(
                    "Task advanced",
                    extra={"finished": active.ordinal, "active": task.ordinal, "skipped": skipped},
                )
                return task.model_copy(deep=True)

        self._transition(QueueState.COMPLETED)
        logger.info("Task queue completed", extra={"tasks": len(self._tasks)})
        return None

    def add_task(self, description: str, *, position: TaskPosition = "front") -> TaskSpec:
        """Insert a pending task while the queue is executing.

        `front` makes it the next task after the active one; `back` appends it.
        The active task keeps its ordinal; later tasks are renumbered.
        """

        active = self._active()
        if active is None:
            raise NoActiveTask("Tasks can only be added while a task is active")
        if position not in ("front", "back"):
            raise InvalidTaskList(f"Invalid position '{position}'; use 'front' or 'back'")
        text = description.strip()
        if not text:
            raise InvalidTaskList("Task description must not be empty")

        task = TaskSpec(ordinal=0, description=text)
        if position == "front":
            self._tasks.insert(self._tasks.index(active) + 1, task)
        else:
            self._tasks.append(task)
        for ordinal, spec in enumerate(self._tasks, start=1):
            spec.ordinal = ordinal
        logger.info("Task added", extra={"ordinal": task.ordinal, "position": position})
        return task.model_copy(deep=True)

    def retry_active(self) -> TaskSpec:
        """Start a fresh attempt of the active task without moving the cursor."""

        active = self._active()
        if active is None:
            raise NoActiveTask()
        active.attempt += 1
        logger.info("Task retry", extra={"ordinal": active.ordinal, "attempt": active.attempt})
        return active.model_copy(deep=True)

    def reset(self) -> None:
        if self._state is not QueueState.EMPTY:
            self._transition(QueueState.EMPTY)
        self._tasks = []

    def completed_prefix(self) -> list[int]:
        return [t.ordinal for t in self._tasks if t.finished]

    def restore(self, *, state: QueueState, tasks: Sequence[TaskSpec]) -> None:
        active = [t for t in tasks if t.status is TaskStatus.ACTIVE]
        if len(active) > 1:
            raise IllegalTransitionError("Snapshot has more than one active task")
        self._state = state
        self._tasks = [t.model_copy(deep=True) for t in tasks]
