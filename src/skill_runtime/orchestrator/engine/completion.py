"""Completion controller.

Two distinct signals with different preconditions:
- progress: attach a user-visible message to the active task, nothing else
- complete: finish the active task, only once its checklist is satisfied

This is the only component that advances the task queue.
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

from .dispatcher import ToolInvocation
from .errors import (
    NoActiveTask,
    NoFailureToAcknowledge,
    OperationReverted,
    OperationTimedOut,
    OutOfOrderCompletion,
    PendingOperationFailed,
    PrematureCompletion,
)
from .operations import OperationStatus, OperationTracker, PendingOperation
from .task_queue import TaskQueue, TaskSpec, TaskStatus

logger = logging.getLogger(__name__)

FailedTaskPolicy = Literal["restart_workflow", "retry_task"]


class CompletionResult(BaseModel):
    ordinal: int
    status: TaskStatus
    message: str
    next_task: TaskSpec | None = None
    workflow_completed: bool = False
    operations: list[PendingOperation] = Field(default_factory=list)


class AcknowledgeResult(BaseModel):
    ordinal: int
    policy: FailedTaskPolicy
    message: str
    workflow_ended: bool
    operations: list[PendingOperation] = Field(default_factory=list)


def _failure_fault(op: PendingOperation) -> PendingOperationFailed:
    message = f"{op.user_message()} Acknowledge the failure before continuing."
    if op.status is OperationStatus.REVERTED:
        return OperationReverted(op.id, message)
    return OperationTimedOut(op.id, message)


class CompletionController:
    def __init__(
        self,
        *,
        queue: TaskQueue,
        operations: OperationTracker,
        history: list[ToolInvocation],
        policy: FailedTaskPolicy = "restart_workflow",
    ) -> None:
        self._queue = queue
        self._operations = operations
        self._history = history
        self._policy: FailedTaskPolicy = policy

    @property
    def policy(self) -> FailedTaskPolicy:
        return self._policy

    def successful_tools(self, task: TaskSpec, *, run: int) -> set[str]:
        return {
            inv.tool
            for inv in self._history
            if inv.ok
            and inv.run == run
            and inv.task_ordinal == task.ordinal
            and inv.task_attempt == task.attempt
        }

    def progress(self, message: str) -> TaskSpec:
        if not message.strip():
            raise ValueError("Progress message must not be empty")
        task = self._queue.add_message(message)
        logger.info("Progress", extra={"ordinal": task.ordinal, "progress": message})
        return task

    def _check_operations(self, task: TaskSpec) -> list[PendingOperation]:
        ops = self._operations.for_task(task.ordinal)
        pending = [op.id for op in ops if op.status is OperationStatus.SUBMITTED]
        if pending:
            raise PrematureCompletion(
                f"Task {task.ordinal} has operations awaiting confirmation: {', '.join(pending)}"
            )
        failures = self._operations.unacknowledged_failures(task.ordinal)
        if failures:
            raise _failure_fault(failures[0])
        return [op for op in ops if op.status.succeeded]

    def complete(self, summary: str, *, run: int, ordinal: int | None = None) -> CompletionResult:
        task = self._queue.current_task()
        if task is None:
            raise NoActiveTask("No task is active; nothing to complete")
        if ordinal is not None and ordinal != task.ordinal:
            raise OutOfOrderCompletion(ordinal, task.ordinal)

        confirmed = self._check_operations(task)

        done = self.successful_tools(task, run=run)
        if task.checklist:
            missing = [t for t in task.checklist if t not in done]
            if missing:
                raise PrematureCompletion(
                    f"Task {task.ordinal} is not done; no successful call recorded for: "
                    f"{', '.join(missing)}"
                )
        elif not done:
            raise PrematureCompletion(
                f"Task {task.ordinal} is not done; no successful tool call recorded for it"
            )

        next_task = self._queue.advance(summary=summary or None)

        headline = f"Task {task.ordinal} complete"
        lines = [f"{headline}: {summary}" if summary else f"{headline}."]
        lines.extend(op.user_message() for op in confirmed)
        logger.info(
            "Task completed",
            extra={
                "ordinal": task.ordinal,
                "next": None if next_task is None else next_task.ordinal,
            },
        )
        return CompletionResult(
            ordinal=task.ordinal,
            status=TaskStatus.COMPLETED,
            message="\n".join(lines),
            next_task=next_task,
            workflow_completed=next_task is None,
            operations=confirmed,
        )

    def skip(self, reason: str) -> CompletionResult:
        task = self._queue.current_task()
        if task is None:
            raise NoActiveTask("No task is active; nothing to skip")
        if not task.optional:
            raise PrematureCompletion(f"Task {task.ordinal} is not optional and cannot be skipped")
        self._check_operations(task)

        next_task = self._queue.advance(skipped=True, summary=reason or None)
        logger.info("Task skipped", extra={"ordinal": task.ordinal, "reason": reason})
        headline = f"Task {task.ordinal} skipped"
        return CompletionResult(
            ordinal=task.ordinal,
            status=TaskStatus.SKIPPED,
            message=f"{headline}: {reason}" if reason else f"{headline}.",
            next_task=next_task,
            workflow_completed=next_task is None,
        )

    def acknowledge_failure(self) -> AcknowledgeResult:
        task = self._queue.current_task()
        if task is None:
            raise NoActiveTask("No task is active; nothing to acknowledge")
        failures = self._operations.unacknowledged_failures(task.ordinal)
        if not failures:
            raise NoFailureToAcknowledge(f"Task {task.ordinal} has no failed operation")

        acknowledged = self._operations.acknowledge(task.ordinal)
        lines = [op.user_message() for op in acknowledged]
        if self._policy == "retry_task":
            self._queue.retry_active()
            lines.append(f"Task {task.ordinal} must be carried out again before it can complete.")
            ended = False
        else:
            self._queue.reset()
            lines.append("The workflow has ended without completing; start it again to retry.")
            ended = True

        logger.warning(
            "Failure acknowledged",
            extra={"ordinal": task.ordinal, "policy": self._policy, "workflow_ended": ended},
        )
        return AcknowledgeResult(
            ordinal=task.ordinal,
            policy=self._policy,
            message="\n".join(lines),
            workflow_ended=ended,
            operations=acknowledged,
        )
