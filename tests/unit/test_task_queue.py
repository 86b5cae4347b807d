"""Unit tests for the task queue state machine.

These tests assert that illegal transitions fail loudly and that at most one
task is ever active.
"""

from __future__ import annotations

import pytest

from skill_runtime.orchestrator.engine.errors import (
    InvalidTaskList,
    NoActiveTask,
    WorkflowAlreadyActive,
)
from skill_runtime.orchestrator.engine.task_queue import (
    IllegalTransitionError,
    QueueState,
    TaskQueue,
    TaskSpec,
    TaskStatus,
)
from skill_runtime.orchestrator.workflow.definitions import TaskDeclaration


def _active(queue: TaskQueue) -> list[int]:
    return [t.ordinal for t in queue.tasks if t.status is TaskStatus.ACTIVE]


def test_define_tasks_activates_the_first_task() -> None:
    queue = TaskQueue()
    first = queue.define_tasks(["Resolve recipient", "Look up token", "Send"])

    assert queue.state is QueueState.EXECUTING
    assert first.ordinal == 1
    assert first.status is TaskStatus.ACTIVE
    assert _active(queue) == [1]
    assert [t.status for t in queue.tasks[1:]] == [TaskStatus.PENDING, TaskStatus.PENDING]


@pytest.mark.parametrize("tasks", [[], ["ok", "   "]])
def test_define_tasks_rejects_empty_lists_and_descriptions(tasks: list[str]) -> None:
    queue = TaskQueue()
    with pytest.raises(InvalidTaskList):
        queue.define_tasks(tasks)
    assert queue.state is QueueState.EMPTY
    assert queue.tasks == []


def test_define_tasks_rejects_out_of_sequence_declarations() -> None:
    queue = TaskQueue()
    with pytest.raises(InvalidTaskList):
        queue.define_tasks([TaskDeclaration(ordinal=2, description="Second")])


def test_define_tasks_only_when_empty() -> None:
    queue = TaskQueue()
    queue.define_tasks(["one"])
    with pytest.raises(WorkflowAlreadyActive):
        queue.define_tasks(["again"])
    assert [t.description for t in queue.tasks] == ["one"]


def test_advance_walks_the_script_in_order() -> None:
    queue = TaskQueue()
    queue.define_tasks(["a", "b", "c"])

    nxt = queue.advance(summary="done a")
    assert nxt is not None and nxt.ordinal == 2
    assert queue.completed_prefix() == [1]
    assert _active(queue) == [2]

    nxt = queue.advance(skipped=True)
    assert nxt is not None and nxt.ordinal == 3
    assert queue.tasks[1].status is TaskStatus.SKIPPED

    assert queue.advance() is None
    assert queue.state is QueueState.COMPLETED
    assert queue.completed_prefix() == [1, 2, 3]
    assert _active(queue) == []
    assert queue.tasks[0].summary == "done a"


def test_advance_without_active_task_fails() -> None:
    with pytest.raises(NoActiveTask):
        TaskQueue().advance()


def test_completed_queue_only_resets() -> None:
    queue = TaskQueue()
    queue.define_tasks(["only"])
    queue.advance()
    with pytest.raises(WorkflowAlreadyActive):
        queue.define_tasks(["more"])

    queue.reset()
    assert queue.state is QueueState.EMPTY
    assert queue.tasks == []


def test_retry_keeps_the_cursor_and_bumps_the_attempt() -> None:
    queue = TaskQueue()
    queue.define_tasks(["a", "b"])
    queue.advance()

    retried = queue.retry_active()
    assert retried.ordinal == 2
    assert retried.attempt == 2
    assert _active(queue) == [2]


def test_messages_attach_to_the_active_task_only() -> None:
    queue = TaskQueue()
    queue.define_tasks(["a", "b"])
    queue.add_message("working on a")

    assert queue.tasks[0].messages == ["working on a"]
    assert queue.tasks[1].messages == []
    assert _active(queue) == [1]


def test_tasks_view_is_a_copy() -> None:
    queue = TaskQueue()
    queue.define_tasks(["a"])
    queue.tasks[0].status = TaskStatus.COMPLETED
    assert _active(queue) == [1]


def test_restore_rejects_two_active_tasks() -> None:
    tasks = [
        TaskSpec(ordinal=1, description="a", status=TaskStatus.ACTIVE),
        TaskSpec(ordinal=2, description="b", status=TaskStatus.ACTIVE),
    ]
    with pytest.raises(IllegalTransitionError):
        TaskQueue().restore(state=QueueState.EXECUTING, tasks=tasks)


def test_add_task_inserts_without_moving_the_cursor() -> None:
    queue = TaskQueue()
    queue.define_tasks(["Look up token", "Swap", "Report"])
    queue.advance()

    added = queue.add_task("Approve token spend", position="front")
    assert added.ordinal == 3
    assert added.status is TaskStatus.PENDING

    last = queue.add_task("Post receipt", position="back")
    assert last.ordinal == 5

    assert [t.description for t in queue.tasks] == [
        "Look up token",
        "Swap",
        "Approve token spend",
        "Report",
        "Post receipt",
    ]
    assert [t.ordinal for t in queue.tasks] == [1, 2, 3, 4, 5]
    assert _active(queue) == [2]

    assert queue.advance().description == "Approve token spend"  # type: ignore[union-attr]


def test_add_task_rules() -> None:
    queue = TaskQueue()
    with pytest.raises(NoActiveTask):
        queue.add_task("Too early")

    queue.define_tasks(["Only"])
    with pytest.raises(InvalidTaskList):
        queue.add_task("   ")
    with pytest.raises(InvalidTaskList):
        queue.add_task("Somewhere", position="middle")  # type: ignore[arg-type]

    queue.advance()
    assert queue.state is QueueState.COMPLETED
    with pytest.raises(NoActiveTask):
        queue.add_task("Too late")
