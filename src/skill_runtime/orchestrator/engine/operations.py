"""Generic pending-operation sub-state-machine.

Some steps (broadcasting a transfer, then polling for its confirmation) start
an external action whose outcome is learned later. Tools report progress as
an operation `{id, status, detail}`; the tracker enforces the transitions.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class OperationStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    CONFIRMED_WITH_MISMATCH = "confirmed_with_mismatch"
    REVERTED = "reverted"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self is not OperationStatus.SUBMITTED

    @property
    def succeeded(self) -> bool:
        return self in (OperationStatus.CONFIRMED, OperationStatus.CONFIRMED_WITH_MISMATCH)

    @property
    def failed(self) -> bool:
        return self in (OperationStatus.REVERTED, OperationStatus.TIMED_OUT)


ALLOWED_TRANSITIONS: dict[OperationStatus, set[OperationStatus]] = {
    OperationStatus.SUBMITTED: {
        OperationStatus.SUBMITTED,
        OperationStatus.CONFIRMED,
        OperationStatus.CONFIRMED_WITH_MISMATCH,
        OperationStatus.REVERTED,
        OperationStatus.TIMED_OUT,
    },
    OperationStatus.CONFIRMED: set(),
    OperationStatus.CONFIRMED_WITH_MISMATCH: set(),
    OperationStatus.REVERTED: set(),
    OperationStatus.TIMED_OUT: set(),
}

USER_MESSAGES: dict[OperationStatus, str] = {
    OperationStatus.SUBMITTED: "Operation {id} submitted; awaiting confirmation.",
    OperationStatus.CONFIRMED: "Operation {id} confirmed.",
    OperationStatus.CONFIRMED_WITH_MISMATCH: (
        "Operation {id} confirmed, but the confirmed result does not match what was requested. "
        "Review it before continuing."
    ),
    OperationStatus.REVERTED: "Operation {id} FAILED: it was reverted.",
    OperationStatus.TIMED_OUT: (
        "Operation {id} FAILED: confirmation timed out. It may still settle; "
        "check its status before retrying."
    ),
}


class IllegalOperationTransition(ValueError):
    pass


class OperationReport(BaseModel):
    """The `operation` field of a tool response."""

    id: str = Field(min_length=1)
    status: OperationStatus
    detail: str = Field(default="")


class PendingOperation(BaseModel):
    id: str
    tool: str
    task_ordinal: int
    status: OperationStatus = OperationStatus.SUBMITTED
    detail: str = ""
    acknowledged: bool = False
    updated_at: str = Field(default_factory=lambda: datetime.now(tz=UTC).isoformat())

    def user_message(self) -> str:
        message = USER_MESSAGES[self.status].format(id=self.id)
        if self.detail:
            message = f"{message} {self.detail}"
        return message


class OperationTracker:
    def __init__(self) -> None:
        self._operations: dict[str, PendingOperation] = {}

    def check(self, report: OperationReport) -> None:
        """Validate a report without applying it."""

        existing = self._operations.get(report.id)
        current = OperationStatus.SUBMITTED if existing is None else existing.status
        if report.status not in ALLOWED_TRANSITIONS[current]:
            raise IllegalOperationTransition(
                f"Operation {report.id} is already {current.value}; "
                f"cannot become {report.status.value}"
            )

    def apply(self, report: OperationReport, *, tool: str, task_ordinal: int) -> PendingOperation:
        self.check(report)
        existing = self._operations.get(report.id)
        if existing is None:
            existing = PendingOperation(id=report.id, tool=tool, task_ordinal=task_ordinal)
        updated = existing.model_copy(
            update={
                "status": report.status,
                "detail": report.detail or existing.detail,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        )
        self._operations[report.id] = updated
        logger.info(
            "Operation updated",
            extra={"operation_id": report.id, "status": report.status.value, "tool": tool},
        )
        return updated.model_copy()

    def for_task(self, ordinal: int) -> list[PendingOperation]:
        return [op.model_copy() for op in self._operations.values() if op.task_ordinal == ordinal]

    def unacknowledged_failures(self, ordinal: int) -> list[PendingOperation]:
        return [op for op in self.for_task(ordinal) if op.status.failed and not op.acknowledged]

    def acknowledge(self, ordinal: int) -> list[PendingOperation]:
        acknowledged: list[PendingOperation] = []
        for op_id, op in list(self._operations.items()):
            if op.task_ordinal == ordinal and op.status.failed and not op.acknowledged:
                self._operations[op_id] = op.model_copy(update={"acknowledged": True})
                acknowledged.append(self._operations[op_id].model_copy())
        return acknowledged

    def all(self) -> list[PendingOperation]:
        return [op.model_copy() for op in self._operations.values()]

    def clear(self) -> None:
        self._operations.clear()

    def restore(self, operations: list[PendingOperation]) -> None:
        self._operations = {op.id: op.model_copy() for op in operations}
