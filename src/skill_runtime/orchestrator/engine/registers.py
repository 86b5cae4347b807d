"""Session-scoped register store.

Registers hold intermediate values produced by one tool and consumed by
another. A register is written only as a declared output of a successful tool
call; callers refer to registers by name and never supply their values.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, field_serializer, field_validator

from .errors import MissingRegisters, RegisterNotSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RegisterRef:
    """An argument placeholder: "read register `name`"."""

    name: str

    def to_json(self) -> dict[str, str]:
        return {"$register": self.name}

    @staticmethod
    def from_json(obj: object) -> RegisterRef | None:
        if isinstance(obj, dict) and set(obj) == {"$register"}:
            name = obj["$register"]
            if isinstance(name, str) and name.strip():
                return RegisterRef(name.strip())
        return None


_DECIMAL_TAG = "$decimal"


def dump_value(value: object) -> object:
    """JSON form of a register value. Decimals are tagged so they load back exactly."""

    if isinstance(value, Decimal):
        return {_DECIMAL_TAG: str(value)}
    if isinstance(value, dict):
        return {key: dump_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [dump_value(item) for item in value]
    return value


def load_value(value: object) -> object:
    if isinstance(value, dict):
        raw = value.get(_DECIMAL_TAG)
        if len(value) == 1 and isinstance(raw, str):
            try:
                return Decimal(raw)
            except InvalidOperation:
                return value
        return {key: load_value(item) for key, item in value.items()}
    if isinstance(value, list):
        return [load_value(item) for item in value]
    return value


class Register(BaseModel):
    name: str
    value: object
    produced_by: str
    written_at: int

    @field_validator("value", mode="before")
    @classmethod
    def _load_value(cls, value: object) -> object:
        return load_value(value)

    @field_serializer("value", when_used="json")
    def _dump_value(self, value: object) -> object:
        return dump_value(value)


class RegisterStore:
    """Key/value store stamped with a monotonically increasing write counter."""

    def __init__(self) -> None:
        self._registers: dict[str, Register] = {}
        self._sequence = 0

    def __contains__(self, name: object) -> bool:
        return name in self._registers

    def __len__(self) -> int:
        return len(self._registers)

    @property
    def sequence(self) -> int:
        return self._sequence

    def put(self, name: str, value: object, producer: str) -> Register:
        self._sequence += 1
        register = Register(
            name=name,
            value=copy.deepcopy(value),
            produced_by=producer,
            written_at=self._sequence,
        )
        self._registers[name] = register
        logger.debug(
            "Register written",
            extra={"register": name, "producer": producer, "written_at": self._sequence},
        )
        return register.model_copy(deep=True)

    def get(self, name: str) -> object:
        register = self._registers.get(name)
        if register is None:
            raise RegisterNotSet(name)
        return copy.deepcopy(register.value)

    def describe(self, name: str) -> Register:
        register = self._registers.get(name)
        if register is None:
            raise RegisterNotSet(name)
        return register.model_copy(deep=True)

    def require_all(self, names: Iterable[str]) -> dict[str, object]:
        """Return every requested value, or fail listing all absent names."""

        wanted = list(dict.fromkeys(names))
        missing = [n for n in wanted if n not in self._registers]
        if missing:
            raise MissingRegisters(missing)
        return {n: self.get(n) for n in wanted}

    def names(self) -> list[str]:
        return sorted(self._registers)

    def clear(self) -> None:
        # The counter keeps running so written_at stays unique per session.
        self._registers.clear()

    def snapshot(self) -> list[Register]:
        return [r.model_copy(deep=True) for r in self._registers.values()]

    def restore(self, registers: Iterable[Register], *, sequence: int) -> None:
        self._registers = {r.name: r.model_copy(deep=True) for r in registers}
        highest = max((r.written_at for r in self._registers.values()), default=0)
        self._sequence = max(sequence, highest)
