"""Workflow definitions and the registry that loads them.

A workflow (a "skill") is a static descriptor: the tools it may call and the
ordered task script it follows. Definitions are immutable once loaded and are
shared read-only between sessions.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
    model_validator,
)

from skill_runtime.orchestrator.engine.errors import UnknownWorkflow

from .catalog import ToolCatalog

logger = logging.getLogger(__name__)


class TaskDeclaration(BaseModel):
    model_config = ConfigDict(frozen=True)

    ordinal: int = Field(ge=1)
    description: str = Field(min_length=1)
    checklist: tuple[str, ...] = Field(
        default=(),
        description="Tools that must each record a successful call before the task completes",
    )
    optional: bool = Field(default=False)


class WorkflowDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    version: str = Field(default="1.0.0")
    description: str = Field(default="")
    required_tools: frozenset[str] = Field(default_factory=frozenset)
    tasks: tuple[TaskDeclaration, ...] = Field(default=())
    tags: tuple[str, ...] = Field(default=())

    @model_validator(mode="after")
    def _check_tasks(self) -> WorkflowDefinition:
        ordinals = [t.ordinal for t in self.tasks]
        if ordinals != list(range(1, len(ordinals) + 1)):
            raise ValueError(f"Task ordinals must be 1..{len(ordinals)} in order, got {ordinals}")
        for task in self.tasks:
            undeclared = [t for t in task.checklist if t not in self.required_tools]
            if undeclared:
                raise ValueError(
                    f"Task {task.ordinal} checklist names undeclared tools: {', '.join(undeclared)}"
                )
        return self

    @field_serializer("required_tools")
    def _sorted_tools(self, tools: frozenset[str]) -> list[str]:
        return sorted(tools)

    @property
    def ref(self) -> str:
        return f"{self.name}@{self.version}"

    def missing_from(self, catalog: ToolCatalog) -> list[str]:
        """Required tools the catalog does not know about."""

        known = set(catalog.names())
        return sorted(t for t in self.required_tools if t not in known)


def _version_key(version: str) -> tuple[tuple[int, str], ...]:
    parts: list[tuple[int, str]] = []
    for piece in version.split("."):
        parts.append((int(piece), "") if piece.isdigit() else (-1, piece))
    return tuple(parts)


def load_definition(path: Path) -> WorkflowDefinition:
    raw = json.loads(path.read_text(encoding="utf-8"))
    return WorkflowDefinition.model_validate(raw)


class WorkflowRegistry:
    """In-memory registry keyed by (name, version)."""

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()) -> None:
        self._definitions: dict[tuple[str, str], WorkflowDefinition] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: WorkflowDefinition) -> None:
        key = (definition.name, definition.version)
        if key in self._definitions:
            logger.info("Workflow definition overridden", extra={"workflow": definition.ref})
        self._definitions[key] = definition

    def get(self, name: str, version: str | None = None) -> WorkflowDefinition:
        if version is not None:
            definition = self._definitions.get((name, version))
            if definition is None:
                raise UnknownWorkflow(name, version)
            return definition

        candidates = [d for (n, _v), d in self._definitions.items() if n == name]
        if not candidates:
            raise UnknownWorkflow(name)
        return max(candidates, key=lambda d: _version_key(d.version))

    def list(self) -> list[WorkflowDefinition]:
        return sorted(self._definitions.values(), key=lambda d: (d.name, _version_key(d.version)))

    @classmethod
    def from_directories(cls, directories: Iterable[Path]) -> WorkflowRegistry:
        """Load every `*.json` definition; later directories take precedence."""

        registry = cls()
        for directory in directories:
            if not directory.exists():
                logger.debug("Workflow directory missing", extra={"path": str(directory)})
                continue
            for path in sorted(directory.glob("*.json")):
                try:
                    definition = load_definition(path)
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.warning(
                        "Skipping invalid workflow definition",
                        extra={"path": str(path), "error": str(e)},
                    )
                    continue
                registry.add(definition)
        logger.info("Workflows loaded", extra={"count": len(registry._definitions)})
        return registry
