"""Tool catalog and mode allow-lists.

The catalog is configuration: it names every tool the runtime can dispatch,
the registers each tool produces and consumes, and which tools each operating
mode may reach. The engine evaluates it; it never hard-codes tool names.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

SYSTEM_GROUP = "system"
DEFAULT_MODE_SELECTION_TOOL = "select_mode"


class ToolSpec(BaseModel):
    """Static description of one dispatchable tool."""

    name: str
    group: str = Field(default="general")
    description: str = Field(default="")

    outputs: list[str] = Field(
        default_factory=list,
        description="Response outputs merged into the register store on success",
    )
    register_inputs: list[str] = Field(
        default_factory=list,
        description="Parameters that may only be bound from registers",
    )
    amount_arguments: list[str] = Field(
        default_factory=list,
        description="Parameters parsed with the numeric shorthand grammar before dispatch",
    )
    endpoint: str | None = Field(
        default=None,
        description="Absolute URL overriding the tool service default route",
    )


class ModeSpec(BaseModel):
    description: str = Field(default="")
    tools: list[str] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)


class ToolCatalog(BaseModel):
    mode_selection_tool: str = Field(default=DEFAULT_MODE_SELECTION_TOOL)
    tools: list[ToolSpec] = Field(default_factory=list)
    modes: dict[str, ModeSpec] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_references(self) -> ToolCatalog:
        seen: set[str] = set()
        for tool in self.tools:
            if tool.name in seen:
                raise ValueError(f"Duplicate tool in catalog: {tool.name}")
            seen.add(tool.name)

        for mode_name, mode in self.modes.items():
            unknown = [t for t in mode.tools if t not in seen]
            if unknown:
                raise ValueError(
                    f"Mode '{mode_name}' references unknown tools: {', '.join(unknown)}"
                )
        return self

    def get(self, name: str) -> ToolSpec | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def names(self) -> list[str]:
        return [t.name for t in self.tools]

    def allowed_in(self, mode: str) -> set[str]:
        """Tool names reachable under `mode` (mode selection tool included)."""

        spec = self.modes.get(mode)
        allowed = {self.mode_selection_tool}
        if spec is None:
            return allowed
        allowed.update(spec.tools)
        groups = {SYSTEM_GROUP, *spec.groups}
        allowed.update(t.name for t in self.tools if t.group in groups)
        return allowed


def load_catalog(path: Path) -> ToolCatalog:
    """Load a catalog JSON file. A missing file yields an empty catalog."""

    if not path.exists():
        logger.warning("Tool catalog not found; using empty catalog", extra={"path": str(path)})
        return ToolCatalog()

    raw = json.loads(path.read_text(encoding="utf-8"))
    catalog = ToolCatalog.model_validate(raw)
    logger.info(
        "Tool catalog loaded",
        extra={"path": str(path), "tools": len(catalog.tools), "modes": len(catalog.modes)},
    )
    return catalog
