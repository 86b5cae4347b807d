"""Mode gate: capability-set gating of the tool catalog."""

from __future__ import annotations

import logging

from skill_runtime.orchestrator.workflow.catalog import ToolCatalog, ToolSpec
from skill_runtime.orchestrator.workflow.definitions import WorkflowDefinition

from .errors import ModeNotSelected, ToolNotAllowed, UnknownMode

logger = logging.getLogger(__name__)


class ModeGate:
    """Restricts which tools are reachable until (and after) a mode is selected.

    The gate only holds the selected mode. Clearing in-flight workflow state on
    a mode switch is the session's job.
    """

    def __init__(self, catalog: ToolCatalog, selected_mode: str | None = None) -> None:
        self._catalog = catalog
        self._selected: str | None = None
        if selected_mode is not None:
            self.select(selected_mode)

    @property
    def selected_mode(self) -> str | None:
        return self._selected

    @property
    def mode_selection_tool(self) -> str:
        return self._catalog.mode_selection_tool

    def modes(self) -> list[str]:
        return sorted(self._catalog.modes)

    def select(self, mode: str) -> None:
        if mode not in self._catalog.modes:
            raise UnknownMode(mode, self._catalog.modes)
        previous = self._selected
        self._selected = mode
        logger.info("Mode selected", extra={"mode": mode, "previous_mode": previous})

    def is_tool_allowed(self, tool: str) -> bool:
        if tool == self._catalog.mode_selection_tool:
            return True
        if self._selected is None:
            return False
        return tool in self._catalog.allowed_in(self._selected)

    def check(self, tool: str) -> None:
        if tool == self._catalog.mode_selection_tool:
            return
        if self._selected is None:
            raise ModeNotSelected(tool)
        if not self.is_tool_allowed(tool):
            raise ToolNotAllowed(tool, self._selected)

    def authorize(self, workflow: WorkflowDefinition) -> None:
        """Fail unless every tool the workflow requires is reachable."""

        if self._selected is None:
            raise ModeNotSelected(workflow.name)
        blocked = [t for t in sorted(workflow.required_tools) if not self.is_tool_allowed(t)]
        if blocked:
            raise ToolNotAllowed(blocked[0], self._selected, others=blocked[1:])

    def allowed_tools(self) -> list[ToolSpec]:
        if self._selected is None:
            return []
        allowed = self._catalog.allowed_in(self._selected)
        return [t for t in self._catalog.tools if t.name in allowed]
