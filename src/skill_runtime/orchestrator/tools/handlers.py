"""External tool handler boundary.

Handlers are the runtime's only way out to real tools (identity lookup,
pricing, transfers, broadcasts, social polling). They receive fully resolved
arguments and answer with the RPC response shape.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Literal, Protocol

from pydantic import BaseModel, Field, model_validator

from skill_runtime.orchestrator.engine.operations import OperationReport
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog

logger = logging.getLogger(__name__)


class ToolError(BaseModel):
    kind: str = Field(default="tool_error")
    detail: str = Field(default="")


class ToolResponse(BaseModel):
    status: Literal["ok", "error"]
    outputs: dict[str, object] = Field(default_factory=dict)
    error: ToolError | None = None
    operation: OperationReport | None = None

    @model_validator(mode="after")
    def _error_needs_detail(self) -> ToolResponse:
        if self.status == "error" and self.error is None:
            self.error = ToolError(detail="Tool reported an error without detail")
        return self

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def success(
        cls,
        outputs: Mapping[str, object] | None = None,
        *,
        operation: OperationReport | None = None,
    ) -> ToolResponse:
        return cls(status="ok", outputs=dict(outputs or {}), operation=operation)

    @classmethod
    def failure(cls, detail: str, *, kind: str = "tool_error") -> ToolResponse:
        return cls(status="error", error=ToolError(kind=kind, detail=detail))


class ToolHandler(Protocol):
    """Synchronous call into an external tool."""

    def __call__(self, tool: str, arguments: dict[str, object]) -> ToolResponse: ...


class CallableToolHandler:
    """Adapt a plain function returning outputs into a handler.

    The function may return a mapping of outputs or a full ToolResponse. Any
    exception it raises becomes an error response.
    """

    def __init__(self, func: Callable[..., Mapping[str, object] | ToolResponse]) -> None:
        self._func = func

    def __call__(self, tool: str, arguments: dict[str, object]) -> ToolResponse:
        try:
            result = self._func(**arguments)
        except Exception as e:
            logger.warning("Tool handler raised", extra={"tool": tool, "error": str(e)})
            return ToolResponse.failure(str(e), kind=type(e).__name__)
        if isinstance(result, ToolResponse):
            return result
        return ToolResponse.success(result)


class HandlerRegistry:
    def __init__(self) -> None:
        self._handlers: dict[str, ToolHandler] = {}

    def register(self, tool: str, handler: ToolHandler) -> None:
        self._handlers[tool] = handler

    def get(self, tool: str) -> ToolHandler | None:
        return self._handlers.get(tool)

    def names(self) -> list[str]:
        return sorted(self._handlers)

    @classmethod
    def from_catalog(cls, catalog: ToolCatalog, handler: ToolHandler) -> HandlerRegistry:
        """Route every catalog tool (except mode selection) to one handler."""

        registry = cls()
        for spec in catalog.tools:
            if spec.name == catalog.mode_selection_tool:
                continue
            registry.register(spec.name, handler)
        return registry
