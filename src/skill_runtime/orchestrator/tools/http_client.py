"""HTTP client for an external tool service.

Posts the RPC request `{tool, arguments}` and parses the RPC response. Any
transport or protocol problem is returned as an error response: the runtime
never retries, since side-effecting tools cannot be assumed idempotent.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests
from pydantic import ValidationError

from skill_runtime import __version__
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog

from .handlers import ToolResponse

logger = logging.getLogger(__name__)


class ToolServiceClient:
    """Small wrapper around requests for calling tools over HTTP."""

    def __init__(
        self,
        *,
        base_url: str,
        catalog: ToolCatalog | None = None,
        timeout_seconds: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url.strip() and catalog is None:
            raise ValueError("Tool service base URL is required")

        self._base_url = base_url.rstrip("/")
        self._catalog = catalog
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/json",
                "User-Agent": f"skill-task-runtime/{__version__}",
            }
        )

    def _url_for(self, tool: str) -> str:
        if self._catalog is not None:
            spec = self._catalog.get(tool)
            if spec is not None and spec.endpoint:
                return spec.endpoint
        if not self._base_url:
            raise ValueError(f"No endpoint configured for tool '{tool}'")
        return f"{self._base_url}/tools/{tool}"

    def __call__(self, tool: str, arguments: dict[str, object]) -> ToolResponse:
        try:
            url = self._url_for(tool)
        except ValueError as e:
            return ToolResponse.failure(str(e), kind="configuration")

        payload: dict[str, Any] = {"tool": tool, "arguments": arguments}
        logger.debug("Calling tool service", extra={"tool": tool, "url": url})
        try:
            resp = self._session.post(
                url,
                data=json.dumps(payload, default=str),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            logger.warning("Tool service unreachable", extra={"tool": tool, "error": str(e)})
            return ToolResponse.failure(str(e), kind="transport")

        if resp.status_code >= 400:
            return ToolResponse.failure(
                f"HTTP {resp.status_code}: {resp.text[:500]}", kind="transport"
            )

        try:
            return ToolResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            return ToolResponse.failure(f"Malformed tool response: {e}", kind="protocol")

    def close(self) -> None:
        self._session.close()
