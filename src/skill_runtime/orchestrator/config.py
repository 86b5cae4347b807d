"""Configuration for the skill task runtime.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Mode allow-lists and tool declarations are not settings; they live in the
tool catalog file that `catalog_path` points at.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RuntimeSettings(BaseSettings):
    """Settings for the runtime.

    Environment variables:
    - LOG_LEVEL                          (optional)
    - SKILL_RUNTIME_STATE_PATH           (optional)
    - SKILL_RUNTIME_WORKFLOWS_PATH       (optional)
    - SKILL_RUNTIME_CATALOG_PATH         (optional)
    - SKILL_RUNTIME_TOOL_SERVICE_URL     (optional)
    - SKILL_RUNTIME_TOOL_TIMEOUT_SECONDS (optional)
    - SKILL_RUNTIME_FAILED_TASK_POLICY   (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `RuntimeSettings(_env_file=path_to_env)`.
    """

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    state_path: Path = Field(
        default=Path("agent_state"),
        validation_alias="SKILL_RUNTIME_STATE_PATH",
        description="Directory where session snapshots are persisted",
    )

    workflows_path: Path = Field(
        default=Path("workflows"),
        validation_alias="SKILL_RUNTIME_WORKFLOWS_PATH",
        description="Directory holding workflow definition files (*.json)",
    )

    catalog_path: Path = Field(
        default=Path("config/tool_catalog.json"),
        validation_alias="SKILL_RUNTIME_CATALOG_PATH",
        description="Tool catalog with mode allow-lists",
    )

    tool_service_url: str = Field(
        default="",
        validation_alias="SKILL_RUNTIME_TOOL_SERVICE_URL",
        description="Base URL of the external tool service; tools are posted to <url>/tools/<name>",
    )
    tool_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        validation_alias="SKILL_RUNTIME_TOOL_TIMEOUT_SECONDS",
        description="Transport timeout for a single tool call",
    )

    failed_task_policy: Literal["restart_workflow", "retry_task"] = Field(
        default="restart_workflow",
        validation_alias="SKILL_RUNTIME_FAILED_TASK_POLICY",
        description=(
            "What acknowledging a failed pending operation does: 'restart_workflow' ends the "
            "workflow, 'retry_task' keeps the failed task active for another attempt."
        ),
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("tool_service_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @property
    def sessions_state_dir(self) -> Path:
        """Directory where one JSON snapshot per session is persisted."""

        return self.state_path / "sessions"
