"""Wiring: settings -> catalog, workflows, handlers -> sessions.

Both the CLI and the REST server build sessions through `RuntimeContext`, so
a session restored by one surface behaves exactly as it would in the other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from skill_runtime.orchestrator.config import RuntimeSettings
from skill_runtime.orchestrator.engine.session import Session
from skill_runtime.orchestrator.state.store import SessionStore
from skill_runtime.orchestrator.tools.handlers import HandlerRegistry
from skill_runtime.orchestrator.tools.http_client import ToolServiceClient
from skill_runtime.orchestrator.workflow.catalog import ToolCatalog, load_catalog
from skill_runtime.orchestrator.workflow.definitions import WorkflowRegistry

logger = logging.getLogger(__name__)


@dataclass
class RuntimeContext:
    settings: RuntimeSettings
    catalog: ToolCatalog
    workflows: WorkflowRegistry
    handlers: HandlerRegistry
    store: SessionStore

    def new_session(self, session_id: str | None = None) -> Session:
        return Session(
            catalog=self.catalog,
            handlers=self.handlers,
            workflows=self.workflows,
            policy=self.settings.failed_task_policy,
            session_id=session_id,
        )

    def load_session(self, session_id: str) -> Session:
        """Restore a persisted session. Raises SessionNotFound."""

        return Session.from_snapshot(
            self.store.load(session_id),
            catalog=self.catalog,
            handlers=self.handlers,
            workflows=self.workflows,
            policy=self.settings.failed_task_policy,
        )

    def save_session(self, session: Session) -> None:
        self.store.save(session.snapshot())


def build_handlers(settings: RuntimeSettings, catalog: ToolCatalog) -> HandlerRegistry:
    """Route catalog tools to the HTTP tool service when one is configured.

    Without a service URL only tools with their own `endpoint` get a handler;
    everything else fails with NoToolHandler when invoked.
    """

    if settings.tool_service_url:
        client = ToolServiceClient(
            base_url=settings.tool_service_url,
            catalog=catalog,
            timeout_seconds=settings.tool_timeout_seconds,
        )
        return HandlerRegistry.from_catalog(catalog, client)

    registry = HandlerRegistry()
    with_endpoint = [t for t in catalog.tools if t.endpoint]
    if with_endpoint:
        client = ToolServiceClient(
            base_url="", catalog=catalog, timeout_seconds=settings.tool_timeout_seconds
        )
        for spec in with_endpoint:
            registry.register(spec.name, client)
    return registry


def build_runtime(settings: RuntimeSettings) -> RuntimeContext:
    catalog = load_catalog(settings.catalog_path)
    workflows = WorkflowRegistry.from_directories([settings.workflows_path])
    for definition in workflows.list():
        missing = definition.missing_from(catalog)
        if missing:
            logger.warning(
                "Workflow requires tools absent from the catalog",
                extra={"workflow": definition.ref, "missing": missing},
            )
    return RuntimeContext(
        settings=settings,
        catalog=catalog,
        workflows=workflows,
        handlers=build_handlers(settings, catalog),
        store=SessionStore(settings.sessions_state_dir),
    )
