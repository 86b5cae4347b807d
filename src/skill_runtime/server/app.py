"""FastAPI app factory.

Endpoints are thin wrappers over `Session`; every fault the runtime raises is
reported as `{"error": {kind, detail}}`, except on the invoke endpoint which
always answers with the tool RPC response shape.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skill_runtime import __version__
from skill_runtime.orchestrator.engine.completion import AcknowledgeResult, CompletionResult
from skill_runtime.orchestrator.engine.errors import (
    ExternalToolFailure,
    RuntimeFault,
    UnknownWorkflow,
)
from skill_runtime.orchestrator.engine.task_queue import TaskSpec
from skill_runtime.orchestrator.runtime import build_runtime
from skill_runtime.orchestrator.state.store import SessionNotFound
from skill_runtime.orchestrator.tools.handlers import ToolError
from skill_runtime.orchestrator.workflow.definitions import WorkflowDefinition
from skill_runtime.server.config import ServerSettings
from skill_runtime.server.models import (
    AddTaskRequest,
    ApiMode,
    ApiSession,
    ApiTool,
    CompleteRequest,
    CreateSessionRequest,
    DefineTasksRequest,
    InvokeRequest,
    ModeSelected,
    ProgressRequest,
    RpcResponse,
    SelectModeRequest,
    SkipRequest,
    StartWorkflowRequest,
)
from skill_runtime.server.session_registry import SessionRegistry

logger = logging.getLogger(__name__)


def _fault_response(fault: RuntimeFault) -> JSONResponse:
    status_code = 404 if isinstance(fault, UnknownWorkflow) else 409
    return JSONResponse(status_code=status_code, content={"error": fault.to_json()})


def create_app(settings: ServerSettings | None = None) -> FastAPI:
    settings = settings or ServerSettings()
    runtime = build_runtime(settings)
    sessions = SessionRegistry(runtime)

    app = FastAPI(
        title="Skill Task Runtime",
        version=__version__,
        description="REST API over skill-runtime sessions.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    # Expose settings for request handlers that want to read it.
    app.state.settings = settings
    app.state.runtime = runtime
    app.state.sessions = sessions

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RuntimeFault)
    def handle_fault(_request: Request, exc: RuntimeFault) -> JSONResponse:
        return _fault_response(exc)

    @app.exception_handler(SessionNotFound)
    def handle_unknown_session(_request: Request, exc: SessionNotFound) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": {"kind": "unknown_session", "detail": str(exc)}},
        )

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/workflows", response_model=list[WorkflowDefinition])
    def list_workflows() -> list[WorkflowDefinition]:
        return runtime.workflows.list()

    @app.get("/api/modes", response_model=list[ApiMode])
    def list_modes() -> list[ApiMode]:
        catalog = runtime.catalog
        return [
            ApiMode(name=name, description=spec.description, tools=sorted(catalog.allowed_in(name)))
            for name, spec in sorted(catalog.modes.items())
        ]

    @app.post("/api/sessions", response_model=ApiSession, status_code=201)
    def create_session(req: CreateSessionRequest | None = None) -> ApiSession:
        try:
            session = sessions.create(None if req is None else req.session_id)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e)) from e
        return ApiSession.from_session(session)

    @app.get("/api/sessions/{session_id}", response_model=ApiSession)
    def get_session(session_id: str) -> ApiSession:
        with sessions.use(session_id) as session:
            return ApiSession.from_session(session)

    @app.delete("/api/sessions/{session_id}", status_code=204)
    def delete_session(session_id: str) -> Response:
        sessions.delete(session_id)
        return Response(status_code=204)

    @app.get("/api/sessions/{session_id}/tools", response_model=list[ApiTool])
    def list_session_tools(session_id: str) -> list[ApiTool]:
        with sessions.use(session_id) as session:
            return [ApiTool.from_spec(spec) for spec in session.allowed_tools()]

    @app.post("/api/sessions/{session_id}/mode", response_model=ModeSelected)
    def select_mode(session_id: str, req: SelectModeRequest) -> ModeSelected:
        with sessions.use(session_id) as session:
            allowed = session.select_mode(req.mode)
        return ModeSelected(mode=req.mode, allowed_tools=[ApiTool.from_spec(t) for t in allowed])

    @app.post("/api/sessions/{session_id}/workflow", response_model=ApiSession)
    def start_workflow(session_id: str, req: StartWorkflowRequest) -> ApiSession:
        with sessions.use(session_id) as session:
            session.start_workflow(req.name, version=req.version)
            return ApiSession.from_session(session)

    @app.post("/api/sessions/{session_id}/end-workflow", response_model=ApiSession)
    def end_workflow(session_id: str) -> ApiSession:
        with sessions.use(session_id) as session:
            session.end_workflow()
            return ApiSession.from_session(session)

    @app.post("/api/sessions/{session_id}/tasks", response_model=ApiSession)
    def define_tasks(session_id: str, req: DefineTasksRequest) -> ApiSession:
        with sessions.use(session_id) as session:
            session.define_tasks(req.tasks)
            return ApiSession.from_session(session)

    @app.post("/api/sessions/{session_id}/tasks/add", response_model=ApiSession)
    def add_task(session_id: str, req: AddTaskRequest) -> ApiSession:
        with sessions.use(session_id) as session:
            session.add_task(req.description, position=req.position)
            return ApiSession.from_session(session)

    @app.post("/api/sessions/{session_id}/invoke", response_model=RpcResponse)
    def invoke(session_id: str, req: InvokeRequest) -> RpcResponse | JSONResponse:
        with sessions.use(session_id) as session:
            try:
                invocation = session.invoke(req.tool, req.arguments)
            except ExternalToolFailure:
                # The call reached the tool; report exactly what it answered.
                invocation = session.history[-1]
            except RuntimeFault as e:
                body = RpcResponse(status="error", error=ToolError(kind=e.kind, detail=e.detail))
                return JSONResponse(status_code=409, content=body.model_dump(mode="json"))
        return RpcResponse(
            status=invocation.status,
            outputs=invocation.outputs,
            error=invocation.error,
            operation=invocation.operation,
        )

    @app.post("/api/sessions/{session_id}/progress", response_model=TaskSpec)
    def progress(session_id: str, req: ProgressRequest) -> TaskSpec:
        with sessions.use(session_id) as session:
            return session.progress(req.message)

    @app.post("/api/sessions/{session_id}/complete", response_model=CompletionResult)
    def complete(session_id: str, req: CompleteRequest) -> CompletionResult:
        with sessions.use(session_id) as session:
            return session.complete(req.summary, ordinal=req.ordinal)

    @app.post("/api/sessions/{session_id}/skip", response_model=CompletionResult)
    def skip(session_id: str, req: SkipRequest) -> CompletionResult:
        with sessions.use(session_id) as session:
            return session.skip(req.reason)

    @app.post("/api/sessions/{session_id}/acknowledge-failure", response_model=AcknowledgeResult)
    def acknowledge_failure(session_id: str) -> AcknowledgeResult:
        with sessions.use(session_id) as session:
            return session.acknowledge_failure()

    return app
