"""FastAPI application entrypoint for treelens service mode."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..analysers import available_analysers
from ..config import DEFAULT_ANALYSERS
from ..models import DEFAULT_MAX_DEPTH, BuildOptions
from ..orchestrator import Orchestrator, RunResult
from ..tree_builder import RootUnavailable
from ..merger import ReportMergeFailed


class RunRequest(BaseModel):
    path: str
    output: str
    analysers: List[str] = Field(default_factory=lambda: list(DEFAULT_ANALYSERS))
    ignore: List[str] = Field(default_factory=list)
    type_filters: List[str] = Field(default_factory=list)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0)
    respect_gitignore: bool = False
    prune_empty_dirs: bool = False
    follow_symlinks: bool = False
    timeout: Optional[float] = Field(default=None, gt=0)


class DiagnosticModel(BaseModel):
    kind: str
    subject: str
    message: str


class OutcomeModel(BaseModel):
    name: str
    state: str
    error: Optional[str] = None


class RunResponse(BaseModel):
    report_path: str
    nodes: int
    artifacts: List[str]
    outcomes: List[OutcomeModel]
    diagnostics: List[DiagnosticModel]


class AnalysersResponse(BaseModel):
    analysers: List[str]


class HealthResponse(BaseModel):
    status: str


def _default_orchestrator() -> Orchestrator:
    return Orchestrator()


def _to_response(result: RunResult) -> RunResponse:
    return RunResponse(
        report_path=str(result.output_path),
        nodes=len(result.tree),
        artifacts=[artifact.name for artifact in result.artifacts],
        outcomes=[
            OutcomeModel(name=outcome.name, state=outcome.state.value, error=outcome.error)
            for outcome in result.outcomes
        ],
        diagnostics=[
            DiagnosticModel(kind=item.kind.value, subject=item.subject, message=item.message)
            for item in result.diagnostics
        ],
    )


def create_app(
    orchestrator_factory: Callable[[], Orchestrator] = _default_orchestrator,
) -> FastAPI:
    """Create the FastAPI application exposing treelens runs."""
    app = FastAPI(title="TreeLens Service", version="1.0.0")

    async def get_orchestrator() -> Orchestrator:
        # Lazy-instantiate per request to keep state predictable.
        return orchestrator_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/analysers", response_model=AnalysersResponse)
    async def list_analysers() -> AnalysersResponse:
        return AnalysersResponse(analysers=available_analysers())

    @app.post("/run", response_model=RunResponse)
    async def run(
        payload: RunRequest,
        orchestrator: Orchestrator = Depends(get_orchestrator),
    ) -> RunResponse:
        options = BuildOptions.create(
            ignore=payload.ignore,
            type_filters=payload.type_filters,
            max_depth=payload.max_depth,
            respect_gitignore=payload.respect_gitignore,
            prune_empty_dirs=payload.prune_empty_dirs,
            follow_symlinks=payload.follow_symlinks,
        )

        def _run() -> RunResult:
            return orchestrator.run(
                payload.path,
                payload.output,
                payload.analysers,
                options,
                timeout=payload.timeout,
            )

        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, _run)
        return _to_response(result)

    @app.exception_handler(RootUnavailable)
    async def root_unavailable_handler(
        _: Any, exc: RootUnavailable
    ) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ReportMergeFailed)
    async def merge_failed_handler(
        _: Any, exc: ReportMergeFailed
    ) -> JSONResponse:
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000
) -> None:  # pragma: no cover - integration path
    try:
        import uvicorn
    except ModuleNotFoundError as exc:
        raise RuntimeError(
            "uvicorn is required to run the service. Install it with `pip install treelens[service]`."
        ) from exc

    app = create_app()
    uvicorn.run(app, host=host, port=port)
