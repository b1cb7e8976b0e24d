"""FastAPI application for repolens service mode.

Routes:
- GET  /health                  liveness and cache status
- GET  /api/analyze?repo=&ref=  SSE analysis stream
- POST /api/analyze             SSE analysis stream (JSON body)
- POST /api/analyze/sync        JSON report, for scripts
- GET  /api/reports/{report_id} cached report lookup
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from repolens import __version__
from repolens.cache import BoundedCache, create_cache
from repolens.config import RepolensConfig
from repolens.errors import (
    FatalAnalysisError,
    InvalidRepositoryError,
    RateLimitedError,
    RepositoryNotFoundError,
    UnauthorizedError,
)
from repolens.llm import LLMClient, create_client
from repolens.models.report import AnalysisReport
from repolens.pipeline import AnalysisPipeline, PipelineOptions
from repolens.progress import ProgressEmitter
from repolens.providers import GitHubProvider, RepositoryProvider
from repolens.service.events import safe_serialize, stream_analysis

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], RepositoryProvider]

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


class AnalyzeRequest(BaseModel):
    repo: str = Field(..., description="Repository URL or owner/name")
    ref: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    status: str
    version: str
    cache: str


def _status_for(error: FatalAnalysisError) -> int:
    if isinstance(error, InvalidRepositoryError):
        return 400
    if isinstance(error, RepositoryNotFoundError):
        return 404
    if isinstance(error, UnauthorizedError):
        return 401
    if isinstance(error, RateLimitedError):
        return 429
    return 502


def create_app(
    config: RepolensConfig | None = None,
    provider_factory: ProviderFactory | None = None,
    cache: BoundedCache | None = None,
    llm: LLMClient | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Collaborators are built here (or injected by tests) and stored on
    ``app.state``; the lifespan owns connecting and closing the cache.

    Args:
        config: repolens configuration (defaults when None)
        provider_factory: Builds a provider per run (GitHub REST when None)
        cache: Report cache (built from ``config.cache`` when None)
        llm: LLM client (built from ``config.llm`` when None)
    """
    config = config or RepolensConfig()

    def default_provider() -> RepositoryProvider:
        return GitHubProvider(config.github)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if app.state.cache is not None:
            app.state.cache_ready = await app.state.cache.connect()
        try:
            yield
        finally:
            if app.state.cache is not None:
                await app.state.cache.close()

    app = FastAPI(title="repolens", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.provider_factory = provider_factory or default_provider
    app.state.cache = cache if cache is not None else create_cache(config.cache)
    app.state.cache_ready = app.state.cache is not None
    app.state.llm = llm if llm is not None else create_client(config.llm)

    async def run_pipeline(
        repo: str, ref: str | None, options: PipelineOptions, emit: ProgressEmitter | None
    ) -> AnalysisReport:
        async with app.state.provider_factory() as provider:
            pipeline = AnalysisPipeline(
                provider, cache=app.state.cache, llm=app.state.llm, config=config.pipeline
            )
            return await pipeline.analyze(repo, ref, options, emit)

    def stream(request: Request, repo: str, ref: str | None, options: PipelineOptions) -> StreamingResponse:
        async def run(emit: ProgressEmitter) -> AnalysisReport:
            return await run_pipeline(repo, ref, options, emit)

        logger.info("Streaming analysis of %s", repo)
        return StreamingResponse(
            stream_analysis(run, request.is_disconnected, config.service.keepalive_interval),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        if app.state.cache is None:
            cache_status = "disabled"
        else:
            cache_status = "ok" if app.state.cache_ready else "degraded"
        return HealthResponse(status="ok", version=__version__, cache=cache_status)

    @app.get("/api/analyze")
    async def analyze_stream(
        request: Request,
        repo: str = Query(..., description="Repository URL or owner/name"),
        ref: str | None = None,
        no_cache: bool = False,
    ) -> StreamingResponse:
        return stream(request, repo, ref, PipelineOptions(use_cache=not no_cache))

    @app.post("/api/analyze")
    async def analyze_stream_post(request: Request, payload: AnalyzeRequest) -> StreamingResponse:
        return stream(request, payload.repo, payload.ref, PipelineOptions.from_dict(payload.options))

    @app.post("/api/analyze/sync")
    async def analyze_sync(payload: AnalyzeRequest) -> JSONResponse:
        try:
            report = await run_pipeline(
                payload.repo, payload.ref, PipelineOptions.from_dict(payload.options), None
            )
        except FatalAnalysisError as e:
            raise HTTPException(status_code=_status_for(e), detail=str(e)) from e
        return JSONResponse(content=safe_serialize(report))

    @app.get("/api/reports/{report_id}")
    async def get_report(report_id: str) -> JSONResponse:
        report = None
        if app.state.cache is not None:
            async with app.state.provider_factory() as provider:
                pipeline = AnalysisPipeline(provider, cache=app.state.cache, config=config.pipeline)
                report = await pipeline.get_report(report_id)
        if report is None:
            raise HTTPException(status_code=404, detail=f"Report not found: {report_id}")
        return JSONResponse(content=safe_serialize(report))

    return app


def run_service(config: RepolensConfig | None = None, host: str | None = None, port: int | None = None) -> None:
    """Run the service with uvicorn (blocks until shutdown)."""
    config = config or RepolensConfig()
    uvicorn.run(
        create_app(config),
        host=host or config.service.host,
        port=port or config.service.port,
        log_config=None,
    )
