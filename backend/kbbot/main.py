"""FastAPI application entry point."""
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from pydantic_settings import BaseSettings
from starlette.responses import Response

from kbbot.api.routes import admin, ask, metrics, webhook
from kbbot.services.answer_assembler import AnswerAssembler
from kbbot.services.corpus_loader import CorpusLoader
from kbbot.services.document_store import GitHubDocumentStore
from kbbot.services.llm_service import LLMService
from kbbot.services.sync_orchestrator import SyncOrchestrator
from kbbot.services.sync_state import InMemoryDocumentStore, RedisDocumentStore, SyncState
from kbbot.utils.logger import logger
from kbbot.utils.tracer import initialize_tracing, shutdown_tracing


class Settings(BaseSettings):
    """Application settings."""

    # Messaging platform
    wechat_token: str = ""
    mention_markers: str = "@机器人,@bot"

    # Completion model
    deepseek_api_key: str = ""
    deepseek_api_url: str = "https://api.deepseek.com/v1/chat/completions"
    deepseek_model: str = "deepseek-chat"
    completion_max_tokens: int = 1000
    completion_temperature: float = 0.7

    # Document store
    github_repo: str = ""
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    knowledge_folder: str = "knowledge"
    processed_folder: str = "processed"
    source_folder: str = "pdfs"

    # Applied to every outbound HTTP call
    http_timeout_seconds: float = 30.0

    # "simple" uses the whole knowledge folder; "rag" retrieves from processed chunks
    knowledge_base_type: str = "simple"

    # Retrieval and prompt limits
    retrieval_max_chars: int = 8000
    retrieval_max_blocks: int = 3
    prompt_token_limit: int = 32000
    prompt_fallback_context_chars: int = 10000

    # Sync state
    state_backend: str = "memory"  # memory or redis
    redis_url: str = "redis://localhost:6379/0"
    sync_log_limit: int = 200
    status_log_tail: int = 20

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # OpenTelemetry tracing configuration
    tracing_enabled: bool = False
    otlp_endpoint: str = ""

    class Config:
        env_file = os.path.join(os.path.dirname(__file__), "..", "..", ".env")
        env_file_encoding = 'utf-8'
        case_sensitive = False
        extra = "ignore"

    @property
    def mention_marker_list(self) -> List[str]:
        return [m.strip() for m in self.mention_markers.split(",") if m.strip()]


# Global services (initialized in lifespan)
settings: Settings = None
document_store: GitHubDocumentStore = None
sync_orchestrator: SyncOrchestrator = None
answer_assembler: AnswerAssembler = None
tracer_provider = None


def build_state_store(app_settings: Settings):
    if app_settings.state_backend == "redis":
        return RedisDocumentStore(redis_url=app_settings.redis_url)
    if app_settings.state_backend != "memory":
        raise ValueError(f"Unknown state backend: {app_settings.state_backend}")
    return InMemoryDocumentStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global settings, document_store, sync_orchestrator, answer_assembler, tracer_provider

    # Startup
    logger.info("Starting knowledge base bot")
    settings = Settings()

    tracer_provider = initialize_tracing(
        otlp_endpoint=settings.otlp_endpoint or None,
        tracing_enabled=settings.tracing_enabled,
    )

    document_store = GitHubDocumentStore(
        repo=settings.github_repo,
        token=settings.github_token or None,
        api_url=settings.github_api_url,
        timeout=settings.http_timeout_seconds,
    )
    state_store = build_state_store(settings)
    sync_orchestrator = SyncOrchestrator(
        document_store=document_store,
        state=SyncState(store=state_store, log_limit=settings.sync_log_limit),
        source_folder=settings.source_folder,
        processed_folder=settings.processed_folder,
    )

    llm_service = LLMService(
        api_key=settings.deepseek_api_key,
        api_url=settings.deepseek_api_url,
        model=settings.deepseek_model,
        max_tokens=settings.completion_max_tokens,
        temperature=settings.completion_temperature,
        timeout=settings.http_timeout_seconds,
    )
    answer_assembler = AnswerAssembler(
        corpus_loader=CorpusLoader(
            document_store,
            mode=settings.knowledge_base_type,
            knowledge_folder=settings.knowledge_folder,
            processed_folder=settings.processed_folder,
        ),
        llm_service=llm_service,
        retrieval_max_chars=settings.retrieval_max_chars,
        retrieval_max_blocks=settings.retrieval_max_blocks,
        token_limit=settings.prompt_token_limit,
        fallback_context_chars=settings.prompt_fallback_context_chars,
    )

    logger.info(
        f"Services initialized (knowledge base type: {settings.knowledge_base_type}, "
        f"state backend: {settings.state_backend})"
    )

    yield

    # Shutdown
    logger.info("Shutting down knowledge base bot")
    await llm_service.close()
    await document_store.close()
    await state_store.close()
    if tracer_provider:
        shutdown_tracing(tracer_provider)


# Create FastAPI app
app = FastAPI(
    title="Knowledge Base Bot",
    description="Answers chat questions from an incrementally synchronized document corpus",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handler for JSON parsing errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handle validation errors with better error messages.

    Control characters in the raw body are reported as a JSON parse error.
    """
    for error in exc.errors():
        ctx = error.get("ctx") or {}
        if error.get("type") == "json_invalid" and "control character" in str(ctx.get("error", "")):
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={
                    "detail": "Invalid JSON: control characters detected in request body",
                    "error": "json_parse_error",
                },
            )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors with their traceback and answer 500."""
    logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Knowledge Base Bot",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# Prometheus metrics endpoint
@app.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# Include routers
app.include_router(ask.router, prefix="/api", tags=["ask"])
app.include_router(metrics.router, prefix="/api", tags=["metrics"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
app.include_router(webhook.router, tags=["webhook"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host if settings else "0.0.0.0", port=settings.api_port if settings else 8000)
