# FILE: sitesmith/app.py
"""
Application factory.

Every collaborator (session factory, lock manager, ledgers, pipeline,
authenticator) is built here and stored on app.state. Tests pass their own
session factory, pipeline and authenticator instead of patching globals.
"""
import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from sitesmith import __version__
from sitesmith.auth import StaticTokenAuthenticator
from sitesmith.builds.packager import ArtifactPackager
from sitesmith.builds.service import BuildLedger
from sitesmith.config import Settings
from sitesmith.conversation.service import ConversationLedger
from sitesmith.db import init_db, make_engine, make_session_factory
from sitesmith.errors import ErrorType, error_body
from sitesmith.locks.service import LockManager, LockPolicy
from sitesmith.operations.engine import BuildOperations
from sitesmith.operations.router import router as operations_router
from sitesmith.pipeline.base import SitePipeline
from sitesmith.pipeline.orchestrator import PipelineOrchestrator
from sitesmith.projects.router import router as projects_router
from sitesmith.projects.service import ProjectService

logger = logging.getLogger(__name__)


def _default_pipeline(settings: Settings) -> SitePipeline:
    from sitesmith.pipeline.llm import OpenAISitePipeline
    return OpenAISitePipeline(api_key=settings.openai_api_key, model=settings.openai_model)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    first = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": error_body(ErrorType.VALIDATION_ERROR, first, errors=errors)},
    )


def create_app(
    settings: Settings,
    pipeline: Optional[SitePipeline] = None,
    session_factory: Optional[sessionmaker] = None,
    authenticator: Optional[Callable[[str], Optional[str]]] = None,
) -> FastAPI:
    app = FastAPI(
        title="SiteSmith",
        version=__version__,
        description="Prompt-driven website builder with versioned builds",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    if session_factory is None:
        engine = make_engine(settings.database_url)
        init_db(engine)
        session_factory = make_session_factory(engine)

    if authenticator is None and settings.api_tokens:
        authenticator = StaticTokenAuthenticator(settings.api_tokens)
    if authenticator is None:
        logger.warning("[startup] No API tokens configured; authenticated endpoints will return 503")

    if pipeline is None:
        pipeline = _default_pipeline(settings)

    lock_policy = LockPolicy(
        fail_open=settings.lock_fail_open,
        stale_after_seconds=settings.lock_stale_after_seconds,
    )
    if lock_policy.fail_open:
        logger.warning("[startup] Lock fail-open is ENABLED: storage errors will not block operations")

    state = app.state
    state.settings = settings
    state.session_factory = session_factory
    state.authenticator = authenticator
    state.projects = ProjectService(session_factory)
    state.locks = LockManager(session_factory, lock_policy)
    state.builds = BuildLedger(session_factory)
    state.conversation = ConversationLedger(session_factory)
    state.packager = ArtifactPackager()
    state.orchestrator = PipelineOrchestrator(pipeline, timeout_seconds=settings.pipeline_timeout_seconds)
    state.operations = BuildOperations(
        projects=state.projects,
        locks=state.locks,
        builds=state.builds,
        conversation=state.conversation,
        orchestrator=state.orchestrator,
        history_limit=settings.history_limit,
    )

    app.include_router(projects_router)
    app.include_router(operations_router)

    @app.get("/health")
    def health():
        return {"status": "ok", "version": __version__, "pipeline": pipeline.name}

    logger.info(
        f"[startup] SiteSmith {__version__}: pipeline={pipeline.name} "
        f"timeout={settings.pipeline_timeout_seconds:.0f}s stale_lock_after={settings.lock_stale_after_seconds}"
    )
    return app
