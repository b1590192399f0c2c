import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from clipforge.config.constants import HTTP_STATUS_BAD_REQUEST
from clipforge.config.settings import settings
from clipforge.pipeline import ObserverRegistry, PipelineOrchestrator, PipelineRunner, ProjectManifestStore
from clipforge.routes import pipeline_router, projects_router, templates_router
from clipforge.schemas import StatusResponse
from clipforge.utils.ffmpeg_helper import verify_ffmpeg
from clipforge.utils.logging_config import setup_logging
from clipforge.utils.response_helper import error_response

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🏥 Performing startup health checks...")

    ok, message = verify_ffmpeg()
    if ok:
        logger.info(f"✅ {message}")
    else:
        # the API stays up so status and manifest reads keep working
        logger.error(f"❌ {message}")

    store = ProjectManifestStore()
    store.workspace_dir.mkdir(parents=True, exist_ok=True)
    registry = ObserverRegistry()
    app.state.store = store
    app.state.registry = registry
    app.state.runner = PipelineRunner(registry, lambda: PipelineOrchestrator(store=store))

    logger.info(f"🎯 API server ready, workspace: {store.workspace_dir}")
    yield
    logger.info(f"🔄 API server shutting down ({len(registry.active_ids())} observers open)")


app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    lifespan=lifespan
)

allowed_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if not settings.DEBUG else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return error_response(message.removeprefix("Value error, "), HTTP_STATUS_BAD_REQUEST)


app.include_router(pipeline_router, prefix="/api", tags=["pipeline"])
app.include_router(projects_router, prefix="/api", tags=["projects"])
app.include_router(templates_router, prefix="/api", tags=["templates"])


@app.get("/", response_model=StatusResponse)
async def root():
    return StatusResponse(
        status="active",
        message=f"ClipForge API is running - {settings.API_VERSION}"
    )


@app.get("/health", response_model=StatusResponse)
async def health():
    ok, message = verify_ffmpeg()
    return StatusResponse(
        status="ok" if ok else "degraded",
        message=message,
        details={"running_observers": len(app.state.registry.active_ids())}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=1,
        reload=False
    )
