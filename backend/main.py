from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.app.api import compress_router, download_router, progress_router
from backend.app.config import load_settings
from backend.app.logging_config import configure_logging, get_logger
from backend.app.services.progress.tracker import BatchRegistry
from backend.app.services.storage.housekeeping import Housekeeper
from backend.app.services.storage.local import LocalStorageService
from backend.app.workflow.batch_manager import BatchOrchestrator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: empty both storage areas and start the periodic sweep.
    Shutdown: stop every worker, then empty both storage areas again.
    """
    housekeeper: Housekeeper = app.state.housekeeper
    orchestrator: BatchOrchestrator = app.state.orchestrator

    removed = housekeeper.sweep_all()
    logger.info(f"Startup sweep removed {removed} leftover entries")
    housekeeper.start()

    yield

    await housekeeper.stop()
    orchestrator.shutdown()
    removed = housekeeper.sweep_all()
    logger.info(f"Shutdown sweep removed {removed} entries")


def create_app(settings: dict = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Optional overrides merged over load_settings()
    """
    settings = load_settings(settings)
    configure_logging(settings["log_level"])

    storage = LocalStorageService(
        upload_dir=settings["upload_dir"],
        output_dir=settings["output_dir"],
    )
    orchestrator = BatchOrchestrator(
        registry=BatchRegistry(),
        storage=storage,
        batch_timeout_seconds=settings["batch_timeout_seconds"],
        worker_join_timeout_seconds=settings["worker_join_timeout_seconds"],
        log_level=settings["log_level"],
    )
    housekeeper = Housekeeper(
        directories=[storage.upload_dir, storage.output_dir],
        interval_seconds=settings["sweep_interval_seconds"],
        max_age_seconds=settings["sweep_max_age_seconds"],
        orchestrator=orchestrator,
    )

    app = FastAPI(
        title="Batch Image Compressor",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.housekeeper = housekeeper

    # ===============================
    # CORS (Frontend ↔ Backend)
    # ===============================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # for development only
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ===============================
    # API Routes
    # ===============================
    app.include_router(compress_router, tags=["Compress"])
    app.include_router(progress_router)
    app.include_router(download_router)

    return app


app = create_app()
