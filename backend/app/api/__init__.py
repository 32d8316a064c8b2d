from backend.app.api.routes import router as compress_router
from backend.app.api.routes_download import router as download_router
from backend.app.api.routes_progress import router as progress_router

__all__ = ["compress_router", "download_router", "progress_router"]
