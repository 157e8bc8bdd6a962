"""canvaslod - Semantic level-of-detail service for zoomable canvases"""

from fastapi import FastAPI

from canvaslod import __version__, database
from canvaslod.config import settings
from canvaslod.middleware import TimingMiddleware, ViewportLoggingMiddleware, setup_logging
from canvaslod.routes import data, lod

setup_logging(settings.log_level)

app = FastAPI(
    title="canvaslod",
    description="Semantic level-of-detail engine for zoomable canvases",
    version=__version__,
)

app.add_middleware(
    TimingMiddleware,
    slow_request_threshold=settings.slow_request_threshold,
    log_all_requests=settings.debug,
)
if settings.debug:
    app.add_middleware(ViewportLoggingMiddleware)

# Include routers
app.include_router(lod.router)
app.include_router(data.router)


@app.get("/health")
async def health():
    """Health check endpoint"""
    if not settings.database_url:
        return {"status": "ok", "database": "unconfigured"}
    if database.ping():
        return {"status": "ok", "database": "ok"}
    return {"status": "degraded", "database": "unreachable"}


def run() -> None:
    """Serve the app with uvicorn using the configured host and port."""
    import uvicorn

    uvicorn.run(
        "canvaslod.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
