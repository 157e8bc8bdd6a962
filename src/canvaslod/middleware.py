"""Request timing and viewport logging for the LOD service."""

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("canvaslod.performance")

VIEWPORT_PARAMS = ("x", "y", "scale", "preset")


def describe_request(request: Request) -> str:
    """``METHOD /path`` plus the viewport parameters present on the query."""
    viewport = [
        f"{name}={request.query_params[name]}"
        for name in VIEWPORT_PARAMS
        if name in request.query_params
    ]
    label = f"{request.method} {request.url.path}"
    return f"{label} [{' '.join(viewport)}]" if viewport else label


class TimingMiddleware(BaseHTTPMiddleware):
    """Reports request duration in an ``X-Response-Time`` header.

    Requests slower than ``slow_request_threshold`` seconds are logged as
    warnings together with their viewport. With ``log_all_requests`` every
    request is logged at debug.
    """

    def __init__(
        self,
        app,
        slow_request_threshold: float = 1.0,
        log_all_requests: bool = False,
    ):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold
        self.log_all_requests = log_all_requests

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                f"Failed {describe_request(request)} after "
                f"{time.perf_counter() - started:.3f}s: {type(e).__name__}: {e}"
            )
            raise

        elapsed = time.perf_counter() - started
        response.headers["X-Response-Time"] = f"{elapsed:.3f}"

        if elapsed > self.slow_request_threshold:
            logger.warning(f"Slow {describe_request(request)}: {elapsed:.2f}s")
        elif self.log_all_requests:
            logger.debug(f"{describe_request(request)}: {elapsed:.3f}s")

        return response


class ViewportLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each LOD or data request with its viewport and response status."""

    def __init__(self, app, prefixes: tuple[str, ...] = ("/api/lod", "/api/data")):
        super().__init__(app)
        self.prefixes = prefixes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if request.url.path.startswith(self.prefixes):
            logger.info(f"{describe_request(request)} -> {response.status_code}")
        return response


def setup_logging(log_level: str = "INFO") -> None:
    """Configure logging for the canvaslod service.

    Args:
        log_level: Level for the ``canvaslod`` loggers (DEBUG, INFO, WARNING, ERROR)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("canvaslod").setLevel(level)
    # Slow-request warnings stay visible whatever the service level is
    logging.getLogger("canvaslod.performance").setLevel(min(level, logging.INFO))

    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
