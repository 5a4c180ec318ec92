import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger("office-share")

link_resolutions = Counter(
    "link_resolutions_total", "Share link resolutions by intent and decision", ["intent", "decision"]
)
view_consumptions = Counter(
    "link_view_consumptions_total", "Attempts to consume a share link view", ["accepted"]
)
bytes_streamed = Counter("link_bytes_streamed_total", "Bytes streamed to share link downloaders")


def report_resolution(intent, decision) -> None:
    link_resolutions.labels(intent=getattr(intent, "value", intent), decision=getattr(decision, "value", decision)).inc()


def report_view_consumption(accepted: bool) -> None:
    view_consumptions.labels(accepted="true" if accepted else "false").inc()


def report_bytes_streamed(count: int) -> None:
    if count:
        bytes_streamed.inc(count)


def setup_monitoring(app: ASGIApp):
    Instrumentator().instrument(app).expose(app, endpoint="/api/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(status_code=500, content={"message": "Internal Server Error"})
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response
