import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger("filedrop")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

uploads_total = Counter("filedrop_uploads_total", "Guest upload attempts by outcome", ["outcome"])
upload_bytes_total = Counter("filedrop_upload_bytes_total", "Bytes accepted from guests")
orphan_sweeps = Counter("filedrop_orphan_sweeps_total", "Orphan sweep runs")
orphans_removed = Counter("filedrop_orphans_removed_total", "Guest folders removed by the orphan sweep")
orphan_sweep_duration = Histogram("filedrop_orphan_sweep_duration_seconds", "Duration of an orphan sweep in seconds")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("filedrop").setLevel(level.upper())


def report_upload(outcome: str, size: int = 0) -> None:
    uploads_total.labels(outcome=outcome).inc()
    if size:
        upload_bytes_total.inc(size)


def report_cleanup(removed: int, duration: float) -> None:
    """Record orphan sweep metrics to Prometheus."""
    orphan_sweeps.inc()
    if removed:
        orphans_removed.inc(removed)
    orphan_sweep_duration.observe(duration)


class _BodyTooLarge(Exception):
    pass


class BodyLimitMiddleware:
    """Reject request bodies above ``max_body`` bytes with 413, whether the
    size is announced in Content-Length or only discovered while streaming."""

    def __init__(self, app: ASGIApp, max_body: int):
        self.app = app
        self.max_body = max_body

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        for name, value in scope.get("headers", []):
            if name == b"content-length":
                try:
                    declared = int(value)
                except ValueError:
                    declared = 0
                if declared > self.max_body:
                    await self._reject(scope, receive, send)
                    return

        received = 0
        started = False
        exceeded = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_body:
                    exceeded = True
                    raise _BodyTooLarge()
            return message

        async def tracking_send(message: Message) -> None:
            nonlocal started
            # whatever the app answers to a truncated body is replaced by the 413
            if exceeded and not started:
                return
            if message["type"] == "http.response.start":
                started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracking_send)
        except Exception:
            if not exceeded or started:
                raise
        if exceeded and not started:
            await self._reject(scope, receive, send)

    async def _reject(self, scope: Scope, receive: Receive, send: Send) -> None:
        logger.warning("Request body over %s bytes rejected: %s", self.max_body, scope.get("path"))
        response = PlainTextResponse("Request body too large", status_code=413)
        await response(scope, receive, send)


def setup_monitoring(app: FastAPI, max_body: int, expose_metrics: bool = True) -> None:
    if expose_metrics:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = PlainTextResponse("Internal Server Error", status_code=500)
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response

    # added last so it wraps everything else
    app.add_middleware(BodyLimitMiddleware, max_body=max_body)
