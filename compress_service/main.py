# fastapi for the HTTP boundary, the codec work itself runs on a thread pool
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from compress_service import __version__
from compress_service.config import Settings
from compress_service.errors import CompressionError, InternalError
from compress_service.log import configure_logging
from compress_service.metrics import MetricsCollector
from compress_service.service import CompressionService
from compress_service.workers import WorkerPool

logger = logging.getLogger(__name__)

SERVICE_NAME = "image-compressor"


class HealthResponse(BaseModel):
    status: str
    service: str


def create_app(
    settings: Optional[Settings] = None,
    metrics: Optional[MetricsCollector] = None,
    service: Optional[CompressionService] = None,
) -> FastAPI:
    """
    Build the FastAPI app with its own worker pool and counters.

    Args:
        settings: Service settings (default: read from the environment)
        metrics: Counter collector (default: a fresh one)
        service: Fully built CompressionService, overrides the two above
    """
    if service is None:
        settings = settings or Settings.from_env()
        metrics = metrics or MetricsCollector()
        pool = WorkerPool(settings.worker_threads, settings.queue_depth)
        service = CompressionService(settings, metrics, pool)
    settings = service.settings

    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s: %d workers, queue depth %d, max payload %d bytes, default quality %d, timeout %.1fs",
            SERVICE_NAME, settings.worker_threads, settings.queue_depth,
            settings.max_payload_bytes, settings.default_quality, settings.request_timeout,
        )
        yield
        logger.info("Shutting down... stopping worker pool")
        service.pool.shutdown(wait=False)

    app = FastAPI(title="Image Compressor", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service

    @app.exception_handler(CompressionError)
    async def compression_error_handler(request: Request, exc: CompressionError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message, details = "Not Found", f"Route {request.method}:{request.url.path} not found"
        else:
            message, details = str(exc.detail), None
        body = {"error": True, "message": message, "code": f"HTTP_{exc.status_code}"}
        if details:
            body["details"] = details
        return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_response())

    @app.post("/compress")
    async def compress_view(
        request: Request,
        quality: Optional[str] = None,
        format: Optional[str] = None,
        x_compression_quality: Optional[str] = Header(None),
        x_output_format: Optional[str] = Header(None),
    ):
        """
        Re-encode the raw request body as JPEG.

        Quality comes from the X-Compression-Quality header or the quality
        query parameter; anything unusable falls back to the default.
        """
        result = await service.transform(
            request.stream(),
            quality=x_compression_quality if x_compression_quality is not None else quality,
            output_format=x_output_format if x_output_format is not None else format,
        )

        return Response(
            content=result.data,
            media_type="image/jpeg",
            headers={
                "X-Original-Size": str(result.original_size),
                "X-Compressed-Size": str(len(result.data)),
                "X-Source-Format": result.source_format,
                "X-Compression-Quality": str(result.quality),
            },
        )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Liveness only; does not touch the pipeline."""
        return HealthResponse(status="serving", service=SERVICE_NAME)

    @app.get("/metrics")
    def metrics_view():
        # sync endpoint: rendered on the starlette threadpool, not the event loop
        return Response(content=service.metrics.exposition(), media_type=service.metrics.content_type)

    return app


def main():
    # the app (and its worker pool) is built by uvicorn, not at import time
    settings = Settings.from_env()
    uvicorn.run(
        "compress_service.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
