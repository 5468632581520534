"""
Request handling between the HTTP layer and the codec pipeline.

CompressionService owns nothing global: settings, metrics collector, worker
pool and the pipeline function are all handed in, so tests can swap any of
them.
"""
import asyncio
import logging
import re
import time
from typing import AsyncIterable, Callable, Optional, Union

from compress_service.codec import CompressionResult, compress_image
from compress_service.config import Settings
from compress_service.errors import (
    CompressionError,
    CompressionTimeout,
    InternalError,
    OversizedPayload,
    UnsupportedOutputFormat,
)
from compress_service.metrics import MetricsCollector
from compress_service.workers import WorkerPool

logger = logging.getLogger(__name__)

JPEG_FORMATS = {"jpeg", "jpg", "image/jpeg"}

# plain ASCII decimal, optional leading '+'; no whitespace, '_' or unicode digits
QUALITY_PATTERN = re.compile(r"\+?[0-9]+")

Payload = Union[bytes, AsyncIterable[bytes]]


def parse_quality(raw: Optional[str], default: int) -> int:
    """
    Turn the client's quality indicator into a usable JPEG quality.

    Missing, non-integer or out of range values all fall back to default;
    a bad quality never fails the request.
    """
    if raw is None or not QUALITY_PATTERN.fullmatch(raw):
        return default
    quality = int(raw)
    if not 1 <= quality <= 100:
        return default
    return quality


def check_output_format(raw: Optional[str]) -> None:
    """Only JPEG output exists; anything else named explicitly is rejected."""
    if raw is None or raw.strip() == "":
        return
    if raw.strip().lower() not in JPEG_FORMATS:
        raise UnsupportedOutputFormat(f"Output format '{raw}' is not supported, only jpeg is available")


async def read_payload(chunks: AsyncIterable[bytes], limit: int) -> bytes:
    """
    Collect a streamed body, stopping once it is known to exceed limit.

    The returned bytes are complete when len <= limit; otherwise they are
    just enough to prove the payload is too large.
    """
    body = bytearray()
    async for chunk in chunks:
        body.extend(chunk)
        if len(body) > limit:
            break
    return bytes(body)


class CompressionService:
    def __init__(
        self,
        settings: Settings,
        metrics: MetricsCollector,
        pool: WorkerPool,
        compressor: Callable[[bytes, int], CompressionResult] = compress_image,
    ):
        self.settings = settings
        self.metrics = metrics
        self.pool = pool
        self.compressor = compressor

    async def transform(
        self,
        payload: Payload,
        quality: Optional[str] = None,
        output_format: Optional[str] = None,
    ) -> CompressionResult:
        """
        Compress one payload.

        The request timeout covers reading a streamed body and running the
        pipeline together.

        Args:
            payload: Raw body, either complete bytes or an async stream of chunks
            quality: Quality indicator as sent by the client
            output_format: Requested output format as sent by the client

        Returns:
            CompressionResult from the pipeline

        Raises:
            CompressionError: Always a subclass; unexpected failures are
                wrapped in InternalError
        """
        start_time = time.perf_counter()

        try:
            result = await self._run(payload, quality, output_format)
        except CompressionError as e:
            self.metrics.record_failure(e.code)
            if e.client_error:
                logger.info("Rejected compression request (%s): %s", e.code, e)
            else:
                logger.error("Compression request failed (%s): %s", e.code, e)
            raise
        except Exception as e:
            self.metrics.record_failure(InternalError.code)
            logger.exception("Unexpected error while compressing image")
            raise InternalError(str(e)) from e
        else:
            duration = time.perf_counter() - start_time
            self.metrics.record_success(len(result.data), duration)
            logger.info(
                "Compression successful in %.1f ms. Source: %s %dx%d, original size: %d, compressed size: %d",
                duration * 1000, result.source_format, result.width, result.height,
                result.original_size, len(result.data),
            )
            return result
        finally:
            self.metrics.record_request()

    async def _run(self, payload: Payload, quality: Optional[str], output_format: Optional[str]) -> CompressionResult:
        check_output_format(output_format)

        timeout = self.settings.request_timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        limit = self.settings.max_payload_bytes

        if not isinstance(payload, (bytes, bytearray)):
            try:
                payload = await asyncio.wait_for(read_payload(payload, limit), timeout=timeout)
            except asyncio.TimeoutError:
                raise CompressionTimeout(f"Request body not received within {timeout}s") from None

        logger.info("Received compression request. Body size: %d bytes", len(payload))
        if len(payload) > limit:
            raise OversizedPayload(f"File too large. Maximum size allowed: {limit} bytes")

        q = parse_quality(quality, self.settings.default_quality)
        logger.debug("Using compression quality: %d", q)

        future = self.pool.submit(self.compressor, bytes(payload), q)
        try:
            return await asyncio.wait_for(asyncio.wrap_future(future), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError:
            # a job that already started keeps running in its thread; its result is dropped
            raise CompressionTimeout(f"Compression exceeded {timeout}s deadline") from None
