"""
Shared fixtures: synthetic images encoded on the fly with OpenCV.
"""

import cv2
import numpy as np
import pytest

from compress_service.config import Settings
from compress_service.metrics import MetricsCollector
from compress_service.service import CompressionService
from compress_service.workers import WorkerPool


def make_pixels(width=64, height=48, channels=3, seed=0, dtype=np.uint8):
    """Gradient plus noise, so JPEG size actually depends on quality."""
    rng = np.random.default_rng(seed)
    ys, xs = np.mgrid[0:height, 0:width]
    base = ((xs * 255 // max(width - 1, 1)) + (ys * 255 // max(height - 1, 1))) // 2
    planes = [np.clip(base + rng.integers(-40, 40, size=base.shape) + 30 * c, 0, 255) for c in range(channels)]
    img = np.stack(planes, axis=-1).astype(np.uint8)
    if dtype == np.uint16:
        return img.astype(np.uint16) * 257
    return img


def encode(ext: str, img: np.ndarray) -> bytes:
    success, buffer = cv2.imencode(ext, img)
    assert success, f"fixture encoding to {ext} failed"
    return buffer.tobytes()


# ============================================================================
# IMAGE FIXTURES
# ============================================================================

@pytest.fixture
def bgr_image():
    return make_pixels()


@pytest.fixture
def png_bytes(bgr_image):
    return encode(".png", bgr_image)


@pytest.fixture
def jpeg_bytes(bgr_image):
    return encode(".jpg", bgr_image)


@pytest.fixture
def rgba_png_bytes():
    img = make_pixels(channels=4)
    img[:, :, 3] = 0  # fully transparent
    img[::2, ::2, 3] = 255
    return encode(".png", img)


@pytest.fixture
def gray_png_bytes():
    return encode(".png", make_pixels()[:, :, 0])


@pytest.fixture
def png16_bytes():
    return encode(".png", make_pixels(dtype=np.uint16))


@pytest.fixture
def image_by_format(bgr_image):
    """Same picture in every supported input format."""
    return {
        "jpeg": encode(".jpg", bgr_image),
        "png": encode(".png", bgr_image),
        "webp": encode(".webp", bgr_image),
        "bmp": encode(".bmp", bgr_image),
        "tiff": encode(".tiff", bgr_image),
    }


@pytest.fixture
def random_bytes():
    rng = np.random.default_rng(1234)
    data = rng.integers(0, 256, size=4096, dtype=np.uint8).tobytes()
    # make sure the noise cannot start with a known signature
    return b"\x00\x01" + data


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    return Settings(
        max_payload_bytes=1024 * 1024,
        default_quality=80,
        request_timeout=10.0,
        worker_threads=4,
        max_queued_requests=16,
    )


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def make_service(metrics):
    """Build a CompressionService; pools are shut down after the test."""
    pools = []

    def factory(settings, compressor=None):
        pool = WorkerPool(settings.worker_threads, settings.queue_depth)
        pools.append(pool)
        if compressor is None:
            return CompressionService(settings, metrics, pool)
        return CompressionService(settings, metrics, pool, compressor=compressor)

    yield factory
    for pool in pools:
        pool.shutdown(wait=True)


def decode_jpeg(data: bytes) -> np.ndarray:
    img = cv2.imdecode(np.frombuffer(data, np.uint8), cv2.IMREAD_UNCHANGED)
    assert img is not None, "output is not a decodable JPEG"
    return img
