import cv2

from compress_service.errors import EncodeError
from .base import PixelBuffer

MIN_QUALITY = 1
MAX_QUALITY = 100


def encode_jpeg(pixels: PixelBuffer, quality: int) -> bytes:
    """
    Encode a normalized pixel buffer to JPEG bytes.

    Args:
        pixels: Canonical RGB buffer
        quality: JPEG quality (1-100), handed to libjpeg unmodified

    Returns:
        bytes: JPEG encoded bytes, never empty

    Raises:
        ValueError: If quality is outside [1, 100]; callers validate first
        EncodeError: If the encoder fails or produces nothing
    """
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ValueError(f"JPEG quality must be in [{MIN_QUALITY}, {MAX_QUALITY}], got {quality}")

    try:
        # opencv encodes from BGR
        bgr = cv2.cvtColor(pixels.data, cv2.COLOR_RGB2BGR)
        success, encoded_img = cv2.imencode('.jpg', bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    except cv2.error as e:
        raise EncodeError(
            f"JPEG encoding failed for {pixels.width}x{pixels.height} image at quality {quality}: {e}"
        ) from e

    if not success or encoded_img is None or encoded_img.size == 0:
        raise EncodeError(
            f"JPEG encoder returned no data for {pixels.width}x{pixels.height} image at quality {quality}"
        )
    return encoded_img.tobytes()
