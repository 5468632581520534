"""
Codec pipeline: bytes in any supported raster format -> JPEG bytes.

Decoders register themselves in priority order with @register_decoder and
the first one whose signature matches the bytes wins. Adding a format means
adding a decorated class to decoders.py; the dispatch below never changes.

Usage:
    # In a decoder implementation:
    @register_decoder("png")
    class PngDecoder(OpenCVDecoder):
        ...

    # To re-encode:
    jpeg_bytes = compress(raw_bytes, quality=80)
"""

import logging
from typing import Dict, List, Optional

from compress_service.errors import DecodeError
from .base import CompressionResult, DecodedImage, ImageDecoder, PixelBuffer
from .encoder import encode_jpeg
from .normalize import normalize

logger = logging.getLogger(__name__)

# Registered decoders in priority order (insertion order)
DECODER_REGISTRY: Dict[str, ImageDecoder] = {}


def register_decoder(name: str):
    """
    Decorator to register a decoder class under a format name.

    The class is instantiated once at registration time, so decoders
    must be stateless.

    Args:
        name: Unique format identifier

    Raises:
        ValueError: If the name is already registered
    """
    def decorator(decoder_class):
        if name in DECODER_REGISTRY:
            raise ValueError(f"Decoder already registered: '{name}'")
        DECODER_REGISTRY[name] = decoder_class()
        return decoder_class
    return decorator


def supported_formats() -> List[str]:
    return list(DECODER_REGISTRY)


def find_decoder(data: bytes) -> Optional[ImageDecoder]:
    for decoder in DECODER_REGISTRY.values():
        if decoder.matches(data):
            return decoder
    return None


def detect_format(data: bytes) -> Optional[str]:
    """Return the name of the format the bytes belong to, or None."""
    decoder = find_decoder(data)
    return decoder.name if decoder else None


def decode(data: bytes) -> DecodedImage:
    """
    Decode raw bytes, picking the decoder from the content itself.

    Raises:
        DecodeError: If the buffer is empty, unrecognised, truncated or corrupt
    """
    if not data:
        raise DecodeError("Request body cannot be empty")

    decoder = find_decoder(data)
    if decoder is None:
        raise DecodeError(
            f"Unrecognized image format. Supported formats: {', '.join(supported_formats())}"
        )
    return decoder.decode(data)


def compress_image(data: bytes, quality: int) -> CompressionResult:
    """
    Run decode -> normalize -> encode on one buffer.

    Safe to call from several threads at once: nothing here is shared
    between calls.

    Args:
        data: Encoded image bytes
        quality: JPEG quality, already validated to [1, 100]

    Returns:
        CompressionResult with the JPEG bytes and source metadata

    Raises:
        DecodeError: Input could not be decoded
        EncodeError: Encoder failed on the normalized pixels
    """
    decoded = decode(data)
    pixels = normalize(decoded)
    jpeg = encode_jpeg(pixels, quality)

    logger.debug(
        "%s %dx%d -> jpeg q=%d: %d -> %d bytes",
        decoded.format, pixels.width, pixels.height, quality, len(data), len(jpeg)
    )

    return CompressionResult(
        data=jpeg,
        source_format=decoded.format,
        width=pixels.width,
        height=pixels.height,
        quality=quality,
        original_size=len(data),
    )


def compress(data: bytes, quality: int) -> bytes:
    """Re-encode data as JPEG and return only the bytes."""
    return compress_image(data, quality).data


__all__ = [
    "CompressionResult",
    "DecodedImage",
    "ImageDecoder",
    "PixelBuffer",
    "compress",
    "compress_image",
    "decode",
    "detect_format",
    "encode_jpeg",
    "normalize",
    "register_decoder",
    "supported_formats",
]

# Import decoders to trigger registration
from . import decoders  # noqa: E402,F401
