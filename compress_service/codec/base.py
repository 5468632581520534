"""
Image decoder protocol and the pixel types shared by the codec stages.

Decode produces a DecodedImage (whatever the source had: gray, alpha,
16 bit...), normalize turns it into a PixelBuffer, and the JPEG encoder
only ever sees PixelBuffers.
"""

from dataclasses import dataclass
from typing import Protocol

import numpy as np


@dataclass(frozen=True)
class DecodedImage:
    """
    Pixels exactly as the decoder produced them.

    Attributes:
        format: Name of the decoder that recognised the bytes (e.g. 'png')
        pixels: OpenCV array, (h, w) or (h, w, c) with c in 1..4, BGR(A) order
    """
    format: str
    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class PixelBuffer:
    """
    Canonical normalized pixel grid: tightly packed 8-bit RGB, no alpha.

    Attributes:
        width: Width in pixels
        height: Height in pixels
        data: C-contiguous uint8 array of shape (height, width, 3), RGB order
    """
    width: int
    height: int
    data: np.ndarray

    def __post_init__(self):
        if self.data.dtype != np.uint8 or self.data.shape != (self.height, self.width, 3):
            raise ValueError(
                f"PixelBuffer expects uint8 ({self.height}, {self.width}, 3), "
                f"got {self.data.dtype} {self.data.shape}"
            )


@dataclass(frozen=True)
class CompressionResult:
    """A successful re-encode. data is never empty."""
    data: bytes
    source_format: str
    width: int
    height: int
    quality: int
    original_size: int = 0


class ImageDecoder(Protocol):
    """
    Protocol for input format decoders.

    Decoders are responsible for:
    - Recognising their format from the leading bytes
    - Rejecting structurally truncated input
    - Producing a DecodedImage from the raw bytes
    """

    @property
    def name(self) -> str:
        """Format identifier for logging and response headers (e.g. 'jpeg', 'png')."""
        ...

    def matches(self, data: bytes) -> bool:
        """
        Check the byte signature.

        Args:
            data: Raw encoded image bytes

        Returns:
            True if the bytes start with this format's magic number
        """
        ...

    def decode(self, data: bytes) -> DecodedImage:
        """
        Decode bytes that matched this format.

        Raises:
            DecodeError: If the bytes are truncated or corrupt
        """
        ...
