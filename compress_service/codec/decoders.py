"""
Input format decoders backed by OpenCV.

Registration order is detection priority. Each decoder checks its magic
bytes, does a cheap structural check for truncation (libjpeg and friends
happily return half an image for a cut-off file) and then hands the bytes
to cv2.imdecode with IMREAD_UNCHANGED so that alpha and 16-bit samples
reach the normalize step untouched.
"""

import cv2
import numpy as np

from compress_service.errors import DecodeError
from . import register_decoder
from .base import DecodedImage

# unsigned, signed and float samples; normalize maps each to 8 bit
SUPPORTED_SAMPLE_KINDS = "uif"

# markers without a length field: TEM, RST0-7, SOI
STANDALONE_MARKERS = frozenset([0x01, 0xD8] + list(range(0xD0, 0xD8)))


class OpenCVDecoder:
    """Shared decode path; subclasses provide the signature and truncation checks."""

    name = "unknown"
    signatures = ()

    def matches(self, data: bytes) -> bool:
        return any(data.startswith(sig) for sig in self.signatures)

    def check_complete(self, data: bytes) -> None:
        """Raise DecodeError if the buffer is visibly cut short."""

    def decode(self, data: bytes) -> DecodedImage:
        self.check_complete(data)

        nparr = np.frombuffer(data, np.uint8)
        try:
            img = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
        except cv2.error as e:
            raise DecodeError(f"Corrupt {self.name} data: {e}") from e

        if img is None or img.size == 0:
            raise DecodeError(f"Failed to decode {self.name} data, the file may be corrupted")

        if img.dtype.kind not in SUPPORTED_SAMPLE_KINDS:
            raise DecodeError(f"Unsupported {self.name} sample type: {img.dtype}")

        if img.ndim == 3 and not 1 <= img.shape[2] <= 4:
            raise DecodeError(f"Unsupported {self.name} channel count: {img.shape[2]}")

        return DecodedImage(format=self.name, pixels=img)


@register_decoder("jpeg")
class JpegDecoder(OpenCVDecoder):
    name = "jpeg"
    signatures = (b"\xff\xd8\xff",)

    def check_complete(self, data: bytes) -> None:
        """
        Walk the marker segments from SOI until EOI.

        Segments are skipped by their length field, entropy-coded scan data
        by searching for the next real marker (not FF00 stuffing, not RSTn).
        Whatever follows EOI (motion photo or vendor trailers) is ignored.
        """
        truncated = DecodeError("Truncated jpeg data: missing end of image marker")
        n = len(data)
        pos = 2  # past SOI

        while True:
            # libjpeg skips extraneous bytes between markers, so do we
            pos = data.find(b"\xff", pos)
            if pos == -1:
                raise truncated
            while pos < n and data[pos] == 0xFF:
                pos += 1
            if pos >= n:
                raise truncated

            marker = data[pos]
            pos += 1
            if marker == 0xD9:
                return
            if marker in STANDALONE_MARKERS:
                continue

            if pos + 2 > n:
                raise truncated
            length = int.from_bytes(data[pos:pos + 2], "big")
            if length < 2:
                raise DecodeError(f"Corrupt jpeg data: bad length {length} for marker FF{marker:02X}")
            pos += length
            if pos > n:
                raise truncated

            if marker == 0xDA:
                pos = self._skip_scan(data, pos)

    @staticmethod
    def _skip_scan(data: bytes, pos: int) -> int:
        """Return the offset of the marker that ends the scan starting at pos."""
        n = len(data)
        while True:
            idx = data.find(b"\xff", pos)
            if idx == -1 or idx + 1 >= n:
                raise DecodeError("Truncated jpeg data: missing end of image marker")
            following = data[idx + 1]
            if following == 0x00 or 0xD0 <= following <= 0xD7:
                pos = idx + 2
            elif following == 0xFF:
                # fill byte, the marker starts at the next 0xFF
                pos = idx + 1
            else:
                return idx


@register_decoder("png")
class PngDecoder(OpenCVDecoder):
    name = "png"
    signatures = (b"\x89PNG\r\n\x1a\n",)

    def check_complete(self, data: bytes) -> None:
        if data.rfind(b"IEND") == -1:
            raise DecodeError("Truncated png data: missing IEND chunk")


@register_decoder("webp")
class WebPDecoder(OpenCVDecoder):
    name = "webp"

    def matches(self, data: bytes) -> bool:
        return data[:4] == b"RIFF" and data[8:12] == b"WEBP"

    def check_complete(self, data: bytes) -> None:
        riff_size = int.from_bytes(data[4:8], "little")
        if len(data) < 8 + riff_size:
            raise DecodeError(
                f"Truncated webp data: expected {8 + riff_size} bytes, got {len(data)}"
            )


@register_decoder("bmp")
class BmpDecoder(OpenCVDecoder):
    name = "bmp"

    def matches(self, data: bytes) -> bool:
        # 14 byte file header plus at least the 4 byte DIB header size
        return data.startswith(b"BM") and len(data) >= 18

    def check_complete(self, data: bytes) -> None:
        file_size = int.from_bytes(data[2:6], "little")
        pixel_offset = int.from_bytes(data[10:14], "little")
        if len(data) < max(file_size, pixel_offset):
            raise DecodeError(
                f"Truncated bmp data: expected {max(file_size, pixel_offset)} bytes, got {len(data)}"
            )


@register_decoder("tiff")
class TiffDecoder(OpenCVDecoder):
    name = "tiff"
    signatures = (b"II*\x00", b"MM\x00*")
