import cv2
import numpy as np

from .base import DecodedImage, PixelBuffer


def _to_8bit(pixels: np.ndarray) -> np.ndarray:
    if pixels.dtype == np.uint8:
        return pixels
    if pixels.dtype == np.uint16:
        return (pixels >> 8).astype(np.uint8)
    if pixels.dtype.kind in "iu":
        # other integer depths: map the type's full range onto 0..255
        info = np.iinfo(pixels.dtype)
        scaled = (pixels.astype(np.float64) - info.min) * (255.0 / (int(info.max) - int(info.min)))
        return np.clip(scaled + 0.5, 0, 255).astype(np.uint8)
    # float samples (any width) are taken to be in [0, 1]
    return np.clip(pixels.astype(np.float64) * 255.0 + 0.5, 0, 255).astype(np.uint8)


def normalize(image: DecodedImage) -> PixelBuffer:
    """
    Convert decoded pixels to the canonical 8-bit RGB buffer.

    JPEG has no transparency, so an alpha channel is dropped outright
    (not composited onto a background). Already 8-bit BGR input only
    gets its channels reordered.

    Args:
        image: Output of a decoder

    Returns:
        PixelBuffer with tightly packed RGB data
    """
    pixels = _to_8bit(image.pixels)

    if pixels.ndim == 3 and pixels.shape[2] <= 2:
        # gray, or gray + alpha: keep the luminance plane only
        pixels = pixels[:, :, 0]
    pixels = np.ascontiguousarray(pixels)

    if pixels.ndim == 2:
        rgb = cv2.cvtColor(pixels, cv2.COLOR_GRAY2RGB)
    elif pixels.shape[2] == 4:
        rgb = cv2.cvtColor(pixels, cv2.COLOR_BGRA2RGB)
    else:
        rgb = cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB)

    height, width = rgb.shape[:2]
    return PixelBuffer(width=width, height=height, data=np.ascontiguousarray(rgb))
