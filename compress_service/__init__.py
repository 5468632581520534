"""JPEG re-encoding service: decode any common raster format, normalize to RGB, encode as JPEG."""

__version__ = "0.1.0"
