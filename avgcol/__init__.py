"""
Average color of a raster image, classified as light or dark.

Images can be supplied as raw bytes, base64 text or (with the ``remote``
extra) a URL.
"""

__version__ = "0.1.0"

from .errors import (
    AverageColorError,
    Base64Error,
    DecodeError,
    EmptyImageError,
    NetworkError,
    RemoteImageTooLargeError,
)
from .decoding import decode_base64, decode_image
from .color import AverageColor, average
from .utils.brightness_check import is_light, luma

__all__ = [
    "AverageColor",
    "average",
    "is_light",
    "luma",
    "decode_image",
    "decode_base64",
    "AverageColorError",
    "DecodeError",
    "Base64Error",
    "EmptyImageError",
    "NetworkError",
    "RemoteImageTooLargeError",
]
