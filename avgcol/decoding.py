"""Turn raw image bytes or base64 text into an RGB pixel array."""

from __future__ import annotations

import base64
import binascii
import logging
from io import BytesIO
from typing import Union

import cv2
import numpy as np
from PIL import Image

from avgcol.errors import Base64Error, DecodeError

logger = logging.getLogger(__name__)

ImageBuffer = Union[bytes, bytearray, memoryview]


def _as_bytes(raw_bytes: ImageBuffer) -> bytes:
    if isinstance(raw_bytes, bytes):
        return raw_bytes
    if isinstance(raw_bytes, (bytearray, memoryview)):
        return bytes(raw_bytes)
    raise TypeError(f"Expected a bytes-like image buffer, got {type(raw_bytes).__name__}.")


def decode_image(raw_bytes: ImageBuffer) -> np.ndarray:
    """Decode image bytes to an RGB array of shape (H, W, 3) and dtype uint8.

    OpenCV handles the common formats; Pillow is the fallback for anything
    OpenCV fails to parse. Alpha channels are dropped.

    Raises:
        DecodeError: if neither codec can read the bytes.
    """
    data = _as_bytes(raw_bytes)
    if not data:
        raise DecodeError("Image buffer is empty.")

    arr = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if image is not None:
        return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)

    logger.debug("OpenCV could not decode %d bytes, trying Pillow.", len(data))
    try:
        with Image.open(BytesIO(data)) as pil_img:
            rgb = pil_img.convert("RGB")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Failed to decode image bytes: {exc}") from exc

    return np.asarray(rgb, dtype=np.uint8)


def decode_base64(text: Union[str, bytes]) -> bytes:
    """Decode standard, padded base64 text into raw bytes.

    Raises:
        Base64Error: on characters outside the alphabet, bad padding or
            non-ASCII input.
    """
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise Base64Error(f"Failed to decode base64: {exc}") from exc
