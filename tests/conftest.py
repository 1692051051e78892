"""Shared fixtures: images are generated in memory with Pillow."""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image


def _encode(pixels, fmt="PNG"):
    image = Image.fromarray(np.asarray(pixels, dtype=np.uint8))
    buffer = BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def encode_image():
    """Encode a (H, W, 3) or (H, W, 4) uint8 array in the given format."""
    return _encode


@pytest.fixture
def solid_png():
    """Factory for a PNG filled with one RGB color."""

    def _make(color, size=(8, 6)):
        width, height = size
        pixels = np.empty((height, width, 3), dtype=np.uint8)
        pixels[:, :] = color
        return _encode(pixels)

    return _make


@pytest.fixture
def gradient_pixels():
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(17, 23, 3), dtype=np.uint8)


@pytest.fixture
def gradient_png(gradient_pixels):
    return _encode(gradient_pixels)


@pytest.fixture
def jpeg_bytes():
    pixels = np.empty((32, 32, 3), dtype=np.uint8)
    pixels[:, :] = (178, 180, 172)
    return _encode(pixels, fmt="JPEG")
