"""Average color computation and the ``AverageColor`` value type."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

import numpy as np

from avgcol.decoding import ImageBuffer, decode_base64, decode_image
from avgcol.errors import EmptyImageError
from avgcol.utils.brightness_check import is_light

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AverageColor:
    """Mean red, green and blue values of an image, truncated to integers.

    Fields:
        red: Mean of the red channel.
        green: Mean of the green channel.
        blue: Mean of the blue channel.
    """

    red: int
    green: int
    blue: int

    def __post_init__(self) -> None:
        for name in ("red", "green", "blue"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise ValueError(f"Channel {name} must be an integer, got {value!r}.")
            if value < 0:
                raise ValueError(f"Channel {name} must be non-negative, got {value}.")
            object.__setattr__(self, name, int(value))

    @classmethod
    def from_bytes(cls, image_bytes: ImageBuffer) -> AverageColor:
        """Generate the average color from encoded image bytes."""
        return average(decode_image(image_bytes))

    @classmethod
    def from_base64(cls, text: Union[str, bytes]) -> AverageColor:
        """Generate the average color from a base64-encoded image."""
        return cls.from_bytes(decode_base64(text))

    @classmethod
    async def from_url(
        cls,
        url: str,
        client: Optional[httpx.AsyncClient] = None,
        max_bytes: Optional[int] = None,
    ) -> AverageColor:
        """Generate the average color from an image URL.

        Requires the ``remote`` extra. ``client`` lets the caller supply its
        own configured ``httpx.AsyncClient``; ``max_bytes`` caps the body size.
        """
        from avgcol.remote import fetch_image_bytes

        image_bytes = await fetch_image_bytes(url, client=client, max_bytes=max_bytes)
        return cls.from_bytes(image_bytes)

    def is_light(self) -> bool:
        """Detect whether the average color is light or dark."""
        return is_light(self)

    def as_tuple(self) -> Tuple[int, int, int]:
        return (self.red, self.green, self.blue)

    def as_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable view including the light/dark verdict."""
        return {
            "red": self.red,
            "green": self.green,
            "blue": self.blue,
            "is_light": self.is_light(),
        }


def average(pixels: Any) -> AverageColor:
    """Average every channel over a pixel grid.

    Args:
        pixels: Array-like of 8-bit RGB pixels, shape (H, W, 3) or (N, 3).

    Returns:
        ``AverageColor`` whose channels are the per-channel sums floor-divided
        by the pixel count. Only integer arithmetic is used.

    Raises:
        ValueError: if the array does not hold 8-bit RGB triples.
        EmptyImageError: if the grid has no pixels.
    """
    arr = np.asarray(pixels)
    if arr.size == 0:
        raise EmptyImageError("Cannot average an image with no pixels.")
    if arr.ndim not in (2, 3) or arr.shape[-1] != 3:
        raise ValueError(f"Expected an RGB pixel array of shape (H, W, 3) or (N, 3), got {arr.shape}.")

    flat = arr.reshape(-1, 3)
    pixel_count = flat.shape[0]
    if arr.dtype != np.uint8:
        if not np.issubdtype(arr.dtype, np.integer) or flat.min() < 0 or flat.max() > 255:
            raise ValueError("Pixel values must be 8-bit unsigned integers.")

    sums = flat.sum(axis=0, dtype=np.uint64)
    red, green, blue = (int(total) // pixel_count for total in sums)
    logger.debug("Averaged %d pixels to (%d, %d, %d)", pixel_count, red, green, blue)
    return AverageColor(red, green, blue)
