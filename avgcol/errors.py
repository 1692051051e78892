"""Error types raised while computing average colors."""

from __future__ import annotations


class AverageColorError(Exception):
    """Base class for every error raised by avgcol."""


class DecodeError(AverageColorError, ValueError):
    """Image bytes could not be parsed into pixel data."""


class Base64Error(AverageColorError, ValueError):
    """Input text is not valid base64."""


class EmptyImageError(AverageColorError, ValueError):
    """The pixel grid holds no pixels, so no average exists."""


class NetworkError(AverageColorError, ConnectionError):
    """A remote image could not be fetched."""


class RemoteImageTooLargeError(NetworkError):
    """A remote image body is larger than the caller's limit."""
