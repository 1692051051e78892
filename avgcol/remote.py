"""Remote image fetching, available with the ``remote`` extra."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from avgcol.errors import NetworkError, RemoteImageTooLargeError

logger = logging.getLogger(__name__)


async def _download(client: httpx.AsyncClient, url: str, max_bytes: Optional[int]) -> bytes:
    async with client.stream("GET", url) as response:
        response.raise_for_status()

        declared = response.headers.get("content-length", "")
        if max_bytes is not None and declared.isdigit() and int(declared) > max_bytes:
            raise RemoteImageTooLargeError(f"Remote image is larger than {max_bytes} bytes.")

        chunks = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if max_bytes is not None and received > max_bytes:
                raise RemoteImageTooLargeError(f"Remote image is larger than {max_bytes} bytes.")
            chunks.append(chunk)

    logger.debug("Fetched %d bytes from %s", received, url)
    return b"".join(chunks)


async def fetch_image_bytes(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    max_bytes: Optional[int] = None,
) -> bytes:
    """GET ``url`` and return the full response body.

    A caller-supplied client is used as-is and left open. Without one, a
    short-lived client following redirects is created for this request.
    The body is streamed, and reading stops once it passes ``max_bytes``.

    Raises:
        RemoteImageTooLargeError: if the body exceeds ``max_bytes``.
        NetworkError: on transport failures, invalid URLs or non-2xx status.
    """
    try:
        if client is not None:
            return await _download(client, url, max_bytes)
        async with httpx.AsyncClient(follow_redirects=True) as own_client:
            return await _download(own_client, url, max_bytes)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise NetworkError(f"Failed to get remote image: {exc}") from exc
