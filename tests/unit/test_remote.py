"""Module testing the URL entry point against a mocked HTTP transport.

"""

import asyncio
import functools

import httpx
import pytest

from avgcol import AverageColor, DecodeError, NetworkError, RemoteImageTooLargeError
from avgcol.remote import fetch_image_bytes

IMAGE_URL = "https://images.example.com/photo.png"


def _run_with_transport(handler, coro_factory):
    async def _main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)

    return asyncio.run(_main())


def test_from_url_averages_fetched_image(solid_png):

    image_bytes = solid_png((90, 100, 110))

    def handler(request):
        assert str(request.url) == IMAGE_URL
        return httpx.Response(200, content=image_bytes, headers={"content-type": "image/png"})

    color = _run_with_transport(handler, lambda client: AverageColor.from_url(IMAGE_URL, client=client))
    assert color == AverageColor(90, 100, 110)


def test_from_url_matches_from_bytes(gradient_png):

    def handler(request):
        return httpx.Response(200, content=gradient_png)

    color = _run_with_transport(handler, lambda client: AverageColor.from_url(IMAGE_URL, client=client))
    assert color == AverageColor.from_bytes(gradient_png)


@pytest.mark.parametrize("status_code", [404, 500])
def test_error_status_raises_network_error(status_code):

    def handler(request):
        return httpx.Response(status_code, content=b"nope")

    with pytest.raises(NetworkError):
        _run_with_transport(handler, lambda client: fetch_image_bytes(IMAGE_URL, client=client))


def test_connection_failure_raises_network_error():

    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError) as excinfo:
        _run_with_transport(handler, lambda client: AverageColor.from_url(IMAGE_URL, client=client))
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_network_error_is_a_connection_error():

    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ConnectionError):
        _run_with_transport(handler, lambda client: fetch_image_bytes(IMAGE_URL, client=client))


def test_non_image_body_raises_decode_error():

    def handler(request):
        return httpx.Response(200, content=b"<html>not an image</html>")

    with pytest.raises(DecodeError):
        _run_with_transport(handler, lambda client: AverageColor.from_url(IMAGE_URL, client=client))


def test_unsupported_scheme_raises_network_error():

    with pytest.raises(NetworkError):
        asyncio.run(fetch_image_bytes("ftp://images.example.com/photo.png"))


def test_default_client_follows_redirects(monkeypatch, solid_png):

    image_bytes = solid_png((30, 60, 90))

    def handler(request):
        if request.url.path == "/old.png":
            return httpx.Response(302, headers={"location": "https://cdn.example.com/new.png"})
        assert str(request.url) == "https://cdn.example.com/new.png"
        return httpx.Response(200, content=image_bytes)

    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(httpx, "AsyncClient", functools.partial(httpx.AsyncClient, transport=transport))

    color = asyncio.run(AverageColor.from_url("https://images.example.com/old.png"))
    assert color == AverageColor(30, 60, 90)


def test_declared_length_over_limit_raises(solid_png):

    def handler(request):
        return httpx.Response(200, content=solid_png((1, 2, 3)))

    with pytest.raises(RemoteImageTooLargeError):
        _run_with_transport(handler, lambda client: fetch_image_bytes(IMAGE_URL, client=client, max_bytes=10))


def test_streamed_body_over_limit_raises():

    async def body():
        yield b"x" * 8
        yield b"x" * 8

    def handler(request):
        return httpx.Response(200, content=body())

    with pytest.raises(NetworkError):
        _run_with_transport(handler, lambda client: fetch_image_bytes(IMAGE_URL, client=client, max_bytes=10))


def test_body_within_limit_is_returned():

    def handler(request):
        return httpx.Response(200, content=b"x" * 10)

    data = _run_with_transport(handler, lambda client: fetch_image_bytes(IMAGE_URL, client=client, max_bytes=10))
    assert data == b"x" * 10
