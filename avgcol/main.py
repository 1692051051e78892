"""avgcol HTTP service."""

from __future__ import annotations

import ipaddress
import logging
import os
import time
import uuid
from typing import Any, Callable, Dict, FrozenSet

import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from avgcol import __version__
from avgcol.color import AverageColor
from avgcol.errors import (
    AverageColorError,
    Base64Error,
    DecodeError,
    EmptyImageError,
    NetworkError,
    RemoteImageTooLargeError,
)
from avgcol.remote import fetch_image_bytes

load_dotenv()

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int, lower: int, upper: int) -> int:
    """Integer setting clamped to [lower, upper]; bad values fall back to ``default``."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return max(lower, min(upper, int(raw)))
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %s", name, raw, default)
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


def _env_list(name: str) -> FrozenSet[str]:
    return frozenset(item.strip().lower() for item in os.getenv(name, "").split(",") if item.strip())


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))

MAX_FILE_SIZE_MB = _env_int("MAX_FILE_SIZE_MB", default=25, lower=1, upper=500)
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024
# Fetching arbitrary URLs from the server is opt-in.
REMOTE_IMAGE_ENABLED = _env_flag("REMOTE_IMAGE_ENABLED", default=False)
REMOTE_IMAGE_HOSTS = _env_list("REMOTE_IMAGE_HOSTS")

app = FastAPI(title="avgcol", version=__version__)

allow_origins = sorted(_env_list("ALLOWED_ORIGINS")) or ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

REQUEST_ID_HEADER = "X-Request-ID"
HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "FILE_TOO_LARGE",
    422: "VALIDATION_ERROR",
    503: "SERVICE_UNAVAILABLE",
}
# Checked in order, subclasses before their bases.
LIBRARY_ERRORS = (
    (EmptyImageError, 422, "EMPTY_IMAGE"),
    (DecodeError, 422, "DECODE_ERROR"),
    (Base64Error, 400, "BASE64_ERROR"),
    (RemoteImageTooLargeError, 413, "FILE_TOO_LARGE"),
    (NetworkError, 502, "NETWORK_ERROR"),
)


class Base64Payload(BaseModel):
    data: str


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    **details: Any,
) -> JSONResponse:
    """JSON error envelope shared by every handler."""
    request_id = _request_id(request)
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": request_id,
        "details": {"status_code": status_code, **details},
    }
    response = JSONResponse(status_code=status_code, content={"error": error})
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def color_payload(request: Request, color: AverageColor) -> Dict[str, Any]:
    payload = color.as_dict()
    payload["request_id"] = _request_id(request)
    return payload


def check_remote_url(url: str) -> None:
    """Reject URLs the service must not fetch on a client's behalf.

    Only http(s) is allowed, literal IPs must be globally routable, and
    ``localhost`` is refused. With ``REMOTE_IMAGE_HOSTS`` set, the host must
    be listed there.
    """
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise HTTPException(status_code=400, detail="Invalid image URL.") from exc

    host = parsed.host.lower()
    if parsed.scheme not in {"http", "https"} or not host:
        raise HTTPException(status_code=400, detail="Image URL must be an absolute http(s) URL.")

    if REMOTE_IMAGE_HOSTS:
        if host not in REMOTE_IMAGE_HOSTS:
            raise HTTPException(status_code=403, detail="Image host is not allowed.")
        return

    if host == "localhost" or host.endswith(".localhost"):
        raise HTTPException(status_code=403, detail="Image host is not allowed.")
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return
    if not address.is_global:
        raise HTTPException(status_code=403, detail="Image host is not allowed.")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next: Callable[[Request], Any]) -> Any:
    """Attach request IDs and log one line per request."""
    request_id = (request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex).strip()[:128]
    request.state.request_id = request_id
    started_at = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        status_code = response.status_code
        return response
    finally:
        logger.info(
            "request_id=%s method=%s path=%s status=%s duration_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            status_code,
            (time.perf_counter() - started_at) * 1000,
        )


@app.exception_handler(AverageColorError)
async def average_color_exception_handler(request: Request, exc: AverageColorError) -> JSONResponse:
    status_code, code = next(
        ((status, code) for error_type, status, code in LIBRARY_ERRORS if isinstance(exc, error_type)),
        (500, "INTERNAL_ERROR"),
    )
    logger.warning("request_id=%s %s: %s", _request_id(request), code, exc)
    # Upstream details stay in the log.
    message = "Failed to get remote image." if code == "NETWORK_ERROR" else str(exc)
    return error_response(request, status_code, code, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return error_response(request, exc.status_code, code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, 422, "VALIDATION_ERROR", "Request validation failed.", errors=exc.errors())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception request_id=%s path=%s", _request_id(request), request.url.path)
    return error_response(request, 500, "INTERNAL_ERROR", "Internal server error.")


def remote_client() -> httpx.AsyncClient:
    """Client for URL fetches. Redirects are not followed, so only checked hosts are contacted."""
    return httpx.AsyncClient(follow_redirects=False)


def _too_large() -> HTTPException:
    return HTTPException(status_code=413, detail=f"File too large. Maximum allowed is {MAX_FILE_SIZE_MB} MB.")


@app.get("/")
@app.get("/api")
def root() -> Dict[str, Any]:
    """Health endpoint with non-sensitive service status."""
    return {
        "message": "avgcol is running.",
        "version": __version__,
        "remote_image_enabled": REMOTE_IMAGE_ENABLED,
        "limits": {"max_file_size_mb": MAX_FILE_SIZE_MB},
    }


@app.post("/average")
@app.post("/api/average")
async def average_upload(request: Request, file: UploadFile = File(...)) -> Dict[str, Any]:
    """Average an uploaded image file."""
    raw_bytes = await file.read()
    if not raw_bytes:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(raw_bytes) > MAX_FILE_SIZE_BYTES:
        raise _too_large()

    color = await run_in_threadpool(AverageColor.from_bytes, raw_bytes)
    return color_payload(request, color)


@app.post("/average/base64")
@app.post("/api/average/base64")
def average_base64(request: Request, payload: Base64Payload) -> Dict[str, Any]:
    """Average a base64-encoded image."""
    # Four base64 characters per three bytes, plus padding.
    if len(payload.data) > MAX_FILE_SIZE_BYTES * 4 // 3 + 4:
        raise _too_large()

    return color_payload(request, AverageColor.from_base64(payload.data))


@app.get("/average/url")
@app.get("/api/average/url")
async def average_url(request: Request, url: str) -> Dict[str, Any]:
    """Fetch an image over HTTP and average it."""
    if not REMOTE_IMAGE_ENABLED:
        raise HTTPException(status_code=503, detail="Remote images are disabled.")
    check_remote_url(url)

    async with remote_client() as client:
        image_bytes = await fetch_image_bytes(url, client=client, max_bytes=MAX_FILE_SIZE_BYTES)
    color = await run_in_threadpool(AverageColor.from_bytes, image_bytes)
    return color_payload(request, color)
