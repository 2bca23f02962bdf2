from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
import time
from io import BytesIO
from typing import Dict, Optional
from urllib.parse import urlparse

import requests
from PIL import Image, UnidentifiedImageError

from libflix.domain.errors import ImageDecodeError, ImageTimeoutError
from libflix.domain.models import LoadedImage

logger = logging.getLogger(__name__)

MAX_REMOTE_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB safety ceiling
DEFAULT_ORIGIN = 'http://localhost'
DEFAULT_USER_AGENT = 'LibFlixCoverResolver/1.0'


def ensure_safe_remote_image_url(url: str) -> str:
    """Validate that a remote image URL is safe to fetch.

    - Must be http/https with hostname.
    - Host must not resolve to private, loopback, multicast, or link-local ranges.
    Raises ValueError if the URL is unsafe.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        raise ValueError("Cover URL must use http or https scheme")
    if not parsed.hostname:
        raise ValueError("Cover URL must include a hostname")

    try:
        addr_info = socket.getaddrinfo(parsed.hostname, None)
    except socket.gaierror as exc:  # pragma: no cover - resolution failure
        raise ValueError(f"Unable to resolve cover host: {parsed.hostname}") from exc

    for info in addr_info:
        ip_obj = ipaddress.ip_address(info[4][0])
        if ip_obj.is_private or ip_obj.is_loopback or ip_obj.is_link_local or ip_obj.is_multicast or ip_obj.is_reserved:
            raise ValueError("Cover URL resolves to a disallowed network range")

    return url


def decode_dimensions(url: str, data: bytes) -> LoadedImage:
    """Decode image bytes just far enough to know their pixel size."""
    if not data:
        raise ImageDecodeError(url, "empty response body")
    try:
        with Image.open(BytesIO(data)) as img:
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError) as exc:
        raise ImageDecodeError(url, f"not a decodable image ({exc.__class__.__name__})") from exc
    return LoadedImage(width=int(width), height=int(height))


class RequestsImageLoader:
    """Default decode primitive: GET the URL and read the image size with Pillow.

    Called as ``await loader(url, timeout_ms=..., cross_origin=...)``. The
    blocking work runs in a worker thread so the event loop stays free.

    Cross-origin mode mirrors an ``<img crossorigin="anonymous">`` load: an
    ``Origin`` header is sent and the response must allow that origin, or the
    load fails even though the bytes arrived.
    """

    def __init__(self, *, max_bytes: int = MAX_REMOTE_IMAGE_BYTES, origin: str = DEFAULT_ORIGIN,
                 block_private_hosts: bool = True, user_agent: str = DEFAULT_USER_AGENT):
        self.max_bytes = max_bytes
        self.origin = origin
        self.block_private_hosts = block_private_hosts
        self.user_agent = user_agent

    async def __call__(self, url: str, *, timeout_ms: int, cross_origin: bool = False) -> LoadedImage:
        return await asyncio.to_thread(self.load, url, timeout_ms, cross_origin)

    def _headers(self, cross_origin: bool) -> Dict[str, str]:
        headers = {'User-Agent': self.user_agent, 'Accept': 'image/*'}
        if cross_origin:
            headers['Origin'] = self.origin
        return headers

    def _check_cors(self, url: str, resp: requests.Response) -> None:
        allowed: Optional[str] = resp.headers.get('Access-Control-Allow-Origin')
        if allowed not in ('*', self.origin):
            raise ImageDecodeError(url, "cross-origin load not allowed by host")

    def load(self, url: str, timeout_ms: int, cross_origin: bool = False) -> LoadedImage:
        if self.block_private_hosts:
            try:
                ensure_safe_remote_image_url(url)
            except ValueError as exc:
                raise ImageDecodeError(url, str(exc)) from exc

        deadline = time.monotonic() + timeout_ms / 1000.0
        try:
            resp = requests.get(url, timeout=timeout_ms / 1000.0, stream=True,
                                headers=self._headers(cross_origin))
        except requests.exceptions.Timeout as exc:
            raise ImageTimeoutError(url, timeout_ms) from exc
        except requests.exceptions.RequestException as exc:
            raise ImageDecodeError(url, f"request failed ({exc.__class__.__name__})") from exc

        try:
            if resp.status_code >= 400:
                raise ImageDecodeError(url, f"http status {resp.status_code}")
            if cross_origin:
                self._check_cors(url, resp)

            content_length = resp.headers.get('Content-Length')
            if content_length and content_length.isdigit() and int(content_length) > self.max_bytes:
                raise ImageDecodeError(url, "remote image exceeds maximum allowed size")

            buf = BytesIO()
            total_bytes = 0
            for chunk in resp.iter_content(chunk_size=16384):
                # Socket timeouts are per read; a slow drip still has to finish in time.
                if time.monotonic() > deadline:
                    raise ImageTimeoutError(url, timeout_ms)
                if not chunk:
                    continue
                buf.write(chunk)
                total_bytes += len(chunk)
                if total_bytes > self.max_bytes:
                    raise ImageDecodeError(url, "remote image download exceeded maximum allowed size")
        except requests.exceptions.Timeout as exc:
            raise ImageTimeoutError(url, timeout_ms) from exc
        except requests.exceptions.RequestException as exc:
            raise ImageDecodeError(url, f"download failed ({exc.__class__.__name__})") from exc
        finally:
            resp.close()

        image = decode_dimensions(url, buf.getvalue())
        logger.debug(f"[COVER][LOAD] {url} -> {image.width}x{image.height} bytes={total_bytes}")
        return image
