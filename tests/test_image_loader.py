import asyncio
import time

import pytest
import requests

from libflix.domain.errors import ImageDecodeError, ImageTimeoutError
from libflix.services import image_loader as image_loader_mod
from libflix.services.image_loader import RequestsImageLoader, decode_dimensions

from conftest import png_bytes


class DummyResponse:
    def __init__(self, body=b"", status_code=200, headers=None):
        self._body = body
        self.status_code = status_code
        self.headers = headers or {}
        self.closed = False

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), chunk_size):
            yield self._body[i:i + chunk_size]

    def close(self):
        self.closed = True


def _patch_get(monkeypatch, response=None, exc=None):
    seen = {}

    def fake_get(url, **kwargs):
        seen['url'] = url
        seen.update(kwargs)
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr(image_loader_mod.requests, "get", fake_get)
    return seen


def test_decode_dimensions_reads_size():
    image = decode_dimensions("https://x.example/a.png", png_bytes(40, 60))
    assert (image.width, image.height) == (40, 60)


def test_decode_dimensions_rejects_garbage():
    with pytest.raises(ImageDecodeError):
        decode_dimensions("https://x.example/a.png", b"<html>not an image</html>")
    with pytest.raises(ImageDecodeError):
        decode_dimensions("https://x.example/a.png", b"")


def test_load_returns_dimensions(monkeypatch):
    resp = DummyResponse(png_bytes(120, 180))
    seen = _patch_get(monkeypatch, resp)
    loader = RequestsImageLoader(block_private_hosts=False)

    image = asyncio.run(loader("https://covers.example/a.png", timeout_ms=2500))

    assert (image.width, image.height) == (120, 180)
    assert seen['timeout'] == 2.5
    assert seen['stream'] is True
    assert 'Origin' not in seen['headers']
    assert resp.closed


def test_http_error_status_is_decode_failure(monkeypatch):
    _patch_get(monkeypatch, DummyResponse(b"", status_code=404))
    loader = RequestsImageLoader(block_private_hosts=False)
    with pytest.raises(ImageDecodeError, match="404"):
        loader.load("https://covers.example/missing.jpg", 1000)


def test_requests_timeout_maps_to_timeout_error(monkeypatch):
    _patch_get(monkeypatch, exc=requests.exceptions.ReadTimeout("slow"))
    loader = RequestsImageLoader(block_private_hosts=False)
    with pytest.raises(ImageTimeoutError):
        loader.load("https://covers.example/slow.jpg", 1000)


def test_connection_error_is_decode_failure(monkeypatch):
    _patch_get(monkeypatch, exc=requests.exceptions.ConnectionError("refused"))
    loader = RequestsImageLoader(block_private_hosts=False)
    with pytest.raises(ImageDecodeError):
        loader.load("https://covers.example/a.jpg", 1000)


def test_cross_origin_requires_allow_origin_header(monkeypatch):
    seen = _patch_get(monkeypatch, DummyResponse(png_bytes()))
    loader = RequestsImageLoader(block_private_hosts=False, origin="https://libflix.test")
    with pytest.raises(ImageDecodeError, match="cross-origin"):
        loader.load("https://covers.example/a.png", 1000, cross_origin=True)
    assert seen['headers']['Origin'] == "https://libflix.test"

    _patch_get(monkeypatch, DummyResponse(png_bytes(), headers={'Access-Control-Allow-Origin': '*'}))
    assert loader.load("https://covers.example/a.png", 1000, cross_origin=True).width == 40


def test_oversized_images_are_rejected(monkeypatch):
    loader = RequestsImageLoader(block_private_hosts=False, max_bytes=1024)

    _patch_get(monkeypatch, DummyResponse(b"x", headers={'Content-Length': '999999'}))
    with pytest.raises(ImageDecodeError, match="maximum"):
        loader.load("https://covers.example/big.jpg", 1000)

    _patch_get(monkeypatch, DummyResponse(b"x" * 50000))
    with pytest.raises(ImageDecodeError, match="maximum"):
        loader.load("https://covers.example/big.jpg", 1000)


def test_private_hosts_blocked(monkeypatch):
    monkeypatch.setattr(image_loader_mod.socket, "getaddrinfo",
                        lambda host, port: [(None, None, None, None, ("10.0.0.5", 0))])
    seen = _patch_get(monkeypatch, DummyResponse(png_bytes()))
    loader = RequestsImageLoader()
    with pytest.raises(ImageDecodeError, match="disallowed"):
        loader.load("https://intranet.example/a.png", 1000)
    assert 'url' not in seen


class DripResponse(DummyResponse):
    """Sends the body in small chunks with a pause before each one."""

    def __init__(self, body, pause):
        super().__init__(body)
        self.pause = pause

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self._body), 64):
            time.sleep(self.pause)
            yield self._body[i:i + 64]


def test_slow_drip_download_hits_overall_deadline(monkeypatch):
    resp = DripResponse(png_bytes() + b"\x00" * 2048, pause=0.05)
    _patch_get(monkeypatch, resp)
    loader = RequestsImageLoader(block_private_hosts=False)

    started = time.monotonic()
    with pytest.raises(ImageTimeoutError):
        loader.load("https://covers.example/drip.png", 100)

    assert time.monotonic() - started < 0.5
    assert resp.closed
