import asyncio
from io import BytesIO

import pytest
from PIL import Image

from libflix.domain.errors import ImageDecodeError, ImageTimeoutError
from libflix.domain.models import LoadedImage
from libflix.services.cover_diagnostics import CoverDiagnostics
from libflix.services.cover_resolver import CoverResolver
from libflix.services.result_cache import ResultCache
from libflix.utils.cover_settings import CoverSettings


class FakeLoader:
    """Scripted decode primitive that records every call.

    ``rules`` maps a URL substring to a ``(width, height)`` tuple, an exception
    instance, or a list of those consumed one per call (last one repeats).
    URLs matching no rule fail to decode.
    """

    def __init__(self, rules=None, delay=0.0):
        self.rules = dict(rules or {})
        self.delay = delay
        self.calls = []

    def urls(self):
        return [c['url'] for c in self.calls]

    def count(self, needle):
        return sum(1 for url in self.urls() if needle in url)

    def _outcome(self, url):
        for needle, outcome in self.rules.items():
            if needle in url:
                if isinstance(outcome, list):
                    seen = sum(1 for u in self.urls()[:-1] if needle in u)
                    return outcome[min(seen, len(outcome) - 1)]
                return outcome
        return ImageDecodeError(url, "no rule")

    async def __call__(self, url, *, timeout_ms, cross_origin=False):
        self.calls.append({'url': url, 'timeout_ms': timeout_ms, 'cross_origin': cross_origin})
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self._outcome(url)
        if isinstance(outcome, BaseException):
            raise outcome
        width, height = outcome
        return LoadedImage(width=width, height=height)


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def make_resolver(loader, clock=None, **overrides):
    params = dict(retry_delay=0.0)
    params.update(overrides)
    settings = CoverSettings(**params)
    cache = ResultCache(settings.success_ttl, settings.failure_ttl, clock=clock or FakeClock())
    diagnostics = CoverDiagnostics()
    failures = []

    def sink(failure):
        diagnostics.report_failure(failure)
        failures.append(failure)

    resolver = CoverResolver(loader, cache=cache, settings=settings, diagnostics=diagnostics, on_failure=sink)
    resolver.reported = failures
    return resolver


def png_bytes(width=40, height=60):
    buf = BytesIO()
    Image.new("RGB", (width, height), (10, 20, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timeout_error():
    return ImageTimeoutError("https://slow.example/x.jpg", 100)
