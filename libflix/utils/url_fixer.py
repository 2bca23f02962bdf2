"""Cleanup for externally supplied cover URLs.

Catalog data carries cover URLs scraped from several providers over the years;
some are plain HTTP, some point at Amazon hosts that no longer serve the image,
some are the literal string ``undefined``. This module normalizes what can be
repaired and drops the rest before the URLs become candidates.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

MAX_URL_LENGTH = 2000

_AMAZON_SSL_IMAGES = 'ssl-images-amazon.com'
_AMAZON_IMAGE_ID_RE = re.compile(r'/([A-Z0-9]{10,})[^/]*\.jpg', re.IGNORECASE)
_GOOGLE_BOOKS_HOST = 'books.google.'


def _rewrite_amazon(url: str) -> str:
    match = _AMAZON_IMAGE_ID_RE.search(url)
    if not match:
        return url
    # Size suffixes like ._SX331_ are dropped; the bare id serves the full image.
    return f"https://m.media-amazon.com/images/I/{match.group(1)}.jpg"


def _ensure_google_image_params(url: str) -> str:
    if 'img=1' in url:
        return url
    return url + ('&' if '?' in url else '?') + 'img=1&zoom=1'


def fix_url(url) -> Optional[str]:
    """Return a repaired URL, or None when it cannot be used at all."""
    if not url or not isinstance(url, str):
        return None
    url = url.strip()
    if not url or len(url) > MAX_URL_LENGTH:
        return None
    if 'undefined' in url or 'null' in url:
        return None

    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        return None

    if url.startswith('http://'):
        url = 'https://' + url[len('http://'):]

    host = parsed.hostname.lower()
    if host.endswith(_AMAZON_SSL_IMAGES):
        fixed = _rewrite_amazon(url)
        if fixed != url:
            logger.debug(f"[COVER][FIX] amazon rewrite {url} -> {fixed}")
        url = fixed
    elif _GOOGLE_BOOKS_HOST in host and '/books/content' in parsed.path:
        url = _ensure_google_image_params(url)

    return url


def fix_urls(urls: Iterable) -> List[str]:
    """Fix every URL, dropping unusable ones and duplicates (first one wins)."""
    out: List[str] = []
    seen = set()
    for raw in urls or []:
        fixed = fix_url(raw)
        if fixed is None:
            logger.debug(f"[COVER][FIX] dropped unusable url={str(raw)[:80]!r}")
            continue
        if fixed in seen:
            continue
        seen.add(fixed)
        out.append(fixed)
    return out
