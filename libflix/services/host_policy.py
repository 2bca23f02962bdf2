"""
Host reliability policy and URL scoring.

This is the ONE place that knows how much to trust each cover host, how long
to wait for it and whether it accepts anonymous cross-origin requests. The
resolver consumes it; nothing else should carry its own host lists.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

from libflix.domain.models import Candidate, CandidateSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HostPolicy:
    base_score: int = 50
    timeout_ms: int = 4000
    use_cross_origin: bool = False
    unreliable: bool = False


DEFAULT_POLICY = HostPolicy()

DEFAULT_HOST_POLICIES: Dict[str, HostPolicy] = {
    'covers.openlibrary.org': HostPolicy(base_score=90, timeout_ms=3000, use_cross_origin=True),
    'openlibrary.org': HostPolicy(base_score=85, timeout_ms=4000, use_cross_origin=True),
    'archive.org': HostPolicy(base_score=80, timeout_ms=5000, use_cross_origin=True),
    'bookcover.longitood.com': HostPolicy(base_score=80, timeout_ms=4000),
    'm.media-amazon.com': HostPolicy(base_score=70, timeout_ms=3000),
    'syndetics.com': HostPolicy(base_score=65, timeout_ms=4000),
    'images.isbndb.com': HostPolicy(base_score=60, timeout_ms=4000),
    'books.google.com': HostPolicy(base_score=45, timeout_ms=5000),
    'worldcat.org': HostPolicy(base_score=40, timeout_ms=4000),
    'compressed.photo.goodreads.com': HostPolicy(base_score=45, timeout_ms=3000),
    'images-na.ssl-images-amazon.com': HostPolicy(base_score=30, timeout_ms=2000, unreliable=True),
    'ecx.images-amazon.com': HostPolicy(base_score=30, timeout_ms=2000, unreliable=True),
    'd2arxad8u2l0g7.cloudfront.net': HostPolicy(base_score=25, timeout_ms=2000, unreliable=True),
}

# (substring, adjustment) applied after the host lookup.
URL_PENALTIES: Tuple[Tuple[str, int], ...] = (
    ('ssl-images-amazon.com', -30),
    ('d2arxad8u2l0g7.cloudfront.net', -20),
    ('compressed.photo.goodreads.com', -20),
)
IMAGE_EXTENSION_BONUS = 5
PLAIN_HTTP_PENALTY = -10
IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.webp')
SUBDOMAIN_FACTOR = 0.9


def extract_host(url: str) -> str:
    try:
        return (urlparse(url).hostname or '').lower()
    except ValueError:
        return ''


def _has_image_extension(url: str) -> bool:
    try:
        path = urlparse(url).path.lower()
    except ValueError:
        return False
    return path.endswith(IMAGE_EXTENSIONS)


def load_host_policies(path) -> Dict[str, HostPolicy]:
    """Read a JSON object of ``host -> policy fields`` layered over the defaults."""
    raw = json.loads(Path(path).read_text(encoding='utf-8'))
    if not isinstance(raw, dict):
        raise ValueError("host policy file must contain a JSON object")
    policies = dict(DEFAULT_HOST_POLICIES)
    for host, fields in raw.items():
        if not isinstance(fields, dict):
            raise ValueError(f"policy for {host} must be an object")
        base = asdict(policies.get(host.lower(), DEFAULT_POLICY))
        base.update({k: v for k, v in fields.items() if k in base})
        policies[host.lower()] = HostPolicy(
            base_score=int(base['base_score']),
            timeout_ms=int(base['timeout_ms']),
            use_cross_origin=bool(base['use_cross_origin']),
            unreliable=bool(base['unreliable']),
        )
    logger.info(f"[COVER][POLICY] Loaded {len(raw)} host overrides from {path}")
    return policies


class ReliabilityScorer:
    """Scores candidate URLs and hands out per-host fetch policies."""

    def __init__(self, policies: Optional[Mapping[str, HostPolicy]] = None,
                 default_policy: HostPolicy = DEFAULT_POLICY):
        self.policies: Dict[str, HostPolicy] = {
            host.lower(): policy for host, policy in (policies or DEFAULT_HOST_POLICIES).items()
        }
        self.default_policy = default_policy

    def lookup(self, host: str) -> Tuple[HostPolicy, bool]:
        """Return ``(policy, exact)`` for a host.

        Exact matches win; otherwise the longest table entry that the host is a
        subdomain of is used.
        """
        host = (host or '').lower()
        policy = self.policies.get(host)
        if policy is not None:
            return policy, True
        best: Optional[str] = None
        for known in self.policies:
            if host.endswith('.' + known) and (best is None or len(known) > len(best)):
                best = known
        if best is not None:
            return self.policies[best], False
        return self.default_policy, True

    def policy_for(self, url: str) -> HostPolicy:
        return self.lookup(extract_host(url))[0]

    def score(self, url: str) -> int:
        host = extract_host(url)
        if not host:
            return 0
        policy, exact = self.lookup(host)
        score = policy.base_score if exact else int(policy.base_score * SUBDOMAIN_FACTOR)

        lowered = url.lower()
        for needle, adjustment in URL_PENALTIES:
            if needle in lowered:
                score += adjustment
        if lowered.startswith('http://'):
            score += PLAIN_HTTP_PENALTY
        if _has_image_extension(url):
            score += IMAGE_EXTENSION_BONUS

        return max(0, min(100, score))

    def rank(self, urls: Iterable[Tuple[str, CandidateSource]]) -> List[Candidate]:
        """Score and stably sort ``(url, source)`` pairs, highest first."""
        candidates = [Candidate(url=url, score=self.score(url), source=source) for url, source in urls]
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates
