"""
Domain models for cover resolution.

A catalog item carries the identifiers we know about a book; the resolver turns
it into scored candidates and finally into a success or failure result.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class CandidateSource(Enum):
    """Where a candidate URL came from."""
    GENERATED = "generated"
    SUPPLIED = "supplied"


class Priority(Enum):
    """Resolution priority hint. Only changes the per-candidate timeout."""
    HIGH = "high"
    NORMAL = "normal"

    @classmethod
    def coerce(cls, value: Any) -> "Priority":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.NORMAL


class AttemptOutcome(Enum):
    """Result of trying a single candidate."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    DECODE_FAILURE = "decode_failure"
    SKIPPED = "skipped"


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class CatalogItem:
    """A book as far as cover resolution is concerned."""
    id: str
    title: str = ""
    author: str = ""
    isbn: Optional[str] = None
    primary_image_url: Optional[str] = None
    fallback_urls: Tuple[str, ...] = ()
    google_books_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogItem":
        """Build an item from a flat dict or the legacy ``metadata`` layout.

        Legacy records keep ``cover_url``, ``fallback_urls``, ``isbn`` and
        ``google_books_id`` (or ``googleBooksId``) under a nested ``metadata`` key.
        """
        if not isinstance(data, dict):
            raise ValueError("catalog item must be an object")
        item_id = _clean_str(data.get('id'))
        if item_id is None:
            raise ValueError("catalog item requires an id")

        metadata = data.get('metadata') if isinstance(data.get('metadata'), dict) else {}

        primary = (
            data.get('primary_image_url')
            or data.get('cover_url')
            or metadata.get('cover_url')
        )
        fallbacks = data.get('fallback_urls')
        if fallbacks is None:
            fallbacks = metadata.get('fallback_urls')
        if fallbacks is None:
            fallbacks = []
        elif isinstance(fallbacks, str):
            fallbacks = [fallbacks]
        elif not isinstance(fallbacks, (list, tuple)):
            raise ValueError("fallback_urls must be a list")

        return cls(
            id=item_id,
            title=_clean_str(data.get('title')) or "",
            author=_clean_str(data.get('author')) or "",
            isbn=_clean_str(data.get('isbn') or metadata.get('isbn')),
            primary_image_url=_clean_str(primary),
            fallback_urls=tuple(u for u in fallbacks if isinstance(u, str) and u.strip()),
            google_books_id=_clean_str(
                data.get('google_books_id')
                or metadata.get('google_books_id')
                or metadata.get('googleBooksId')
            ),
        )

    def supplied_urls(self) -> List[str]:
        """Primary URL first, then fallbacks, in their given order."""
        urls: List[str] = []
        if self.primary_image_url:
            urls.append(self.primary_image_url)
        urls.extend(self.fallback_urls)
        return urls


@dataclass(frozen=True)
class Candidate:
    url: str
    score: int
    source: CandidateSource


@dataclass(frozen=True)
class LoadedImage:
    width: int
    height: int


@dataclass(frozen=True)
class ResolutionSuccess:
    item_id: str
    url: str
    width: int
    height: int
    resolved_at: float
    source: CandidateSource = CandidateSource.GENERATED

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': True,
            'item_id': self.item_id,
            'url': self.url,
            'width': self.width,
            'height': self.height,
            'resolved_at': self.resolved_at,
            'source': self.source.value,
        }


@dataclass(frozen=True)
class ResolutionFailure:
    """Terminal failure. Carries enough to render a placeholder."""
    item_id: str
    title: str
    author: str
    isbn: Optional[str] = None
    tried_urls: Tuple[str, ...] = ()
    reason: str = "exhausted_all_candidates"
    failed_at: float = 0.0

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': False,
            'item_id': self.item_id,
            'title': self.title,
            'author': self.author,
            'isbn': self.isbn,
            'tried_urls': list(self.tried_urls),
            'reason': self.reason,
            'failed_at': self.failed_at,
        }


@dataclass
class AttemptRecord:
    item_id: str
    url: str
    host: str
    outcome: AttemptOutcome
    pass_index: int = 0
    elapsed_ms: float = 0.0
    detail: Optional[str] = None


ResolutionResult = Union[ResolutionSuccess, ResolutionFailure]
