"""Template cover URLs for known providers, and merging with supplied URLs."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from libflix.domain.models import Candidate, CandidateSource, CatalogItem
from libflix.services.host_policy import ReliabilityScorer
from libflix.utils.isbn import isbn_variants
from libflix.utils.url_fixer import fix_urls

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderTemplate:
    name: str
    template: str
    # Which ISBN forms the provider understands.
    isbn10: bool = True
    isbn13: bool = True

    def expand(self, isbn: str) -> str:
        return self.template.format(
            isbn=isbn,
            p1=isbn[0:2],
            p2=isbn[2:4],
            p3=isbn[4:6],
        )


ISBN_PROVIDERS: Tuple[ProviderTemplate, ...] = (
    ProviderTemplate('openlibrary-large', 'https://covers.openlibrary.org/b/isbn/{isbn}-L.jpg'),
    ProviderTemplate('openlibrary-medium', 'https://covers.openlibrary.org/b/isbn/{isbn}-M.jpg'),
    ProviderTemplate('longitood', 'https://bookcover.longitood.com/bookcover/{isbn}', isbn10=False),
    ProviderTemplate('archive', 'https://archive.org/services/img/{isbn}', isbn10=False),
    ProviderTemplate('syndetics', 'https://syndetics.com/index.aspx?isbn={isbn}/MC.GIF'),
    ProviderTemplate('isbndb', 'https://images.isbndb.com/covers/{p1}/{p2}/{p3}/{isbn}.jpg', isbn10=False),
)

GOOGLE_BOOKS_TEMPLATES: Tuple[str, ...] = (
    'https://books.google.com/books/content?id={gid}&printsec=frontcover&img=1&zoom=1&edge=curl&source=gbs_api',
    'https://books.google.com/books/content?id={gid}&printsec=frontcover&img=1&zoom=0&edge=curl&source=gbs_api',
)


def generate_candidate_urls(item: CatalogItem) -> List[str]:
    """Expand provider templates for every ISBN form derivable from the item.

    Pure: no network, same identifiers give the same list.
    """
    urls: List[str] = []
    isbn10, isbn13 = isbn_variants(item.isbn)
    if item.isbn and not (isbn10 or isbn13):
        logger.debug(f"[COVER][CANDIDATES] invalid isbn={item.isbn!r} item={item.id}; skipping templates")

    for provider in ISBN_PROVIDERS:
        if isbn13 and provider.isbn13:
            urls.append(provider.expand(isbn13))
        if isbn10 and provider.isbn10:
            urls.append(provider.expand(isbn10))

    if item.google_books_id:
        urls.extend(t.format(gid=item.google_books_id) for t in GOOGLE_BOOKS_TEMPLATES)

    return urls


def merge_candidates(item: CatalogItem, scorer: ReliabilityScorer,
                     max_candidates: Optional[int] = None) -> List[Candidate]:
    """Generated plus supplied URLs, deduplicated and sorted by score.

    Ties keep their merge order: generated URLs first, then the primary URL,
    then fallbacks.
    """
    pairs: List[Tuple[str, CandidateSource]] = []
    seen = set()
    for url in generate_candidate_urls(item):
        if url not in seen:
            seen.add(url)
            pairs.append((url, CandidateSource.GENERATED))
    for url in fix_urls(item.supplied_urls()):
        if url not in seen:
            seen.add(url)
            pairs.append((url, CandidateSource.SUPPLIED))

    ranked = scorer.rank(pairs)
    if max_candidates is not None and max_candidates > 0:
        ranked = ranked[:max_candidates]
    return ranked
