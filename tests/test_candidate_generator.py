from libflix.domain.models import CandidateSource, CatalogItem
from libflix.services.candidate_generator import generate_candidate_urls, merge_candidates
from libflix.services.host_policy import ReliabilityScorer


def test_generates_templates_for_both_isbn_forms():
    urls = generate_candidate_urls(CatalogItem(id="1", isbn="978-0-439-70818-0"))
    assert "https://covers.openlibrary.org/b/isbn/9780439708180-L.jpg" in urls
    assert "https://covers.openlibrary.org/b/isbn/0439708184-L.jpg" in urls
    assert "https://bookcover.longitood.com/bookcover/9780439708180" in urls
    assert "https://images.isbndb.com/covers/97/80/43/9780439708180.jpg" in urls
    # ISBN-13-only providers never get the 10 digit form.
    assert "https://archive.org/services/img/0439708184" not in urls


def test_generation_is_pure():
    item = CatalogItem(id="1", isbn="0439708184", google_books_id="wrOQLV6xB-wC")
    assert generate_candidate_urls(item) == generate_candidate_urls(item)


def test_invalid_isbn_generates_nothing():
    assert generate_candidate_urls(CatalogItem(id="1", isbn="9780439708181")) == []
    assert generate_candidate_urls(CatalogItem(id="1")) == []


def test_google_books_id_templates():
    urls = generate_candidate_urls(CatalogItem(id="1", google_books_id="abc123"))
    assert len(urls) == 2
    assert all("id=abc123" in u and "img=1" in u for u in urls)


def test_merge_ranks_and_marks_sources():
    item = CatalogItem(
        id="1",
        isbn="9780439708180",
        primary_image_url="http://images-na.ssl-images-amazon.com/images/I/51HSkTKlauL._SX346_.jpg",
        fallback_urls=("https://covers.openlibrary.org/b/isbn/9780439708180-L.jpg", "undefined"),
    )
    candidates = merge_candidates(item, ReliabilityScorer())
    urls = [c.url for c in candidates]

    # Supplied duplicate of a generated URL is not repeated; unusable ones are dropped.
    assert urls.count("https://covers.openlibrary.org/b/isbn/9780439708180-L.jpg") == 1
    assert "undefined" not in urls
    assert "https://m.media-amazon.com/images/I/51HSkTKlauL.jpg" in urls

    scores = [c.score for c in candidates]
    assert scores == sorted(scores, reverse=True)
    assert candidates[0].source is CandidateSource.GENERATED
    amazon = next(c for c in candidates if "media-amazon" in c.url)
    assert amazon.source is CandidateSource.SUPPLIED


def test_invalid_primary_url_counts_as_absent():
    item = CatalogItem(id="1", primary_image_url="undefined", fallback_urls=("https://x.example/a.jpg",))
    candidates = merge_candidates(item, ReliabilityScorer())
    assert [c.url for c in candidates] == ["https://x.example/a.jpg"]


def test_no_identifiers_means_no_candidates():
    assert merge_candidates(CatalogItem(id="1", title="Untitled"), ReliabilityScorer()) == []


def test_max_candidates_truncates_lowest_scores():
    item = CatalogItem(id="1", isbn="9780439708180")
    full = merge_candidates(item, ReliabilityScorer())
    capped = merge_candidates(item, ReliabilityScorer(), max_candidates=3)
    assert capped == full[:3]
