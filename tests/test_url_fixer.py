from libflix.utils.url_fixer import MAX_URL_LENGTH, fix_url, fix_urls


def test_http_is_upgraded_to_https():
    assert fix_url("http://covers.openlibrary.org/b/id/1-L.jpg") == "https://covers.openlibrary.org/b/id/1-L.jpg"


def test_amazon_ssl_images_rewritten_to_media_host():
    url = "https://images-na.ssl-images-amazon.com/images/I/51HSkTKlauL._SX346_BO1,204,203,200_.jpg"
    assert fix_url(url) == "https://m.media-amazon.com/images/I/51HSkTKlauL.jpg"


def test_amazon_url_without_image_id_left_alone():
    url = "https://images-na.ssl-images-amazon.com/images/G/01/x-site/icons/no-img-lg.gif"
    assert fix_url(url) == url


def test_google_books_content_gets_image_params():
    fixed = fix_url("https://books.google.com/books/content?id=abc&printsec=frontcover")
    assert fixed.endswith("&img=1&zoom=1")
    already = "https://books.google.com/books/content?id=abc&printsec=frontcover&img=1&zoom=1"
    assert fix_url(already) == already


def test_unusable_values_rejected():
    for raw in (None, "", "   ", 42, "undefined", "https://x.example/null.jpg",
                "ftp://files.example/cover.jpg", "not a url", "https://" + "a" * MAX_URL_LENGTH):
        assert fix_url(raw) is None


def test_fix_urls_dedupes_after_fixing_and_keeps_order():
    urls = [
        "http://a.example/1.jpg",
        "https://a.example/1.jpg",
        "undefined",
        "https://b.example/2.jpg",
    ]
    assert fix_urls(urls) == ["https://a.example/1.jpg", "https://b.example/2.jpg"]
    assert fix_urls(None) == []
