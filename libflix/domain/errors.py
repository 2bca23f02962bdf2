"""Exception types raised by the cover resolution layer."""


class CoverError(Exception):
    """Base class for cover resolution errors."""


class ImageLoadError(CoverError):
    """A candidate URL could not be turned into a usable image."""

    def __init__(self, url: str, message: str = "image load failed"):
        super().__init__(f"{message}: {url}")
        self.url = url
        self.message = message


class ImageTimeoutError(ImageLoadError):
    """The fetch exceeded its time limit."""

    def __init__(self, url: str, timeout_ms: int):
        super().__init__(url, f"timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class ImageDecodeError(ImageLoadError):
    """The response was fetched but is not a usable image."""


class CatalogError(CoverError):
    """The catalog source could not be read."""
