# ==============================================================================
# URL Helpers
# ==============================================================================
"""
URL classification and domain extraction shared by triage, aggregation and sync.
"""

from urllib.parse import urlsplit

# Browser-internal and non-web schemes that never describe a real page visit
INVALID_URL_PREFIXES = (
    "about:",
    "chrome://",
    "chrome-extension://",
    "moz-extension://",
    "edge://",
    "brave://",
    "opera://",
    "vivaldi://",
    "file:",
    "data:",
    "blob:",
    "view-source:",
    "javascript:",
)


def is_internal_url(url: str | None) -> bool:
    """True if url starts with a browser-internal or non-web scheme."""
    if not url:
        return False
    return url.strip().lower().startswith(INVALID_URL_PREFIXES)


def is_trackable_url(url: str | None) -> bool:
    """True if url is a non-empty web URL worth tracking or uploading."""
    return bool(url) and not is_internal_url(url)


def extract_domain(url: str | None) -> str:
    """
    Extract the hostname from a URL, with a leading "www." removed.

    Args:
        url: Any URL string

    Returns:
        Lowercased hostname, or "" when the URL has none or cannot be parsed.
        Scheme-only URLs such as "chrome://newtab/" yield their host part
        ("newtab") so triage can still recognize them.
    """
    if not url:
        return ""
    try:
        host = urlsplit(url.strip()).hostname or ""
    except ValueError:
        return ""
    if host.startswith("www."):
        host = host[4:]
    return host
