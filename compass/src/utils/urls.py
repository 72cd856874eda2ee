"""URL helpers shared by the frontier, options and session bookkeeping."""
from __future__ import annotations

from urllib.parse import urljoin, urlsplit


def normalize_url(url: str) -> str:
    """Drop query string and fragment: ``scheme://host/path``."""
    if not url:
        return ""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.split("#")[0].split("?")[0]
    if not parts.scheme or not parts.netloc:
        return url.split("#")[0].split("?")[0]
    return f"{parts.scheme}://{parts.netloc}{parts.path}"


def domain_of(url: str) -> str:
    try:
        return urlsplit(url).hostname or ""
    except ValueError:
        return ""


def resolve_url(page_url: str, href: str) -> str:
    """Absolute, normalized form of ``href`` as seen from ``page_url``."""
    if not href:
        return ""
    try:
        absolute = urljoin(page_url, href) if page_url else href
    except ValueError:
        absolute = href
    return normalize_url(absolute)
