"""Hostname normalization and the static fallback domain table.

Every other component keys its lookups on the value returned by
:func:`normalize_hostname` (lowercase, no leading ``www.``) so that
``WWW.GitHub.com`` and ``github.com`` are the same domain everywhere.
"""

from __future__ import annotations

from typing import Final
from urllib.parse import urlsplit

_INTERNAL_PREFIXES: Final[tuple[str, ...]] = (
    "chrome://",
    "chrome-extension://",
    "edge://",
    "about:",
    "brave://",
)

# Last-resort domain -> category table, consulted only after every
# learned and user-defined signal failed.
_FALLBACK_DOMAINS: Final[dict[str, str]] = {
    "github.com": "development",
    "gitlab.com": "development",
    "stackoverflow.com": "development",
    "google.com": "productivity",
    "notion.so": "productivity",
    "youtube.com": "entertainment",
    "netflix.com": "entertainment",
    "twitch.tv": "entertainment",
    "facebook.com": "social",
    "twitter.com": "social",
    "x.com": "social",
    "amazon.com": "shopping",
    "ebay.com": "shopping",
}


def normalize_hostname(host: str) -> str:
    """Lowercase *host* and strip a single leading ``www.``."""
    host = host.strip().lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def domain_of(url: str) -> str | None:
    """Return the normalized hostname of *url*, or ``None``.

    ``None`` means the URL could not be parsed or carries no hostname
    (e.g. ``"not a url"``, ``"about:blank"``).
    """
    if not url:
        return None
    try:
        host = urlsplit(url.strip()).hostname
    except ValueError:
        return None
    if not host:
        return None
    return normalize_hostname(host)


def is_internal_url(url: str) -> bool:
    """True for browser-internal pages that can never be grouped."""
    return url.lower().startswith(_INTERNAL_PREFIXES)


def fallback_category(domain: str) -> str | None:
    """Look *domain* up in the static fallback table.

    Tries the exact domain first, then its registrable parent
    (``"m.youtube.com"`` -> ``"youtube.com"``).
    """
    if domain in _FALLBACK_DOMAINS:
        return _FALLBACK_DOMAINS[domain]

    parts = domain.split(".")
    if len(parts) > 2:
        parent = ".".join(parts[-2:])
        if parent in _FALLBACK_DOMAINS:
            return _FALLBACK_DOMAINS[parent]
    return None


def matches_domain(domain: str, pattern: str) -> bool:
    """True when *domain* equals *pattern* or is a subdomain of it."""
    return domain == pattern or domain.endswith("." + pattern)
