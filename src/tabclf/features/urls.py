"""URL canonicalization for duplicate detection."""

from __future__ import annotations

from typing import Final
from urllib.parse import parse_qsl, urlencode, urlsplit

TRACKING_PARAMS: Final[frozenset[str]] = frozenset({
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "fbclid",
    "gclid",
    "mc_cid",
    "mc_eid",
    "igshid",
    "ref_src",
})


def normalize_url(url: str) -> str:
    """Canonical comparison key for *url*.

    Drops tracking query parameters, the fragment, a trailing slash,
    the scheme and a leading ``www.``, then lowercases the result::

        >>> normalize_url("https://www.Example.com/Page/?utm_source=x#top")
        'example.com/page'

    Unparseable input is returned lowercased and stripped.
    """
    raw = url.strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw.lower()

    netloc = parts.netloc.lower()
    if netloc.startswith("www."):
        netloc = netloc[4:]

    query = urlencode(
        [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key.lower() not in TRACKING_PARAMS
        ]
    )

    path = parts.path.rstrip("/")
    if netloc:
        normalized = netloc + path
    else:
        # Scheme-only URLs such as about:blank keep their scheme.
        normalized = f"{parts.scheme}:{path}" if parts.scheme else path
    if query:
        normalized += "?" + query
    return normalized.lower()
