"""Log handling that keeps browsing data out of log output.

Tab URLs, titles and hostnames are browsing history.  Engine modules log
them as ``url=...``, ``title=...`` or ``domain=...`` pairs so that
:class:`BrowsingDataFilter`, installed on the handlers by
:func:`configure_logging`, can mask the values before anything is written.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Final

BROWSING_KEYS: Final[frozenset[str]] = frozenset({"url", "title", "domain", "query"})

MASK: Final[str] = "[REDACTED]"

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _pair_pattern(keys: Iterable[str]) -> re.Pattern[str]:
    # Longest first so ``full_url`` is never cut down to ``url``.
    alternatives = "|".join(re.escape(k) for k in sorted(keys, key=len, reverse=True))
    return re.compile(
        rf"\b(?P<key>{alternatives})\s*[=:]\s*(?P<value>\"[^\"]*\"|'[^']*'|\S+)",
        re.IGNORECASE,
    )


class BrowsingDataFilter(logging.Filter):
    """Rewrites each record so the values of *keys* read as ``[REDACTED]``.

    The record is formatted first, so values passed as ``%s`` arguments
    are masked too.  Records are never dropped.
    """

    def __init__(self, keys: Iterable[str] = BROWSING_KEYS) -> None:
        super().__init__()
        self.keys = frozenset(k.lower() for k in keys)
        self._pattern = _pair_pattern(self.keys)

    def redact(self, message: str) -> str:
        return self._pattern.sub(lambda m: f"{m.group('key')}={MASK}", message)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(record.getMessage())
        record.args = None
        return True


_default_filter = BrowsingDataFilter()


def redact_message(message: str) -> str:
    """Mask every browsing ``key=value`` / ``key: value`` pair in *message*."""
    return _default_filter.redact(message)


def configure_logging(level: int | str = logging.WARNING) -> BrowsingDataFilter:
    """Set up root logging for CLI use with browsing data masked.

    Safe to call more than once: ``basicConfig`` is a no-op when the root
    logger already has handlers, and a handler that already carries a
    :class:`BrowsingDataFilter` is left alone.

    Returns:
        The filter attached to the root handlers.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        if not any(isinstance(f, BrowsingDataFilter) for f in handler.filters):
            handler.addFilter(_default_filter)
    return _default_filter
