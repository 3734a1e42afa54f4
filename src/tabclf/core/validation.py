"""Input validation for the learning and mapping entry points.

Bad input from the caller is rejected here with a
:class:`TabValidationError` subclass rather than silently ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Final

from tabclf.core.defaults import MAX_DOMAIN_LENGTH
from tabclf.features.domain import normalize_hostname

_DOMAIN_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)*[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$"
)


class TabValidationError(ValueError):
    """Base class for rejected caller input."""


class InvalidDomainError(TabValidationError):
    def __init__(self, domain: str) -> None:
        super().__init__(f"Invalid domain: {domain!r}")
        self.domain = domain


class UnknownCategoryError(TabValidationError):
    def __init__(self, category_id: str, known: Iterable[str] = ()) -> None:
        known = sorted(known)
        msg = f"Unknown category id: {category_id!r}"
        if known:
            msg += f"; must be one of {known}"
        super().__init__(msg)
        self.category_id = category_id


def validate_domain(domain: str) -> str:
    """Normalize *domain* and check it is a plausible hostname.

    Returns:
        The normalized domain (lowercase, no ``www.``).

    Raises:
        InvalidDomainError: If the result is empty, too long, or contains
            characters a hostname cannot.
    """
    normalized = normalize_hostname(domain)
    if (
        not normalized
        or len(normalized) > MAX_DOMAIN_LENGTH
        or not _DOMAIN_RE.match(normalized)
    ):
        raise InvalidDomainError(domain)
    return normalized


def validate_category_id(category_id: str, known: Iterable[str]) -> str:
    """Check *category_id* is one of *known*.

    Raises:
        UnknownCategoryError: If it is not.
    """
    known = set(known)
    if category_id not in known:
        raise UnknownCategoryError(category_id, known)
    return category_id


class UnknownTabError(TabValidationError):
    def __init__(self, tab_id: int) -> None:
        super().__init__(f"No open tab with id {tab_id}")
        self.tab_id = tab_id
