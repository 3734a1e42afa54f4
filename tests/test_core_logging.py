"""Tests for the browsing-data log filter.

Tab URLs, titles and hostnames must never reach log output.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from tabclf.classify.patterns import PatternStore
from tabclf.classify.pipeline import ClassificationPipeline
from tabclf.core.logging import BrowsingDataFilter, configure_logging, redact_message


@pytest.fixture()
def masked_caplog(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    filt = BrowsingDataFilter()
    caplog.handler.addFilter(filt)
    try:
        yield caplog
    finally:
        caplog.handler.removeFilter(filt)


class TestRedactMessage:
    def test_url_and_title_pairs(self) -> None:
        msg = redact_message("classified url=https://bank.example/acct title='My account'")
        assert "bank.example" not in msg
        assert "My account" not in msg
        assert msg == "classified url=[REDACTED] title=[REDACTED]"

    def test_domain_pair(self) -> None:
        assert redact_message("Learned domain=bank.example -> finance") == (
            "Learned domain=[REDACTED] -> finance"
        )

    def test_colon_form(self) -> None:
        assert redact_message("query: secret") == "query=[REDACTED]"

    def test_plain_messages_untouched(self) -> None:
        assert redact_message("Organized 4 tabs into 2 groups") == "Organized 4 tabs into 2 groups"


class TestBrowsingDataFilter:
    def test_formats_args_before_redacting(self) -> None:
        record = logging.LogRecord(
            "tabclf", logging.INFO, __file__, 1, "tab %d url=%s", (5, "https://x.test/p"), None
        )
        assert BrowsingDataFilter().filter(record) is True
        assert record.getMessage() == "tab 5 url=[REDACTED]"

    def test_custom_keys_only(self) -> None:
        filt = BrowsingDataFilter(keys=["Title"])
        assert filt.keys == frozenset({"title"})
        assert filt.redact("url=https://x.test title=Secret") == "url=https://x.test title=[REDACTED]"


class TestEngineRecords:
    def test_invalid_stored_pattern_hides_domain(
        self, masked_caplog: pytest.LogCaptureFixture
    ) -> None:
        with masked_caplog.at_level(logging.WARNING, logger="tabclf"):
            store = PatternStore.from_dict({"clinic.example": {"categories": "not-a-dict"}})
        assert len(store) == 0
        assert "clinic.example" not in masked_caplog.text
        assert "Skipping invalid learned pattern for domain=[REDACTED]" in masked_caplog.text

    def test_learning_hides_domain(
        self, store, masked_caplog: pytest.LogCaptureFixture
    ) -> None:
        pipeline = ClassificationPipeline(store).load()
        with masked_caplog.at_level(logging.INFO, logger="tabclf"):
            pipeline.learn("news.example", "news")
        assert [r.getMessage() for r in masked_caplog.records] == [
            "Learned domain=[REDACTED] -> news"
        ]


class TestConfigureLogging:
    def test_attaches_once_per_handler(self) -> None:
        root = logging.getLogger()
        handler = logging.StreamHandler()
        root.addHandler(handler)
        level = root.level
        try:
            first = configure_logging(logging.INFO)
            second = configure_logging(logging.INFO)
            assert first is second
            assert handler.filters.count(first) == 1
        finally:
            root.removeHandler(handler)
            root.setLevel(level)
