"""Tests for the memoised keyword phrase list."""

import pytest
import asyncio

from search_discovery.backend import KeywordPhraseList
from search_discovery.backend.base import KeywordPhraseSource
from search_discovery.error_handling import ErrorHandler, KeywordPhraseError, RetryConfig


class CountingSource(KeywordPhraseSource):
    def __init__(self, phrases=None, failures=0):
        self.phrases = phrases or []
        self.failures = failures
        self.calls = 0

    async def fetch_keyword_phrases(self):
        self.calls += 1
        await asyncio.sleep(0.01)
        if self.calls <= self.failures:
            raise KeywordPhraseError("service unavailable")
        return list(self.phrases)


def fast_retries(max_retries=2) -> ErrorHandler:
    return ErrorHandler(RetryConfig(max_retries=max_retries, base_delay_seconds=0.0))


@pytest.mark.asyncio
async def test_load_fetches_once():
    """Test that repeated and concurrent loads share one fetch."""
    source = CountingSource(["adhd", "sleep apnea"])
    phrase_list = KeywordPhraseList(source, fast_retries())

    first, second = await asyncio.gather(phrase_list.load(), phrase_list.load())
    third = await phrase_list.load()

    assert first == second == third == ["adhd", "sleep apnea"]
    assert source.calls == 1
    assert phrase_list.loaded
    assert phrase_list.phrases == ["adhd", "sleep apnea"]


@pytest.mark.asyncio
async def test_load_retries_then_succeeds():
    """Test that a transient failure is retried."""
    source = CountingSource(["adhd"], failures=1)
    phrase_list = KeywordPhraseList(source, fast_retries(max_retries=2))

    assert await phrase_list.load() == ["adhd"]
    assert source.calls == 2


@pytest.mark.asyncio
async def test_load_failure_falls_back_to_empty_list():
    """Test that exhausted retries leave an empty list instead of raising."""
    source = CountingSource(["adhd"], failures=5)
    phrase_list = KeywordPhraseList(source, fast_retries(max_retries=2))

    assert await phrase_list.load() == []
    assert source.calls == 2
    assert phrase_list.loaded
    assert phrase_list.phrases == []

    # Memoised failure is not retried
    assert await phrase_list.load() == []
    assert source.calls == 2
