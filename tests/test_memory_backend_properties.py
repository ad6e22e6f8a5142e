"""
Property-based tests for the in-memory discovery backend.

These tests verify that both pagination protocols walk the whole catalogue
without repeating an item.
"""

import pytest
import asyncio

from hypothesis import given, settings, strategies as st

from search_discovery.backend import InMemorySearchBackend
from search_discovery.error_handling import ItemLookupError
from search_discovery.models import BackendMode, MaxDistanceStrategy, ResultItem, SearchRequest


catalogue_sizes = st.integers(min_value=0, max_value=60)
page_sizes = st.integers(min_value=1, max_value=15)
page_fills = st.one_of(st.none(), st.integers(min_value=1, max_value=15))


def make_items(count):
    return [
        ResultItem(
            id=f"item-{i}",
            payload={
                'dataset_schema': {'name': f"Dataset {i}", 'description': "sleep" if i % 2 else "air"},
                'kind': 'clinical' if i % 3 == 0 else 'survey',
                'year': 2000 + i,
            },
        )
        for i in range(count)
    ]


def make_request(**overrides) -> SearchRequest:
    fields = dict(
        query="*",
        filters={},
        page=1,
        page_size=10,
        mode=BackendMode.CURSOR,
        hybrid_weight=0.5,
        max_distance=0.5,
        max_distance_strategy=MaxDistanceStrategy.BOTH,
    )
    fields.update(overrides)
    return SearchRequest(**fields)


@given(count=catalogue_sizes, page_size=page_sizes, fill=page_fills)
@settings(max_examples=50)
def test_cursor_protocol_walks_catalogue_once(count, page_size, fill):
    """
    Following next-page offsets until an empty page yields every item once.
    """
    backend = InMemorySearchBackend(make_items(count), max_page_fill=fill)

    async def walk():
        seen = []
        offset = None
        for page in range(1, count + 3):
            response = await backend.search(make_request(page=page, page_size=page_size, cursor_offset=offset))
            if not response.results:
                break
            seen.extend(item.id for item in response.results)
            offset = response.next_offset
        return seen

    seen = asyncio.run(walk())

    assert seen == [f"item-{i}" for i in range(count)]


@given(count=catalogue_sizes, page_size=page_sizes)
@settings(max_examples=50)
def test_legacy_protocol_excludes_seen_items(count, page_size):
    """
    Sending the accumulated seen-set never returns an item twice.
    """
    backend = InMemorySearchBackend(make_items(count))

    async def walk():
        seen = []
        for page in range(1, count + 3):
            response = await backend.search(make_request(
                mode=BackendMode.LEGACY, page=page, page_size=page_size, exclude_ids=list(seen) or None
            ))
            if not response.results:
                break
            seen = response.seen_ids_snapshot
        return seen

    seen = asyncio.run(walk())

    assert sorted(seen) == sorted(f"item-{i}" for i in range(count))
    assert len(seen) == len(set(seen))


def test_query_and_filter_matching():
    """Test text, categorical and numeric filter matching."""
    backend = InMemorySearchBackend(make_items(12))

    sleep = backend.matching_items(make_request(query="SLEEP"))
    clinical = backend.matching_items(make_request(filters={'kind': ['clinical']}))
    recent = backend.matching_items(make_request(filters={'year_min': ['2008'], 'year_max': ['2010']}))

    assert [item.id for item in sleep] == [f"item-{i}" for i in range(1, 12, 2)]
    assert [item.id for item in clinical] == ["item-0", "item-3", "item-6", "item-9"]
    assert [item.id for item in recent] == ["item-8", "item-9", "item-10"]


@pytest.mark.asyncio
async def test_lookup_and_phrases():
    """Test lookup and keyword phrases."""
    backend = InMemorySearchBackend(make_items(3), keyword_phrases=["sleep"])

    assert (await backend.lookup_by_id("item-1")).name == "Dataset 1"
    assert await backend.fetch_keyword_phrases() == ["sleep"]
    with pytest.raises(ItemLookupError):
        await backend.lookup_by_id("missing")
