"""
Property-based tests for the session controller.

These tests drive complete sessions against the in-memory backend and
verify reset on parameter change, seen-set growth in legacy mode,
auto-continuation, superseded-session handling and manual retry.
"""

import pytest
import asyncio

from hypothesis import given, settings, strategies as st

from search_discovery.backend import InMemorySearchBackend
from search_discovery.backend.base import SearchBackend
from search_discovery.config import DebounceConfig, EngineSettings, PaginationConfig
from search_discovery.models import BackendMode, ResultItem, SearchResponse
from search_discovery.session import SessionController


catalogue_sizes = st.integers(min_value=1, max_value=60)
page_sizes = st.integers(min_value=2, max_value=12)


def make_items(count):
    return [
        ResultItem(
            id=f"item-{i}",
            payload={
                'dataset_schema': {'name': f"Dataset {i}", 'description': f"Sleep recordings batch {i % 4}"},
                'kind': 'clinical' if i % 3 == 0 else 'survey',
            },
        )
        for i in range(count)
    ]


def make_settings(page_size=10, threshold=20):
    return EngineSettings(
        pagination=PaginationConfig(
            page_size=page_size,
            min_results_threshold=threshold,
            auto_continue_delay_ms=5,
        ),
        debounce=DebounceConfig(query_ms=10, hybrid_weight_ms=10, max_distance_ms=10),
    )


class GatedBackend(SearchBackend):
    """Each call waits until the test resolves its future."""

    def __init__(self):
        self.calls = []

    async def search(self, request):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((request, future))
        return await future


class FlakyBackend(InMemorySearchBackend):
    """Fails the first N searches, then behaves normally."""

    def __init__(self, items, failures=1):
        super().__init__(items)
        self.failures = failures

    async def search(self, request):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("connection refused")
        return await super().search(request)


@given(count=catalogue_sizes, page_size=page_sizes)
@settings(max_examples=25, deadline=None)
def test_legacy_exclusion_list_only_grows(count, page_size):
    """
    Each later legacy request excludes everything the previous one did, and
    the session ends once every item has been loaded.
    """
    backend = InMemorySearchBackend(make_items(count))

    async def scenario():
        controller = SessionController(backend, settings=make_settings(page_size=page_size, threshold=0))
        controller.search_now(query="dataset", mode=BackendMode.LEGACY)
        snapshot = await controller.wait_idle()
        while controller.load_more():
            snapshot = await controller.wait_idle()
        return snapshot

    snapshot = asyncio.run(scenario())

    previous = set()
    for request in backend.request_log[1:]:
        current = set(request.exclude_ids or [])
        assert previous <= current
        previous = current

    assert [item.id for item in snapshot.results] == [f"item-{i}" for i in range(count)]
    assert snapshot.has_more is False


@pytest.mark.asyncio
async def test_parameter_change_resets_session():
    """Test that new filters clear results and restart from page 1."""
    backend = InMemorySearchBackend(make_items(60))
    controller = SessionController(backend, settings=make_settings(page_size=10))

    controller.search_now(query="dataset")
    await controller.wait_idle()
    assert controller.load_more()
    snapshot = await controller.wait_idle()
    assert snapshot.page == 2
    assert len(snapshot.results) == 20

    controller.update_parameters(filters={'kind': ['clinical']})

    pending = controller.snapshot
    assert pending.results == ()
    assert pending.page == 1
    assert pending.loading is True
    assert controller.cursor.seen_top_level_ids == []

    snapshot = await controller.wait_idle()
    assert snapshot.page == 1
    assert [item.id for item in snapshot.results] == [f"item-{i}" for i in range(0, 30, 3)]
    assert controller.cursor.seen_top_level_ids == [item.id for item in snapshot.results]
    assert backend.request_log[-1].cursor_offset is None
    assert controller.last_settled_parameters == controller.current_parameters


@pytest.mark.asyncio
async def test_sparse_pages_auto_continue_until_threshold():
    """Test that sparse pages keep loading until 20 results are visible."""
    backend = InMemorySearchBackend(make_items(100), max_page_fill=5)
    controller = SessionController(backend, settings=make_settings(page_size=50, threshold=20))

    controller.search_now(query="dataset")
    snapshot = await controller.wait_idle()

    assert len(backend.request_log) == 4
    assert snapshot.page == 4
    assert len(snapshot.results) == 20
    assert snapshot.has_more is True
    assert [r.cursor_offset for r in backend.request_log] == [None, 5, 10, 15]


@pytest.mark.asyncio
async def test_debounced_query_edits_issue_one_search():
    """Test that a burst of edits produces a single request."""
    backend = InMemorySearchBackend(make_items(10))
    controller = SessionController(backend, settings=make_settings())

    for partial in ("d", "da", "dat", "dataset"):
        controller.update_parameters(query=partial)
    await controller.wait_idle()

    assert [r.query for r in backend.request_log] == ["dataset"]


@pytest.mark.asyncio
async def test_unchanged_parameters_do_not_restart_session():
    """Test that settling identical parameters keeps the current session."""
    backend = InMemorySearchBackend(make_items(10))
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="dataset")
    await controller.wait_idle()
    controller.update_parameters(query="dataset")
    await controller.wait_idle()

    assert len(backend.request_log) == 1


@pytest.mark.asyncio
async def test_superseded_session_response_is_discarded():
    """Test that only the newest session's response becomes visible."""
    backend = GatedBackend()
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="first")
    await asyncio.sleep(0.01)
    controller.search_now(query="second")
    await asyncio.sleep(0.01)

    (_, first_future), (second_request, second_future) = backend.calls
    assert second_request.query == "second"

    second_future.set_result(SearchResponse(results=[ResultItem(id=f"second-{i}") for i in range(10)]))
    await asyncio.sleep(0.01)
    first_future.set_result(SearchResponse(results=[ResultItem(id=f"first-{i}") for i in range(10)]))
    await asyncio.sleep(0.01)

    snapshot = controller.snapshot
    assert [item.id for item in snapshot.results] == [f"second-{i}" for i in range(10)]
    assert controller.cursor.seen_top_level_ids == []
    assert controller.last_settled_parameters.query == "second"
    await controller.close()


@pytest.mark.asyncio
async def test_same_tick_sessions_keep_only_the_newest():
    """Test that two changes issued back to back leave only the second visible."""
    backend = GatedBackend()
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="first")
    controller.search_now(query="second")
    await asyncio.sleep(0.01)

    (first_request, first_future), (second_request, second_future) = backend.calls
    assert [first_request.query, second_request.query] == ["first", "second"]

    second_future.set_result(SearchResponse(results=[ResultItem(id=f"second-{i}") for i in range(10)]))
    await asyncio.sleep(0.01)
    first_future.set_result(SearchResponse(
        results=[ResultItem(id=f"first-{i}") for i in range(3)],
        seen_ids_snapshot=[f"first-{i}" for i in range(3)],
    ))
    snapshot = await controller.wait_idle()

    assert [item.id for item in snapshot.results] == [f"second-{i}" for i in range(10)]
    assert not any(item_id.startswith("first") for item_id in controller.cursor.seen_top_level_ids)
    assert controller.current_parameters.query == "second"
    assert controller.last_settled_parameters.query == "second"


@pytest.mark.asyncio
async def test_page_advance_racing_a_reset_is_discarded():
    """Test that a load_more issued just before a parameter change never lands."""
    backend = GatedBackend()
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="old")
    await asyncio.sleep(0.01)
    backend.calls[0][1].set_result(SearchResponse(
        results=[ResultItem(id=f"old-{i}") for i in range(10)],
        next_offset=10,
    ))
    await asyncio.sleep(0.01)

    assert controller.load_more()
    controller.search_now(query="new")
    await asyncio.sleep(0.01)

    (_, _), (page_2_request, page_2_future), (new_request, new_future) = backend.calls
    assert (page_2_request.query, page_2_request.page) == ("old", 2)
    assert page_2_request.cursor_offset == 10
    assert (new_request.query, new_request.page) == ("new", 1)

    new_future.set_result(SearchResponse(results=[ResultItem(id=f"new-{i}") for i in range(10)]))
    await asyncio.sleep(0.01)
    page_2_future.set_result(SearchResponse(results=[ResultItem(id=f"oldpage2-{i}") for i in range(3)]))
    snapshot = await controller.wait_idle()

    assert [item.id for item in snapshot.results] == [f"new-{i}" for i in range(10)]
    assert snapshot.page == 1
    assert snapshot.loading_more is False
    await controller.close()


@pytest.mark.asyncio
async def test_load_more_refused_after_first_page_failure():
    """Test that a failed first page can only be followed by a retry."""
    backend = FlakyBackend(make_items(30), failures=1)
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="dataset")
    snapshot = await controller.wait_idle()
    assert snapshot.backend_offline is True
    assert snapshot.has_more is False

    assert controller.load_more() is False
    await controller.wait_idle()
    assert backend.request_log == []
    assert controller.snapshot.page == 1

    assert controller.retry()
    snapshot = await controller.wait_idle()
    assert [r.page for r in backend.request_log] == [1]
    assert snapshot.has_more is True
    assert controller.load_more()
    snapshot = await controller.wait_idle()
    assert [r.page for r in backend.request_log] == [1, 2]
    assert len(snapshot.results) == 20


@pytest.mark.asyncio
async def test_load_more_guards():
    """Test that load_more is a no-op without a session, in flight or at the end."""
    backend = GatedBackend()
    controller = SessionController(backend, settings=make_settings())

    assert controller.load_more() is False

    controller.search_now(query="dataset")
    await asyncio.sleep(0.01)
    assert controller.load_more() is False

    backend.calls[0][1].set_result(SearchResponse(results=[]))
    await asyncio.sleep(0.01)
    assert controller.snapshot.has_more is False
    assert controller.load_more() is False
    assert len(backend.calls) == 1
    await controller.close()


@pytest.mark.asyncio
async def test_failure_then_manual_retry():
    """Test offline reporting and recovery through retry."""
    backend = FlakyBackend(make_items(15), failures=1)
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="dataset")
    snapshot = await controller.wait_idle()
    assert snapshot.backend_offline is True
    assert snapshot.loading is False
    assert snapshot.results == ()

    assert controller.retry()
    snapshot = await controller.wait_idle()
    assert snapshot.backend_offline is False
    assert len(snapshot.results) == 10
    assert snapshot.total_hits_estimate == 15


@pytest.mark.asyncio
async def test_failed_later_page_can_be_requested_again():
    """Test that a failed page keeps the earlier results and page number."""
    backend = InMemorySearchBackend(make_items(30))
    controller = SessionController(backend, settings=make_settings())

    controller.search_now(query="dataset")
    await controller.wait_idle()

    original_search = backend.search

    async def failing_search(request):
        raise ConnectionError("connection reset")

    backend.search = failing_search
    assert controller.load_more()
    snapshot = await controller.wait_idle()
    assert snapshot.backend_offline is True
    assert snapshot.page == 1
    assert len(snapshot.results) == 10

    backend.search = original_search
    assert controller.load_more()
    snapshot = await controller.wait_idle()
    assert snapshot.page == 2
    assert snapshot.backend_offline is False
    assert len(snapshot.results) == 20
