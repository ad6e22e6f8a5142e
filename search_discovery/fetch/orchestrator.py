"""
Fetch orchestrator - issues one request per page, interprets the response
for the active backend protocol and merges it into the visible result list.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from search_discovery.backend.base import SearchBackend
from search_discovery.backend.request_builder import adjusted_max_distance, combine_filters
from search_discovery.error_handling.error_handler import ErrorHandler
from search_discovery.fetch.auto_continuation import AutoContinuation
from search_discovery.models import (
    BackendMode,
    FetchAttempt,
    FetchOutcome,
    FetchStatus,
    ResultItem,
    SearchParameters,
    SearchRequest,
    SearchResponse,
)
from search_discovery.pagination.cursor import PaginationCursor


logger = logging.getLogger(__name__)


@dataclass
class ResultView:
    """Visible result list and loading flags of the current session."""
    results: List[ResultItem] = field(default_factory=list)
    loading: bool = False
    loading_more: bool = False
    backend_offline: bool = False
    is_total_lower_bound: bool = False


class FetchOrchestrator:
    """Fetches pages and keeps the visible list and cursor consistent.

    The orchestrator never raises out of fetch_page(): transport failures
    and timeouts set the backend-offline flag, and responses that arrive
    after a newer session has begun are discarded without touching any
    state.

    Attributes:
        backend: Search backend collaborator
        view: Visible result list the orchestrator merges into
        page_size: Fixed number of results requested per page
        timeout_seconds: Bound on every search call
        min_results_threshold: Configured auto-continuation threshold
        max_distance_page_decay: Per-page reduction of max-distance
        auto_continuation: Scheduler for follow-up fetches on sparse pages
    """

    def __init__(
        self,
        backend: SearchBackend,
        view: Optional[ResultView] = None,
        page_size: int = 50,
        timeout_seconds: float = 60.0,
        min_results_threshold: int = 20,
        auto_continue_delay_ms: int = 100,
        max_distance_page_decay: float = 0.1,
        on_auto_continue: Optional[Callable[[], object]] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.backend = backend
        self.view = view if view is not None else ResultView()
        self.page_size = page_size
        self.timeout_seconds = timeout_seconds
        self.min_results_threshold = min_results_threshold
        self.max_distance_page_decay = max_distance_page_decay
        self.on_auto_continue = on_auto_continue
        self.error_handler = error_handler or ErrorHandler()
        self.auto_continuation = AutoContinuation(auto_continue_delay_ms)

        self._generation = 0
        self._sequence = itertools.count(1)

    @property
    def generation(self) -> int:
        """Current session generation."""
        return self._generation

    @property
    def effective_min_results(self) -> float:
        return min(self.min_results_threshold, self.page_size / 2)

    def begin_session(self) -> int:
        """Start a new session, superseding every attempt issued before.

        Returns:
            The new session generation
        """
        self._generation += 1
        self.auto_continuation.cancel()
        return self._generation

    def is_current(self, attempt: FetchAttempt) -> bool:
        return attempt.generation == self._generation

    def build_request(
        self,
        params: SearchParameters,
        page_number: int,
        cursor: PaginationCursor
    ) -> SearchRequest:
        """Build the backend request for a page.

        Page 1 in similarity mode excludes the anchor item. Later pages carry
        the accumulated seen-set in legacy mode or the next-page cursor in
        cursor mode, both read from the cursor at call time.

        Args:
            params: Settled search parameters
            page_number: Page to request
            cursor: Session pagination cursor

        Returns:
            SearchRequest ready for the backend
        """
        mode = BackendMode(params.mode)
        exclude_ids = None
        cursor_offset = None

        if page_number > 1:
            if mode is BackendMode.LEGACY:
                exclude_ids = cursor.seen_top_level_ids
            else:
                cursor_offset = cursor.next_offset
        elif params.anchor_id:
            exclude_ids = [params.anchor_id]

        return SearchRequest(
            query=params.query,
            filters=combine_filters(params.filter_map(), params.resource_type),
            page=page_number,
            page_size=self.page_size,
            mode=mode,
            hybrid_weight=params.hybrid_weight,
            max_distance=adjusted_max_distance(
                params.max_distance, page_number, self.max_distance_page_decay
            ),
            max_distance_strategy=params.max_distance_strategy,
            direct_match_weight=params.direct_match_weight,
            exclude_ids=exclude_ids,
            cursor_offset=cursor_offset,
        )

    def prepare(
        self,
        params: SearchParameters,
        page_number: int,
        cursor: PaginationCursor
    ) -> Tuple[FetchAttempt, SearchRequest]:
        """Issue an attempt for a page without awaiting anything.

        The attempt is bound to the current generation and the request reads
        the cursor now, so a session that begins before the call is sent
        still supersedes it.

        Args:
            params: Settled search parameters the page belongs to
            page_number: Page to fetch (1 replaces, >1 appends)
            cursor: Session pagination cursor

        Returns:
            The attempt and the request to hand to execute()
        """
        attempt = FetchAttempt(
            sequence=next(self._sequence),
            generation=self._generation,
            params=params,
            page=page_number,
        )
        request = self.build_request(params, page_number, cursor)

        if page_number == 1:
            self.view.loading = True
        else:
            self.view.loading_more = True
        self.view.backend_offline = False
        return attempt, request

    async def fetch_page(
        self,
        params: SearchParameters,
        page_number: int,
        cursor: PaginationCursor
    ) -> FetchOutcome:
        """Fetch one page and merge it into the visible list.

        Args:
            params: Settled search parameters the page belongs to
            page_number: Page to fetch (1 replaces, >1 appends)
            cursor: Session pagination cursor, updated in place

        Returns:
            FetchOutcome describing whether the page was merged, failed or
            discarded as stale
        """
        attempt, request = self.prepare(params, page_number, cursor)
        return await self.execute(attempt, request, cursor)

    async def execute(
        self,
        attempt: FetchAttempt,
        request: SearchRequest,
        cursor: PaginationCursor
    ) -> FetchOutcome:
        """Send a prepared request and merge the response if still current."""
        page_number = attempt.page
        logger.info(
            f"Fetching page {page_number} (attempt #{attempt.sequence}, mode={request.mode.value}, "
            f"query={attempt.params.query!r})"
        )
        logger.debug(
            f"Request detail: filters={request.filters} excluded={len(request.exclude_ids or [])} "
            f"offset={request.cursor_offset!r} alpha={request.hybrid_weight}"
        )

        try:
            response = await asyncio.wait_for(
                self.backend.search(request),
                timeout=self.timeout_seconds
            )
        except Exception as e:
            if not self.is_current(attempt):
                logger.debug(f"Ignoring failure of superseded attempt #{attempt.sequence}: {e}")
                return FetchOutcome(attempt=attempt, status=FetchStatus.STALE, error=str(e))

            self.error_handler.log_failure(
                'search',
                e,
                page=page_number,
                sequence=attempt.sequence,
                mode=request.mode.value,
            )
            if page_number == 1:
                # Nothing recorded yet, only a retry of page 1 may follow
                cursor.has_more = False
            self.view.backend_offline = True
            self.view.loading = False
            self.view.loading_more = False
            return FetchOutcome(attempt=attempt, status=FetchStatus.FAILED, error=str(e) or type(e).__name__)

        if not self.is_current(attempt):
            logger.debug(
                f"Discarding response of superseded attempt #{attempt.sequence} "
                f"({len(response.results)} result(s))"
            )
            return FetchOutcome(attempt=attempt, status=FetchStatus.STALE, returned_count=len(response.results))

        return self._merge(attempt, response, cursor)

    def _merge(
        self,
        attempt: FetchAttempt,
        response: SearchResponse,
        cursor: PaginationCursor
    ) -> FetchOutcome:
        new_results = list(response.results)
        returned_count = len(new_results)

        # Must land before any follow-up request reads the cursor
        cursor.record_page(response.seen_ids_snapshot or (), response.next_offset)

        if attempt.page == 1:
            self.view.results = new_results
        else:
            self.view.results.extend(new_results)
        running_total = len(self.view.results)

        declared_total = response.num_hits_estimate or 0
        has_more = self.compute_has_more(attempt.params.mode, returned_count, running_total, declared_total)
        cursor.has_more = has_more

        if attempt.page == 1:
            cursor.total_hits_estimate = max(declared_total, running_total)
        else:
            cursor.total_hits_estimate = max(cursor.total_hits_estimate, declared_total, running_total)

        self.view.is_total_lower_bound = response.is_lower_bound
        self.view.loading = False
        self.view.loading_more = False

        scheduled = False
        if self.should_auto_continue(returned_count, running_total, has_more):
            scheduled = self.auto_continuation.schedule(self._auto_continue_callback(attempt.generation))
            if scheduled:
                logger.info(
                    f"Auto-loading page {attempt.page + 1}: got {returned_count} result(s), "
                    f"{running_total} total, threshold {self.effective_min_results:g}"
                )

        logger.info(
            f"Page {attempt.page} merged: {returned_count} new, {running_total} visible, "
            f"has_more={has_more}, total_estimate={cursor.total_hits_estimate}"
        )
        return FetchOutcome(
            attempt=attempt,
            status=FetchStatus.MERGED,
            returned_count=returned_count,
            has_more=has_more,
            auto_continue_scheduled=scheduled,
        )

    def compute_has_more(
        self,
        mode: BackendMode,
        returned_count: int,
        running_total: int,
        declared_total: int
    ) -> bool:
        """Decide whether another page may be requested.

        Cursor mode stops only on an empty page. Legacy mode continues while
        pages come back full and the running total is below the declared one.
        """
        if BackendMode(mode) is BackendMode.CURSOR:
            return returned_count > 0
        return returned_count == self.page_size and running_total < declared_total

    def should_auto_continue(self, returned_count: int, running_total: int, has_more: bool) -> bool:
        """Whether a sparse page warrants an automatic follow-up."""
        return (
            has_more
            and returned_count < self.page_size
            and running_total < self.effective_min_results
        )

    def _auto_continue_callback(self, generation: int) -> Callable[[], None]:
        def fire() -> None:
            if generation != self._generation:
                logger.debug("Skipping auto-continuation for a superseded session")
                return
            if self.on_auto_continue is not None:
                self.on_auto_continue()
        return fire
