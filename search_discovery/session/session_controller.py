"""
Session controller for the search discovery client.

This module wires the parameter store, pagination cursor and fetch
orchestrator together. It reacts to settled parameter changes by starting
a fresh session, and to load-more requests (user driven or automatic) by
advancing the cursor and fetching the next page.
"""

import asyncio
import logging
from typing import Optional, Set

from search_discovery.backend.base import SearchBackend
from search_discovery.backend.keyword_phrases import KeywordPhraseList
from search_discovery.config.engine_config import EngineSettings
from search_discovery.error_handling.error_handler import ErrorHandler
from search_discovery.fetch.orchestrator import FetchOrchestrator, ResultView
from search_discovery.models import (
    FetchAttempt,
    FetchOutcome,
    FetchStatus,
    SearchParameters,
    SearchRequest,
    SearchSnapshot,
)
from search_discovery.pagination.cursor import PaginationCursor
from search_discovery.parameters.parameter_store import ParameterStore


logger = logging.getLogger(__name__)


class SessionController:
    """Drives pagination sessions for one search surface.

    A session begins whenever the settled parameters differ from those of
    the most recently started session. Beginning a session resets the
    cursor, clears the visible results and supersedes every fetch that is
    still in flight.

    Attributes:
        settings: Engine settings
        store: Parameter store whose settled values drive the sessions
        cursor: Pagination cursor of the current session
        view: Visible result list and loading flags
        orchestrator: Page fetcher
    """

    def __init__(
        self,
        backend: SearchBackend,
        store: Optional[ParameterStore] = None,
        settings: Optional[EngineSettings] = None,
        error_handler: Optional[ErrorHandler] = None
    ):
        """Initialize the controller.

        Args:
            backend: Search backend the orchestrator fetches from
            store: Parameter store, created from the debounce settings if omitted
            settings: Engine settings, defaults if omitted
            error_handler: Failure logging and retry policy
        """
        self.settings = settings or EngineSettings()
        self.error_handler = error_handler or ErrorHandler(self.settings.retry)

        debounce = self.settings.debounce
        self.store = store or ParameterStore(
            query_debounce_ms=debounce.query_ms,
            hybrid_weight_debounce_ms=debounce.hybrid_weight_ms,
            max_distance_debounce_ms=debounce.max_distance_ms,
        )

        pagination = self.settings.pagination
        self.cursor = PaginationCursor()
        self.view = ResultView()
        self.orchestrator = FetchOrchestrator(
            backend,
            self.view,
            page_size=pagination.page_size,
            timeout_seconds=self.settings.backend.request_timeout_seconds,
            min_results_threshold=pagination.min_results_threshold,
            auto_continue_delay_ms=pagination.auto_continue_delay_ms,
            max_distance_page_decay=pagination.max_distance_page_decay,
            on_auto_continue=self.load_more,
            error_handler=self.error_handler,
        )

        self._issued_params: Optional[SearchParameters] = None
        self._last_settled_params: Optional[SearchParameters] = None
        self._tasks: Set[asyncio.Task] = set()

        self.store.subscribe(self._on_parameters_settled)

    @property
    def current_parameters(self) -> Optional[SearchParameters]:
        """Parameters of the session most recently started."""
        return self._issued_params

    @property
    def last_settled_parameters(self) -> Optional[SearchParameters]:
        """Parameters whose first page has finished, successfully or not."""
        return self._last_settled_params

    @property
    def snapshot(self) -> SearchSnapshot:
        return SearchSnapshot(
            results=tuple(self.view.results),
            loading=self.view.loading,
            loading_more=self.view.loading_more,
            has_more=self.cursor.has_more,
            total_hits_estimate=self.cursor.total_hits_estimate,
            backend_offline=self.view.backend_offline,
            is_total_lower_bound=self.view.is_total_lower_bound,
            page=self.cursor.page,
        )

    @property
    def is_busy(self) -> bool:
        return self.view.loading or self.view.loading_more

    async def load_keyword_phrases(self, phrase_list: KeywordPhraseList) -> None:
        """Load keyword phrases and hand them to the parameter store."""
        phrases = await phrase_list.load()
        self.store.set_keyword_phrases(phrases)

    def update_parameters(self, **changes) -> None:
        """Apply a partial parameter update through the store.

        Args:
            **changes: Any SearchParameters field
        """
        self.store.update(**changes)

    def search_now(self, **changes) -> None:
        """Apply parameter changes without waiting for the debounce."""
        self.store.set_now(**changes)

    def search_similar(self, query: str, anchor_id: str) -> None:
        """Start a similarity session seeded with the anchor's text."""
        logger.info(f"Searching for items similar to {anchor_id}")
        self.store.set_now(query=query, anchor_id=anchor_id)

    def load_more(self) -> bool:
        """Request the next page of the current session.

        Does nothing while a fetch is in flight, when the cursor reports no
        more pages, or before the first session starts. A failed first page
        clears has_more, so only retry() can follow it.

        Returns:
            True if a page fetch was started
        """
        if self._issued_params is None:
            logger.debug("load_more ignored: no active session")
            return False
        if self.is_busy:
            logger.debug("load_more ignored: fetch already in flight")
            return False
        if not self.cursor.has_more:
            logger.debug("load_more ignored: no more pages")
            return False

        page = self.cursor.advance()
        attempt, request = self.orchestrator.prepare(self._issued_params, page, self.cursor)
        self._spawn(self._run_page_advance(attempt, request))
        return True

    def retry(self) -> bool:
        """Re-issue the first page of the current parameters.

        The visible results are left in place until the new page arrives.

        Returns:
            True if a fetch was started
        """
        params = self._issued_params or self.store.debounced
        logger.info("Retrying search")
        self._begin_session(params, clear_results=False)
        return True

    async def wait_idle(self, poll_interval: float = 0.01) -> SearchSnapshot:
        """Wait until no input is pending and no fetch is running or scheduled.

        Returns:
            Snapshot of the settled session
        """
        while True:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
                continue
            if self.store.has_pending or self.orchestrator.auto_continuation.pending:
                await asyncio.sleep(poll_interval)
                continue
            return self.snapshot

    async def close(self) -> None:
        """Cancel pending inputs, scheduled follow-ups and running fetches."""
        self.store.cancel_pending()
        self.orchestrator.auto_continuation.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_parameters_settled(self, params: SearchParameters) -> None:
        if params == self._issued_params:
            logger.debug("Settled parameters unchanged, keeping current session")
            return
        self._begin_session(params, clear_results=True)

    def _begin_session(self, params: SearchParameters, clear_results: bool) -> None:
        self._issued_params = params
        generation = self.orchestrator.begin_session()
        self.cursor.reset()
        if clear_results:
            self.view.results = []
        self.view.loading = True
        self.view.loading_more = False

        logger.info(
            f"Starting search session #{generation}: query={params.query!r} "
            f"mode={params.mode.value} filters={params.filter_map()}"
        )
        attempt, request = self.orchestrator.prepare(params, 1, self.cursor)
        self._spawn(self._run_parameter_transition(attempt, request))

    async def _run_parameter_transition(self, attempt: FetchAttempt, request: SearchRequest) -> FetchOutcome:
        try:
            return await self.orchestrator.execute(attempt, request, self.cursor)
        finally:
            if self.orchestrator.is_current(attempt):
                self._last_settled_params = attempt.params

    async def _run_page_advance(self, attempt: FetchAttempt, request: SearchRequest) -> FetchOutcome:
        page = attempt.page
        outcome = await self.orchestrator.execute(attempt, request, self.cursor)
        if outcome.status is FetchStatus.FAILED and self.cursor.page == page:
            # Let the next load_more request the same page again
            self.cursor.page = page - 1
        return outcome

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Fetch task failed unexpectedly: {error}", exc_info=error)
