"""
In-process discovery backend.

Serves a fixed catalogue of items with the same pagination semantics as the
remote service: exclusion lists in legacy mode and integer offsets in cursor
mode. Used for the CLI demo mode and for exercising the engine without a
network.
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from search_discovery.backend.base import ItemLookup, KeywordPhraseSource, SearchBackend
from search_discovery.error_handling.error_handler import ItemLookupError
from search_discovery.models import (
    WILDCARD_QUERY,
    BackendMode,
    ResultItem,
    SearchRequest,
    SearchResponse,
)


logger = logging.getLogger(__name__)


def _field_values(payload: Dict[str, Any], key: str) -> List[str]:
    value = payload.get(key)
    if value is None:
        value = (payload.get('extra_data') or {}).get(key)
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(v) for v in value]
    return [str(value)]


class InMemorySearchBackend(SearchBackend, ItemLookup, KeywordPhraseSource):
    """Discovery backend over an in-memory catalogue.

    Attributes:
        items: Catalogue in ranking order
        keyword_phrases: Phrases served by fetch_keyword_phrases()
        max_page_fill: Cap on items returned per page, to mimic sparse pages
        latency_seconds: Artificial delay per search call
        request_log: Every SearchRequest received, in order
    """

    def __init__(
        self,
        items: Iterable[ResultItem],
        keyword_phrases: Optional[Iterable[str]] = None,
        max_page_fill: Optional[int] = None,
        latency_seconds: float = 0.0
    ):
        self.items: List[ResultItem] = list(items)
        self.keyword_phrases: List[str] = list(keyword_phrases or [])
        self.max_page_fill = max_page_fill
        self.latency_seconds = latency_seconds
        self.request_log: List[SearchRequest] = []

    def matching_items(self, request: SearchRequest) -> List[ResultItem]:
        """All catalogue items matching the query and filters, in order."""
        query = (request.query or "").strip().casefold()
        terms = [] if query in ("", WILDCARD_QUERY) else query.split()

        matches = []
        for item in self.items:
            text = f"{item.name or ''} {item.description or ''}".casefold()
            if any(term not in text for term in terms):
                continue
            if not self._matches_filters(item, request.filters):
                continue
            matches.append(item)
        return matches

    def _matches_filters(self, item: ResultItem, filters: Dict[str, List[str]]) -> bool:
        for key, selected in filters.items():
            if key.endswith('_min') or key.endswith('_max'):
                values = _field_values(item.payload, key[:-4])
                try:
                    bound = float(selected[0])
                    numbers = [float(v) for v in values]
                except ValueError:
                    return False
                if not numbers:
                    return False
                if key.endswith('_min') and max(numbers) < bound:
                    return False
                if key.endswith('_max') and min(numbers) > bound:
                    return False
                continue
            if not set(_field_values(item.payload, key)) & set(selected):
                return False
        return True

    async def search(self, request: SearchRequest) -> SearchResponse:
        self.request_log.append(request)
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        matches = self.matching_items(request)
        excluded = set(request.exclude_ids or [])
        limit = request.page_size
        if self.max_page_fill is not None:
            limit = min(limit, self.max_page_fill)

        if BackendMode(request.mode) is BackendMode.CURSOR:
            start = int(request.cursor_offset or 0)
            page: List[ResultItem] = []
            position = start
            while position < len(matches) and len(page) < limit:
                candidate = matches[position]
                position += 1
                if candidate.id not in excluded:
                    page.append(candidate)
            next_offset = position
        else:
            page = [item for item in matches if item.id not in excluded][:limit]
            next_offset = None

        seen = list(dict.fromkeys([*(request.exclude_ids or []), *(item.id for item in page)]))
        logger.debug(
            f"In-memory search page={request.page} mode={request.mode} "
            f"returned={len(page)} of {len(matches)}"
        )
        return SearchResponse(
            results=page,
            num_hits_estimate=len(matches),
            seen_ids_snapshot=seen,
            next_offset=next_offset,
        )

    async def lookup_by_id(self, item_id: str) -> ResultItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise ItemLookupError(f"Item {item_id} not found")

    async def fetch_keyword_phrases(self) -> List[str]:
        return list(self.keyword_phrases)
