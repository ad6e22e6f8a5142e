"""
Discovery service HTTP client - talks to the remote search, lookup and
keyword phrase endpoints over aiohttp.
"""

import logging
import re
from typing import Any, Dict, List, Optional

import aiohttp

from search_discovery.backend.base import ItemLookup, KeywordPhraseSource, SearchBackend
from search_discovery.backend.request_builder import DiscoveryRequestBuilder
from search_discovery.backend.schemas import LookupResponsePayload, SearchResponsePayload
from search_discovery.error_handling.error_handler import (
    ItemLookupError,
    KeywordPhraseError,
    SearchBackendError,
)
from search_discovery.models import ResultItem, SearchRequest, SearchResponse


logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$',
    re.IGNORECASE
)
HASH_ID_PATTERN = re.compile(r'^[0-9a-f]{32}$', re.IGNORECASE)


def is_uuid_like(identifier: str) -> bool:
    """Whether an identifier is a UUID or a 32-character hex hash."""
    return bool(UUID_PATTERN.match(identifier) or HASH_ID_PATTERN.match(identifier))


def build_search_response(
    payload: SearchResponsePayload,
    sent_exclude_ids: Optional[List[str]] = None
) -> SearchResponse:
    """Convert a wire payload into an engine SearchResponse.

    When the server does not report top_level_ids_seen_so_far, the snapshot
    is computed as the IDs sent for exclusion followed by the IDs of the
    returned items. Returned items that were already excluded are reported
    as backend-side duplicates but kept.

    Args:
        payload: Parsed response body
        sent_exclude_ids: Exclusion list that was sent with the request

    Returns:
        SearchResponse with ResultItems in backend order
    """
    results: List[ResultItem] = []
    for raw in payload.results:
        item = ResultItem.from_dict(raw)
        if item is None:
            logger.warning("Dropping search result without an identifier")
            continue
        results.append(item)

    seen: Dict[str, None] = dict.fromkeys(sent_exclude_ids or [])
    duplicates = [item.id for item in results if item.id in seen]
    if duplicates:
        logger.warning(
            f"Backend returned {len(duplicates)} already-excluded result(s): "
            f"{', '.join(duplicates[:5])}{'...' if len(duplicates) > 5 else ''}"
        )
    for item in results:
        seen.setdefault(item.id, None)

    snapshot = payload.top_level_ids_seen_so_far
    if snapshot is None:
        snapshot = list(seen)

    return SearchResponse(
        results=results,
        num_hits_estimate=payload.num_hits,
        is_lower_bound=payload.is_result_count_lower_bound,
        seen_ids_snapshot=snapshot,
        next_offset=payload.next_page_offset,
        aggregations=payload.aggregations,
    )


class HttpDiscoveryClient(SearchBackend, ItemLookup, KeywordPhraseSource):
    """
    Discovery service client over aiohttp.

    The underlying ClientSession is created lazily and reused across calls;
    call close() (or use the client as an async context manager) when done.
    """

    def __init__(self, base_url: str, session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip('/')
        self.request_builder = DiscoveryRequestBuilder(self.base_url)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self):
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the session if this client created it"""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def _ensure_session(self):
        """Ensure we have an open session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def search(self, request: SearchRequest) -> SearchResponse:
        """
        Fetch one page from the search endpoint.

        Args:
            request: Engine-level search request

        Returns:
            SearchResponse for the page

        Raises:
            SearchBackendError: On a non-success HTTP status
            aiohttp.ClientError: On transport failure
        """
        if not (request.query or "").strip() and not request.filters:
            logger.debug("Empty query with no filters, skipping search call")
            return SearchResponse(num_hits_estimate=0)

        await self._ensure_session()
        prepared = self.request_builder.build(request)

        logger.debug(
            f"Search {prepared.method} {prepared.url} page={request.page} "
            f"excluded={len(request.exclude_ids or [])} offset={request.cursor_offset!r}"
        )

        async with self._session.request(
            prepared.method,
            prepared.url,
            params=prepared.params,
            json=prepared.json_body,
        ) as response:
            if response.status != 200:
                error_text = await response.text()
                raise SearchBackendError(response.status, error_text[:200])
            data = await response.json()

        payload = SearchResponsePayload.model_validate(data)
        result = build_search_response(payload, request.exclude_ids)

        logger.info(
            f"Search page {request.page} returned {len(result.results)} result(s), "
            f"num_hits={result.num_hits_estimate}"
        )
        return result

    async def lookup_by_id(self, item_id: str) -> ResultItem:
        """
        Look up an item by UUID or slug.

        UUID-like identifiers are looked up by uuid first and, on a 404,
        retried once as a slug.

        Raises:
            ItemLookupError: If the item cannot be found
        """
        await self._ensure_session()
        url = f"{self.base_url}/discover/lookup"

        if is_uuid_like(item_id):
            data = await self._lookup(url, {'uuid': item_id})
            if data is None:
                logger.info(f"UUID lookup failed for {item_id}, trying as slug...")
                data = await self._lookup(url, {'slug': item_id})
        else:
            data = await self._lookup(url, {'slug': item_id})

        if data is None:
            raise ItemLookupError(f"Item {item_id} not found")

        payload = LookupResponsePayload.model_validate(data)
        for raw in payload.results:
            item = ResultItem.from_dict(raw)
            if item is not None:
                return item
        raise ItemLookupError(f"Lookup for {item_id} returned no usable result")

    async def _lookup(self, url: str, params: Dict[str, str]) -> Optional[Any]:
        async with self._session.get(url, params=params) as response:
            if response.status == 404:
                return None
            if response.status != 200:
                raise ItemLookupError(f"Failed to fetch item: {response.status} {response.reason}")
            return await response.json()

    async def fetch_keyword_phrases(self) -> List[str]:
        """
        Fetch the keyword phrase list.

        Raises:
            KeywordPhraseError: On a non-success status or malformed body
        """
        await self._ensure_session()
        url = f"{self.base_url}/info/get-keyword-search-terms"

        async with self._session.get(url) as response:
            if response.status != 200:
                raise KeywordPhraseError(f"Failed to fetch keyword phrases: {response.status}")
            data = await response.json()

        if not isinstance(data, list):
            raise KeywordPhraseError("Keyword phrase response is not a list")
        return [str(phrase) for phrase in data if phrase]
