"""
Request construction for the discovery search service.

Builds the GET URL or POST body for one page request, covering both
backend generations and the filter, distance and weighting parameters.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode, quote_plus

from search_discovery.models import (
    BackendMode,
    MaxDistanceStrategy,
    SearchRequest,
)


NUMERIC_FILTER_SUFFIXES = ('_min', '_max')


def combine_filters(
    filters: Mapping[str, List[str]],
    resource_type: Optional[str] = None
) -> Dict[str, List[str]]:
    """Merge the resource type into the filters and drop empty categories.

    Args:
        filters: Category name to selected values
        resource_type: Optional resource type restriction

    Returns:
        New filter dictionary safe to send to the backend
    """
    combined = {key: list(values) for key, values in filters.items()}
    if resource_type:
        combined['resource_type'] = [resource_type]
    return {key: values for key, values in combined.items() if values}


def adjusted_max_distance(base: float, page: int, decay: float = 0.1) -> float:
    """Shrink max-distance as pages advance.

    Vector distances are normalised within the remaining search window, so
    later pages use a tighter bound: base * (1 - (page - 1) * decay).

    Args:
        base: Max-distance chosen by the user
        page: Page number being requested
        decay: Fractional reduction per page

    Returns:
        Non-negative max-distance for the page
    """
    if page <= 1:
        return base
    return max(base * (1 - (page - 1) * decay), 0.0)


def direct_match_api_value(weight: float) -> float:
    """Map a 0-1 direct-match weight onto the backend's 0-10 scale.

    Piecewise linear: 0 -> 0, 0.5 -> 2, 1 -> 10.
    """
    if weight <= 0.5:
        return 4 * weight
    return 16 * weight - 6


def distance_params(
    max_distance: Optional[float],
    strategy: MaxDistanceStrategy
) -> Dict[str, float]:
    """Translate max-distance into backend parameters per strategy."""
    if max_distance is None:
        return {}
    params = {}
    if strategy in (MaxDistanceStrategy.MAX_DISTANCE, MaxDistanceStrategy.BOTH):
        params['max_vector_distance'] = max_distance
    if strategy in (MaxDistanceStrategy.MIN_SCORE, MaxDistanceStrategy.BOTH):
        params['min_original_vector_score'] = 1 - max_distance
    return params


@dataclass
class PreparedRequest:
    """HTTP method, URL and payload for one search call."""
    method: str
    url: str
    params: Optional[List[Tuple[str, str]]] = None
    json_body: Optional[Dict[str, Any]] = None


class DiscoveryRequestBuilder:
    """Constructs search requests for the discovery service.

    Legacy mode talks to /discover/search, cursor mode to /discover/search2.
    A request carrying an exclusion list is sent as POST with a JSON body,
    anything else as GET with URL-encoded parameters.
    """

    ENDPOINTS = {
        BackendMode.LEGACY: "discover/search",
        BackendMode.CURSOR: "discover/search2",
    }

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def endpoint_for(self, mode: BackendMode) -> str:
        return f"{self.base_url}/{self.ENDPOINTS[BackendMode(mode)]}"

    def build(self, request: SearchRequest) -> PreparedRequest:
        """Prepare the HTTP call for a search request.

        Args:
            request: Engine-level search request

        Returns:
            PreparedRequest with either GET params or a POST body
        """
        url = self.endpoint_for(request.mode)
        if request.exclude_ids:
            return PreparedRequest(method="POST", url=url, json_body=self.build_body(request))
        return PreparedRequest(method="GET", url=url, params=self.build_query_params(request))

    def build_search_url(self, request: SearchRequest) -> str:
        """Construct the full GET URL for a request without exclusions.

        Examples:
            >>> builder = DiscoveryRequestBuilder("https://api.example.org")
            >>> builder.build_search_url(SearchRequest(
            ...     query="sleep", filters={}, page=1, page_size=50,
            ...     mode=BackendMode.CURSOR, hybrid_weight=0.5, max_distance=0.4,
            ...     max_distance_strategy=MaxDistanceStrategy.MAX_DISTANCE))
            'https://api.example.org/discover/search2?alpha=0.5&query=sleep&num_results=50&offset=0&max_vector_distance=0.4'
        """
        params = self.build_query_params(request)
        encoded = urlencode(params, quote_via=quote_plus)
        return f"{self.endpoint_for(request.mode)}?{encoded}"

    def build_query_params(self, request: SearchRequest) -> List[Tuple[str, str]]:
        """URL parameters for a GET search, in a stable order."""
        params: List[Tuple[str, str]] = []

        if request.hybrid_weight is not None:
            params.append(('alpha', str(request.hybrid_weight)))

        params.append(('query', (request.query or "").strip()))
        params.append(('num_results', str(request.page_size)))
        params.append(('offset', str(request.cursor_offset if request.cursor_offset is not None else 0)))

        for key, values in request.filters.items():
            if key.endswith(NUMERIC_FILTER_SUFFIXES):
                params.append((key, str(values[0])))
            else:
                params.extend((key, str(value)) for value in values)

        for key, value in distance_params(request.max_distance, request.max_distance_strategy).items():
            params.append((key, str(value)))

        if request.direct_match_weight is not None:
            params.append(('direct_match_weight', str(direct_match_api_value(request.direct_match_weight))))

        return params

    def build_body(self, request: SearchRequest) -> Dict[str, Any]:
        """JSON body for a POST search carrying an exclusion list."""
        body: Dict[str, Any] = {
            'query': [(request.query or "").strip()],
            'num_results': request.page_size,
            'offset': request.cursor_offset if request.cursor_offset is not None else 0,
        }

        if request.hybrid_weight is not None:
            body['alpha'] = request.hybrid_weight

        if request.exclude_ids:
            body['top_level_ids_seen_so_far'] = list(request.exclude_ids)

        for key, values in request.filters.items():
            if key.endswith(NUMERIC_FILTER_SUFFIXES):
                body[key] = int(float(values[0]))
            else:
                body[key] = list(values)

        body.update(distance_params(request.max_distance, request.max_distance_strategy))

        if request.direct_match_weight is not None:
            body['direct_match_weight'] = direct_match_api_value(request.direct_match_weight)

        return body
