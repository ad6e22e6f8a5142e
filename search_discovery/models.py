"""
Data models for the search discovery client.

This module defines the core data structures shared by the parameter store,
the pagination cursor, the fetch orchestrator and the session controller.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple, Union


WILDCARD_QUERY = "*"

# Opaque next-page cursor handed out by the backend in cursor mode
CursorOffset = Union[int, str]


class BackendMode(str, Enum):
    """Pagination protocol spoken by the search backend."""
    LEGACY = "legacy"
    CURSOR = "cursor"


class MaxDistanceStrategy(str, Enum):
    """How the max-distance value is sent to the backend."""
    MAX_DISTANCE = "max_distance"
    MIN_SCORE = "min_score"
    BOTH = "both"


def freeze_filters(filters: Optional[Dict[str, Any]]) -> Tuple[Tuple[str, FrozenSet[str]], ...]:
    """Convert a filter map into a hashable, order-independent form.

    Args:
        filters: Mapping of category name to an iterable of selected values

    Returns:
        Sorted tuple of (category, frozenset of values) pairs
    """
    if not filters:
        return ()
    frozen = []
    for key, values in filters.items():
        if isinstance(values, str):
            values = [values]
        frozen.append((key, frozenset(str(v) for v in values)))
    return tuple(sorted(frozen, key=lambda pair: pair[0]))


@dataclass(frozen=True)
class SearchParameters:
    """Settled search inputs for one search attempt.

    Two instances compare equal when every field has the same value, which
    is what the session controller uses to detect a parameter change.

    Attributes:
        query: Free-text query
        filters: Frozen filter map, see freeze_filters()
        mode: Backend pagination protocol
        hybrid_weight: Keyword/semantic balance between 0 and 1
        max_distance: Maximum vector distance between 0 and 1
        max_distance_strategy: How max_distance is sent to the backend
        direct_match_weight: Boost for direct matches between 0 and 1
        selected_category: Category tab selected in the UI (optional)
        resource_type: Resource type restriction (optional)
        anchor_id: Item whose neighbours are searched in similarity mode
    """
    query: str = ""
    filters: Tuple[Tuple[str, FrozenSet[str]], ...] = ()
    mode: BackendMode = BackendMode.CURSOR
    hybrid_weight: float = 0.5
    max_distance: float = 0.5
    max_distance_strategy: MaxDistanceStrategy = MaxDistanceStrategy.BOTH
    direct_match_weight: float = 0.5
    selected_category: Optional[str] = None
    resource_type: Optional[str] = None
    anchor_id: Optional[str] = None

    def __post_init__(self):
        # Accept plain strings for the enum fields
        object.__setattr__(self, 'mode', BackendMode(self.mode))
        object.__setattr__(self, 'max_distance_strategy', MaxDistanceStrategy(self.max_distance_strategy))

    @classmethod
    def create(cls, filters: Optional[Dict[str, Any]] = None, **kwargs) -> 'SearchParameters':
        """Build parameters from a plain filter dictionary."""
        return cls(filters=freeze_filters(filters), **kwargs)

    def filter_map(self) -> Dict[str, List[str]]:
        """Return the filters as a dictionary of sorted value lists."""
        return {key: sorted(values) for key, values in self.filters}

    def with_changes(self, **changes) -> 'SearchParameters':
        """Return a copy with the given fields replaced."""
        if 'filters' in changes and not isinstance(changes['filters'], tuple):
            changes['filters'] = freeze_filters(changes['filters'])
        return replace(self, **changes)


@dataclass
class ResultItem:
    """A single search hit.

    The payload is opaque to the engine; only the identifier and, for
    similarity searches, the descriptive text are ever read from it.

    Attributes:
        id: Unique top-level identifier
        score: Relevance score reported by the backend
        payload: Raw result document
    """
    id: str
    score: float = 0.0
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def description(self) -> Optional[str]:
        schema = self.payload.get('dataset_schema') or {}
        extra = self.payload.get('extra_data') or {}
        return schema.get('description') or extra.get('description') or None

    @property
    def name(self) -> Optional[str]:
        schema = self.payload.get('dataset_schema') or {}
        extra = self.payload.get('extra_data') or {}
        return schema.get('name') or extra.get('name') or None

    @staticmethod
    def extract_id(data: Dict[str, Any]) -> Optional[str]:
        """Extract the top-level identifier from a raw result document.

        Checks extra_data.uuid first, then dataset_schema.identifier[0],
        then a top-level id field.

        Args:
            data: Raw result document

        Returns:
            Identifier string, or None if the document carries none
        """
        extra = data.get('extra_data') or {}
        if extra.get('uuid'):
            return str(extra['uuid'])

        identifiers = (data.get('dataset_schema') or {}).get('identifier')
        if isinstance(identifiers, list) and identifiers:
            return str(identifiers[0])
        if isinstance(identifiers, str) and identifiers:
            return identifiers

        if data.get('id') is not None:
            return str(data['id'])
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional['ResultItem']:
        """Create a ResultItem from a raw result document.

        Returns:
            ResultItem instance, or None if no identifier can be extracted
        """
        item_id = cls.extract_id(data)
        if item_id is None:
            return None
        score = data.get('score')
        if score is None:
            score = data.get('cosine_similarity')
        return cls(id=item_id, score=float(score or 0.0), payload=data)


@dataclass
class SearchRequest:
    """Everything the backend needs to serve one page."""
    query: str
    filters: Dict[str, List[str]]
    page: int
    page_size: int
    mode: BackendMode
    hybrid_weight: float
    max_distance: float
    max_distance_strategy: MaxDistanceStrategy
    direct_match_weight: Optional[float] = None
    exclude_ids: Optional[List[str]] = None
    cursor_offset: Optional[CursorOffset] = None


@dataclass
class SearchResponse:
    """One page as returned by a SearchBackend.

    Attributes:
        results: Items in backend order
        num_hits_estimate: Declared total hit count (lower bound), if any
        is_lower_bound: Whether num_hits_estimate is only a lower bound
        seen_ids_snapshot: Backend's view of the accumulated seen-set, if any
        next_offset: Opaque cursor for the next page, if any
        aggregations: Facet aggregations, passed through untouched
    """
    results: List[ResultItem] = field(default_factory=list)
    num_hits_estimate: Optional[int] = None
    is_lower_bound: bool = False
    seen_ids_snapshot: Optional[List[str]] = None
    next_offset: Optional[CursorOffset] = None
    aggregations: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FetchAttempt:
    """Identity of one network call.

    Attributes:
        sequence: Monotonically increasing attempt number
        generation: Session generation the attempt was issued for
        params: Parameters the attempt was issued with
        page: Page number requested
    """
    sequence: int
    generation: int
    params: SearchParameters
    page: int


class FetchStatus(str, Enum):
    """How a fetch attempt ended."""
    MERGED = "merged"
    FAILED = "failed"
    STALE = "stale"


@dataclass
class FetchOutcome:
    """Result of FetchOrchestrator.fetch_page()."""
    attempt: FetchAttempt
    status: FetchStatus
    returned_count: int = 0
    has_more: bool = False
    auto_continue_scheduled: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class SearchSnapshot:
    """Read-only view of the session for rendering."""
    results: Tuple[ResultItem, ...]
    loading: bool
    loading_more: bool
    has_more: bool
    total_hits_estimate: int
    backend_offline: bool
    is_total_lower_bound: bool = False
    page: int = 1
