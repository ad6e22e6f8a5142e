"""
Parameter store for the search discovery client.

Holds the live and debounced value of every tunable search input. Live
values change synchronously for immediate UI feedback; debounced values
settle only after an input has been stable for its debounce interval and
are what the session controller acts on.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from search_discovery.models import SearchParameters, freeze_filters
from search_discovery.parameters.hybrid_weight import derive_hybrid_weight


logger = logging.getLogger(__name__)


class Debouncer:
    """Trailing-edge debounce of a single value.

    Every push restarts the timer; the callback receives the last pushed
    value once no push has happened for delay_seconds.

    Attributes:
        delay_seconds: Quiet period before the value settles
    """

    def __init__(self, delay_seconds: float, on_settle: Callable[[Any], None]):
        self.delay_seconds = delay_seconds
        self._on_settle = on_settle
        self._handle: Optional[asyncio.TimerHandle] = None
        self._value: Any = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def push(self, value: Any) -> None:
        """Record a new raw value and restart the timer.

        Must be called from within a running event loop.
        """
        self.cancel()
        self._value = value
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(max(self.delay_seconds, 0), self._fire)

    def flush(self) -> None:
        """Settle the pending value now instead of waiting for the timer."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def cancel(self) -> None:
        """Drop the pending value without settling it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._on_settle(self._value)


class ParameterStore:
    """Live and debounced search inputs.

    Query text, hybrid weight and max-distance are debounced; every other
    field settles immediately. Subscribers are notified with the debounced
    SearchParameters each time any debounced value settles. The store never
    triggers fetches itself.
    """

    DEBOUNCED_FIELDS = ('query', 'hybrid_weight', 'max_distance')

    def __init__(
        self,
        initial: Optional[SearchParameters] = None,
        query_debounce_ms: int = 500,
        hybrid_weight_debounce_ms: int = 300,
        max_distance_debounce_ms: int = 300,
        keyword_phrases: Optional[Iterable[str]] = None
    ):
        """Initialize the store.

        Args:
            initial: Starting parameters for both live and debounced copies
            query_debounce_ms: Debounce interval for the query text
            hybrid_weight_debounce_ms: Debounce interval for the hybrid weight
            max_distance_debounce_ms: Debounce interval for max-distance
            keyword_phrases: Phrases used to derive the hybrid weight
        """
        initial = initial or SearchParameters()
        self._live = initial
        self._debounced = initial
        self._keyword_phrases: List[str] = list(keyword_phrases or [])
        self._subscribers: List[Callable[[SearchParameters], None]] = []

        self._debouncers: Dict[str, Debouncer] = {
            'query': Debouncer(query_debounce_ms / 1000, self._settle_query),
            'hybrid_weight': Debouncer(
                hybrid_weight_debounce_ms / 1000,
                lambda value: self._settle('hybrid_weight', value)
            ),
            'max_distance': Debouncer(
                max_distance_debounce_ms / 1000,
                lambda value: self._settle('max_distance', value)
            ),
        }

    @property
    def live(self) -> SearchParameters:
        return self._live

    @property
    def debounced(self) -> SearchParameters:
        return self._debounced

    @property
    def has_pending(self) -> bool:
        """Whether any debounced input is still waiting to settle."""
        return any(d.pending for d in self._debouncers.values())

    @property
    def keyword_phrases(self) -> List[str]:
        return list(self._keyword_phrases)

    def set_keyword_phrases(self, phrases: Iterable[str]) -> None:
        self._keyword_phrases = list(phrases)
        logger.debug(f"Keyword phrase list updated ({len(self._keyword_phrases)} phrases)")

    def subscribe(self, callback: Callable[[SearchParameters], None]) -> None:
        """Register a callback invoked with the debounced parameters on settle."""
        self._subscribers.append(callback)

    def set_query(self, query: str, immediate: bool = False) -> None:
        """Change the query text.

        The live hybrid weight follows the derived value right away; the
        debounced weight is overwritten together with the debounced query
        when it settles, so the pair never settles apart and the weight's
        own debounce is never waited on.

        Args:
            query: New raw query text
            immediate: Settle without waiting for the debounce interval
        """
        derived = derive_hybrid_weight(query, self._keyword_phrases)
        self._live = self._live.with_changes(query=query, hybrid_weight=derived)

        debouncer = self._debouncers['query']
        debouncer.push(query)
        if immediate:
            debouncer.flush()

    def update(self, **changes) -> None:
        """Apply a partial update of search inputs.

        Args:
            **changes: Any SearchParameters field; 'filters' may be a plain dict
        """
        if not changes:
            return

        if 'filters' in changes:
            changes['filters'] = freeze_filters(changes['filters'])

        query = changes.pop('query', None)
        immediate_changes = {}

        for name, value in changes.items():
            if name in self.DEBOUNCED_FIELDS:
                self._live = self._live.with_changes(**{name: value})
                self._debouncers[name].push(value)
            else:
                immediate_changes[name] = value

        if immediate_changes:
            self._live = self._live.with_changes(**immediate_changes)
            self._debounced = self._debounced.with_changes(**immediate_changes)

        if query is not None:
            self.set_query(query)

        if immediate_changes:
            self._notify()

    def set_now(self, **changes) -> None:
        """Apply changes to live and debounced values at once, notifying once.

        Pending debounced values of the changed fields are dropped. A query
        change derives the hybrid weight unless one is given explicitly.
        """
        if not changes:
            return

        if 'filters' in changes:
            changes['filters'] = freeze_filters(changes['filters'])
        if 'query' in changes:
            changes.setdefault('hybrid_weight', derive_hybrid_weight(changes['query'], self._keyword_phrases))
            self._debouncers['hybrid_weight'].cancel()

        for name in changes:
            if name in self._debouncers:
                self._debouncers[name].cancel()

        self._live = self._live.with_changes(**changes)
        self._debounced = self._debounced.with_changes(**changes)
        self._notify()

    def flush(self) -> None:
        """Settle every pending debounced input now."""
        for debouncer in self._debouncers.values():
            debouncer.flush()

    def cancel_pending(self) -> None:
        """Drop all pending debounced inputs."""
        for debouncer in self._debouncers.values():
            debouncer.cancel()

    def _settle(self, name: str, value: Any) -> None:
        self._debounced = self._debounced.with_changes(**{name: value})
        self._notify()

    def _settle_query(self, query: str) -> None:
        # The derived weight overrides the weight's own debounce
        derived = derive_hybrid_weight(query, self._keyword_phrases)
        self._debouncers['hybrid_weight'].cancel()
        self._live = self._live.with_changes(hybrid_weight=derived)
        self._debounced = self._debounced.with_changes(query=query, hybrid_weight=derived)
        self._notify()

    def _notify(self) -> None:
        params = self._debounced
        for callback in list(self._subscribers):
            callback(params)
