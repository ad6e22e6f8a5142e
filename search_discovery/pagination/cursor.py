"""
Pagination cursor for a single search session.

The cursor is a plain mutable object owned by the session controller. The
fetch orchestrator writes to it synchronously inside the response handler,
so the next request always reads the value recorded by the one before it.
"""

from typing import Dict, Iterable, List, Optional

from search_discovery.models import CursorOffset


class PaginationCursor:
    """Accumulated pagination state of one session.

    Attributes:
        page: Current page number, starting at 1
        next_offset: Opaque backend cursor for the next page (cursor mode)
        has_more: Whether another page may be requested
        total_hits_estimate: Lower bound on the total number of hits
    """

    def __init__(self):
        self.page: int = 1
        self.next_offset: Optional[CursorOffset] = None
        self.has_more: bool = True
        self.total_hits_estimate: int = 0
        # Insertion-ordered set
        self._seen: Dict[str, None] = {}

    @property
    def seen_top_level_ids(self) -> List[str]:
        """Seen top-level IDs in first-seen order."""
        return list(self._seen)

    def has_seen(self, item_id: str) -> bool:
        return item_id in self._seen

    def reset(self) -> None:
        """Start a new session."""
        self.page = 1
        self._seen = {}
        self.next_offset = None
        self.has_more = True
        self.total_hits_estimate = 0

    def record_page(
        self,
        ids: Iterable[str],
        offset: Optional[CursorOffset] = None
    ) -> None:
        """Merge a page's seen-IDs and next offset into the cursor.

        Args:
            ids: Top-level IDs to add to the seen-set (duplicates are ignored)
            offset: New next-page cursor; None keeps the previous value
        """
        for item_id in ids:
            self._seen.setdefault(item_id, None)
        if offset is not None:
            self.next_offset = offset

    def advance(self) -> int:
        """Move to the next page and return its number."""
        self.page += 1
        return self.page

    def __repr__(self) -> str:
        return (
            f"PaginationCursor(page={self.page}, seen={len(self._seen)}, "
            f"next_offset={self.next_offset!r}, has_more={self.has_more})"
        )
