"""
"Find similar" flow: seeds a new session with an item's descriptive text
and excludes the item itself from the first page.
"""

import logging
from typing import Optional, Union

from search_discovery.backend.base import ItemLookup
from search_discovery.models import ResultItem
from search_discovery.session.session_controller import SessionController


logger = logging.getLogger(__name__)


class SimilarSearchFlow:
    """Starts similarity sessions on a SessionController.

    Attributes:
        controller: Session controller to drive
        lookup: Used when the anchor's description is not already at hand
    """

    def __init__(self, controller: SessionController, lookup: Optional[ItemLookup] = None):
        self.controller = controller
        self.lookup = lookup

    async def find_similar(self, anchor: Union[ResultItem, str]) -> bool:
        """Search for items similar to the anchor.

        The anchor's description becomes the new query; without one the
        item is looked up, and as a last resort its name is used. A failed
        lookup leaves the session untouched.

        Args:
            anchor: Result item, or bare identifier of the item

        Returns:
            True if a similarity session was started
        """
        if isinstance(anchor, ResultItem):
            anchor_id = anchor.id
            text = anchor.description
            name = anchor.name
        else:
            anchor_id = anchor
            text = None
            name = None

        if not text and self.lookup is not None:
            try:
                found = await self.lookup.lookup_by_id(anchor_id)
            except Exception as e:
                logger.error(f"Could not look up item {anchor_id} for similarity search: {e}")
                return False
            text = found.description
            name = name or found.name

        if not text and name:
            logger.warning(f"Item {anchor_id} has no description, using its name")
            text = name

        if not text:
            logger.error(f"Item {anchor_id} has no text to search with")
            return False

        self.controller.search_similar(text, anchor_id)
        return True
