"""
Keyword phrase list used for hybrid weight derivation.

Fetched once per instance; any failure leaves the list empty so that
derivation falls back to the balanced weight.
"""

import asyncio
import logging
from typing import List, Optional

from search_discovery.backend.base import KeywordPhraseSource
from search_discovery.error_handling.error_handler import ErrorHandler


logger = logging.getLogger(__name__)


class KeywordPhraseList:
    """Memoised keyword phrase list.

    Attributes:
        source: Collaborator that fetches the phrases
        error_handler: Retry policy for the fetch
    """

    def __init__(
        self,
        source: KeywordPhraseSource,
        error_handler: Optional[ErrorHandler] = None
    ):
        self.source = source
        self.error_handler = error_handler or ErrorHandler()
        self._phrases: List[str] = []
        self._load_task: Optional[asyncio.Task] = None

    @property
    def loaded(self) -> bool:
        return self._load_task is not None and self._load_task.done()

    @property
    def phrases(self) -> List[str]:
        return list(self._phrases)

    async def load(self) -> List[str]:
        """Fetch the phrases on first call; later calls reuse the result.

        Returns:
            Phrase list, empty if the fetch failed
        """
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._fetch())
        return await asyncio.shield(self._load_task)

    async def _fetch(self) -> List[str]:
        try:
            self._phrases = await self.error_handler.retry_with_backoff(
                self.source.fetch_keyword_phrases
            )
            logger.info(f"Loaded {len(self._phrases)} keyword phrase(s)")
        except Exception as e:
            logger.error(f"Keyword phrases unavailable, hybrid weight derivation disabled: {e}")
            self._phrases = []
        return list(self._phrases)
