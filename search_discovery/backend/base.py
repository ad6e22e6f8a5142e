"""Collaborator interfaces consumed by the engine."""

from abc import ABC, abstractmethod
from typing import List

from search_discovery.models import ResultItem, SearchRequest, SearchResponse


class SearchBackend(ABC):
    """Remote search service serving one page per call."""

    @abstractmethod
    async def search(self, request: SearchRequest) -> SearchResponse:
        """Fetch one page of results.

        Raises:
            Exception: Any transport or protocol failure
        """


class ItemLookup(ABC):
    """Resolves a single item by identifier."""

    @abstractmethod
    async def lookup_by_id(self, item_id: str) -> ResultItem:
        """Fetch the full item.

        Raises:
            ItemLookupError: If the item cannot be resolved
        """


class KeywordPhraseSource(ABC):
    """Provides the list of phrases that mark pure keyword queries."""

    @abstractmethod
    async def fetch_keyword_phrases(self) -> List[str]:
        """Fetch the phrase list.

        Raises:
            KeywordPhraseError: If the list cannot be fetched
        """
