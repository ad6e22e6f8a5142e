"""Search backend collaborators: interfaces, HTTP client, in-memory backend."""

from .base import ItemLookup, KeywordPhraseSource, SearchBackend
from .http_backend import HttpDiscoveryClient, build_search_response
from .keyword_phrases import KeywordPhraseList
from .memory_backend import InMemorySearchBackend
from .request_builder import DiscoveryRequestBuilder, PreparedRequest

__all__ = [
    'ItemLookup',
    'KeywordPhraseSource',
    'SearchBackend',
    'HttpDiscoveryClient',
    'build_search_response',
    'KeywordPhraseList',
    'InMemorySearchBackend',
    'DiscoveryRequestBuilder',
    'PreparedRequest',
]
