"""
Error handling module for the search discovery client.

Provides the exception taxonomy, retry logic and failure classification.
"""

from .error_handler import (
    DiscoveryError,
    ErrorHandler,
    ItemLookupError,
    KeywordPhraseError,
    RetryConfig,
    SearchBackendError,
)

__all__ = [
    'DiscoveryError',
    'ErrorHandler',
    'ItemLookupError',
    'KeywordPhraseError',
    'RetryConfig',
    'SearchBackendError',
]
