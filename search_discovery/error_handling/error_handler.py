"""
Error handler with retry logic for the search discovery client.

Implements exponential backoff for startup fetches and classification of
search failures for diagnostics.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional
from datetime import datetime

import aiohttp


logger = logging.getLogger(__name__)


class DiscoveryError(Exception):
    """Base class for errors raised by the discovery client."""


class SearchBackendError(DiscoveryError):
    """The search endpoint answered with a non-success status."""

    def __init__(self, status: int, message: str = ""):
        self.status = status
        super().__init__(f"Search API error: {status} {message}".strip())


class ItemLookupError(DiscoveryError):
    """An item could not be looked up by identifier."""


class KeywordPhraseError(DiscoveryError):
    """The keyword phrase list could not be fetched."""


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior with exponential backoff.

    Attributes:
        max_retries: Maximum number of attempts
        base_delay_seconds: Delay before the first retry
    """
    max_retries: int = 2
    base_delay_seconds: float = 2.0

    def get_backoff_delay(self, attempt: int) -> float:
        """
        Calculate backoff delay before retry attempt.

        Uses exponential backoff: delay = base_delay_seconds * (2 ^ attempt)

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Delay in seconds before the retry attempt
        """
        return self.base_delay_seconds * (2 ** attempt)


class ErrorHandler:
    """
    Error handler with retry logic and diagnostic capabilities.

    Search requests are never retried automatically; retry_with_backoff is
    meant for one-off startup fetches such as the keyword phrase list.

    Attributes:
        config: Retry configuration
    """

    def __init__(self, config: Optional[RetryConfig] = None):
        self.config = config or RetryConfig()

    async def retry_with_backoff(
        self,
        operation: Callable,
        *args,
        **kwargs
    ) -> Any:
        """
        Execute operation with exponential backoff retry logic.

        Args:
            operation: Async callable to execute
            *args: Positional arguments for the operation
            **kwargs: Keyword arguments for the operation

        Returns:
            Result from successful operation execution

        Raises:
            Exception: The last exception encountered if all retries are exhausted
        """
        last_exception = None
        name = getattr(operation, '__name__', repr(operation))

        for attempt in range(self.config.max_retries):
            try:
                logger.debug(f"Attempt {attempt + 1}/{self.config.max_retries} for operation {name}")
                return await operation(*args, **kwargs)

            except Exception as e:
                last_exception = e
                self.log_failure(name, e, attempt=attempt + 1)

                if attempt == self.config.max_retries - 1:
                    logger.error(
                        f"Operation {name} failed after {self.config.max_retries} attempts. "
                        f"Final error: {e}"
                    )
                    break

                backoff_delay = self.config.get_backoff_delay(attempt)
                logger.info(f"Waiting {backoff_delay:.1f}s before retry...")
                await asyncio.sleep(backoff_delay)

        raise last_exception

    @staticmethod
    def classify_failure(error: BaseException) -> str:
        """
        Map an exception onto a coarse failure category.

        Args:
            error: The exception raised by a backend call

        Returns:
            One of 'timeout', 'http_status', 'connection' or 'unexpected'
        """
        if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
            return 'timeout'
        if isinstance(error, (SearchBackendError, aiohttp.ClientResponseError)):
            return 'http_status'
        if isinstance(error, (aiohttp.ClientConnectionError, ConnectionError, OSError)):
            return 'connection'
        return 'unexpected'

    def log_failure(
        self,
        operation_name: str,
        error: BaseException,
        **context
    ) -> Dict[str, str]:
        """
        Log a failure with timestamp, category and caller context.

        Args:
            operation_name: Name of the operation that failed
            error: The exception that occurred
            **context: Extra diagnostic fields (page, sequence, attempt...)

        Returns:
            The diagnostic context that was logged
        """
        details = {
            'timestamp': datetime.now().isoformat(),
            'operation': operation_name,
            'category': self.classify_failure(error),
            'error_type': type(error).__name__,
            'error_message': str(error),
        }
        details.update({k: str(v) for k, v in context.items()})

        logger.error(
            f"Operation failed: {operation_name} | "
            f"Category: {details['category']} | "
            f"Error: {type(error).__name__}: {error}"
        )
        logger.debug(f"Full error context: {details}")
        return details
