"""
Hybrid weight derivation from query text.

A query that exactly names a known keyword phrase is searched as a pure
keyword search; everything else uses the balanced hybrid weight.
"""

from typing import Iterable

from search_discovery.models import WILDCARD_QUERY


BALANCED_WEIGHT = 0.5
KEYWORD_WEIGHT = 0.0


def derive_hybrid_weight(query: str, known_phrases: Iterable[str]) -> float:
    """Derive the hybrid weight for a query.

    Args:
        query: Raw query text
        known_phrases: Keyword phrases fetched from the backend at startup

    Returns:
        0.0 if the trimmed query matches a known phrase case-insensitively,
        otherwise 0.5 (also for empty and wildcard queries)

    Examples:
        >>> derive_hybrid_weight("  ADHD ", ["adhd"])
        0.0
        >>> derive_hybrid_weight("sleep and adhd", ["adhd"])
        0.5
    """
    normalized = (query or "").strip()
    if not normalized or normalized == WILDCARD_QUERY:
        return BALANCED_WEIGHT

    lowered = normalized.casefold()
    for phrase in known_phrases:
        if phrase and phrase.strip().casefold() == lowered:
            return KEYWORD_WEIGHT
    return BALANCED_WEIGHT
