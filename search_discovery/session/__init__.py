"""Search session control and the "find similar" flow."""

from .session_controller import SessionController
from .similar_search import SimilarSearchFlow

__all__ = ['SessionController', 'SimilarSearchFlow']
