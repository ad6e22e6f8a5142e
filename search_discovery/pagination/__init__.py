"""Pagination state for one search session."""

from .cursor import PaginationCursor

__all__ = ['PaginationCursor']
