"""Page fetching: orchestrator, visible result list and auto-continuation."""

from .auto_continuation import AutoContinuation
from .orchestrator import FetchOrchestrator, ResultView

__all__ = ['AutoContinuation', 'FetchOrchestrator', 'ResultView']
