"""Configuration module for the search discovery client."""

from .engine_config import (
    ENGINE_CONFIG,
    EngineSettings,
    BackendConfig,
    PaginationConfig,
    DebounceConfig,
    get_engine_settings,
)

__all__ = [
    'ENGINE_CONFIG',
    'EngineSettings',
    'BackendConfig',
    'PaginationConfig',
    'DebounceConfig',
    'get_engine_settings',
]
