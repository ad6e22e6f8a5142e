"""Engine configuration settings for the search discovery client."""

from dataclasses import dataclass
import os

from search_discovery.error_handling.error_handler import RetryConfig


@dataclass
class BackendConfig:
    """Remote search service configuration."""
    api_base_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 60.0


@dataclass
class PaginationConfig:
    """Paging and auto-continuation configuration."""
    page_size: int = 50
    min_results_threshold: int = 20
    auto_continue_delay_ms: int = 100
    max_distance_page_decay: float = 0.1

    @property
    def effective_min_results(self) -> float:
        """Cumulative result count below which sparse pages auto-continue."""
        return min(self.min_results_threshold, self.page_size / 2)


@dataclass
class DebounceConfig:
    """Trailing-edge debounce intervals for user-edited inputs."""
    query_ms: int = 500
    hybrid_weight_ms: int = 300
    max_distance_ms: int = 300


@dataclass
class EngineSettings:
    """Main engine configuration settings."""
    backend: BackendConfig = None
    pagination: PaginationConfig = None
    debounce: DebounceConfig = None
    retry: RetryConfig = None

    def __post_init__(self):
        """Initialize nested configs if not provided."""
        if self.backend is None:
            self.backend = BackendConfig()
        if self.pagination is None:
            self.pagination = PaginationConfig()
        if self.debounce is None:
            self.debounce = DebounceConfig()
        if self.retry is None:
            self.retry = RetryConfig()


# Default engine configuration
ENGINE_CONFIG = {
    "backend": {
        "api_base_url": os.getenv("DISCOVERY_API_BASE_URL", "http://localhost:8000"),
        "request_timeout_seconds": float(os.getenv("DISCOVERY_REQUEST_TIMEOUT_SECONDS", "60")),
    },
    "pagination": {
        "page_size": int(os.getenv("DISCOVERY_PAGE_SIZE", "50")),
        "min_results_threshold": int(os.getenv("DISCOVERY_MIN_RESULTS_THRESHOLD", "20")),
        "auto_continue_delay_ms": int(os.getenv("DISCOVERY_AUTO_CONTINUE_DELAY_MS", "100")),
        "max_distance_page_decay": float(os.getenv("DISCOVERY_MAX_DISTANCE_PAGE_DECAY", "0.1")),
    },
    "debounce": {
        "query_ms": int(os.getenv("DISCOVERY_QUERY_DEBOUNCE_MS", "500")),
        "hybrid_weight_ms": int(os.getenv("DISCOVERY_HYBRID_WEIGHT_DEBOUNCE_MS", "300")),
        "max_distance_ms": int(os.getenv("DISCOVERY_MAX_DISTANCE_DEBOUNCE_MS", "300")),
    },
    "retry": {
        "max_retries": int(os.getenv("DISCOVERY_MAX_RETRIES", "2")),
    },
}


def get_engine_settings() -> EngineSettings:
    """Get engine settings from configuration."""
    return EngineSettings(
        backend=BackendConfig(**ENGINE_CONFIG["backend"]),
        pagination=PaginationConfig(**ENGINE_CONFIG["pagination"]),
        debounce=DebounceConfig(**ENGINE_CONFIG["debounce"]),
        retry=RetryConfig(**ENGINE_CONFIG["retry"]),
    )
