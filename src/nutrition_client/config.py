from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from nutrition_client.api.client import NutritionApiClient
from nutrition_client.coordination.coordinator import ExecuteOptions, RequestCoordinator
from nutrition_client.secrets import TokenStore, default_token_store


def _env_ms(name: str, default: str) -> float:
    return int(os.getenv(name, default)) / 1000.0


@dataclass(frozen=True)
class CoordinatorSettings:
    api_base_url: str = "http://localhost:5000/api"
    api_timeout_s: float = 60.0
    throttle_window_s: float = 2.0
    attempt_ceiling: int = 2
    cleanup_delay_s: float = 15.0
    max_retries: int = 1
    retry_delay_s: float = 2.0
    retry_backoff: str = "fixed"
    log_level: str = "info"
    debug_logging: bool = False

    @classmethod
    def from_env(cls) -> "CoordinatorSettings":
        load_dotenv()
        backoff = os.getenv("NUTRITION_RETRY_BACKOFF", "fixed").lower()
        if backoff not in {"fixed", "exponential"}:
            raise ValueError(f"NUTRITION_RETRY_BACKOFF must be 'fixed' or 'exponential', got {backoff!r}")
        return cls(
            api_base_url=os.getenv("NUTRITION_API_BASE_URL", "http://localhost:5000/api"),
            api_timeout_s=float(os.getenv("NUTRITION_API_TIMEOUT_S", "60")),
            throttle_window_s=_env_ms("NUTRITION_THROTTLE_WINDOW_MS", "2000"),
            attempt_ceiling=int(os.getenv("NUTRITION_ATTEMPT_CEILING", "2")),
            cleanup_delay_s=_env_ms("NUTRITION_CLEANUP_DELAY_MS", "15000"),
            max_retries=int(os.getenv("NUTRITION_MAX_RETRIES", "1")),
            retry_delay_s=_env_ms("NUTRITION_RETRY_DELAY_MS", "2000"),
            retry_backoff=backoff,
            log_level=os.getenv("NUTRITION_LOG_LEVEL", "info"),
            debug_logging=os.getenv("NUTRITION_DEBUG_LOGGING", "false").lower() in {"1", "true", "yes"},
        )

    def execute_options(self) -> ExecuteOptions:
        return ExecuteOptions(
            max_retries=self.max_retries,
            retry_delay_s=self.retry_delay_s,
            backoff=self.retry_backoff,  # type: ignore[arg-type]
        )


@lru_cache
def get_settings() -> CoordinatorSettings:
    return CoordinatorSettings.from_env()


def build_coordinator(settings: CoordinatorSettings | None = None, *, telemetry=None) -> RequestCoordinator:
    settings = settings or get_settings()
    return RequestCoordinator(
        throttle_window_s=settings.throttle_window_s,
        attempt_ceiling=settings.attempt_ceiling,
        cleanup_delay_s=settings.cleanup_delay_s,
        default_options=settings.execute_options(),
        telemetry=telemetry,
    )


def build_api_client(
    settings: CoordinatorSettings | None = None,
    *,
    coordinator: RequestCoordinator | None = None,
    token_store: TokenStore | None = None,
) -> NutritionApiClient:
    settings = settings or get_settings()
    return NutritionApiClient(
        settings.api_base_url,
        coordinator=coordinator or build_coordinator(settings),
        token_store=token_store or default_token_store(),
        timeout_s=settings.api_timeout_s,
        debug_logging=settings.debug_logging,
    )
