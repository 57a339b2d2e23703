import os
from typing import List, Optional

from .errors import ConfigurationError

DEFAULT_API_URL = "https://cloud.leonardo.ai/api/rest/v1"


def _split_origins(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [o.strip() for o in raw.split(",") if o.strip()]


class BridgeConfig:
    """Runtime settings for the bridge, read from the environment.

    Variables:
    - `LEONARDO_API_KEY`: provider key. Missing is only an error on first use.
    - `BRIDGE_SECRET_KEY`: shared secret expected in the `x-bridge-auth` header.
    - `ALLOWED_ORIGINS`: comma-separated CORS allow-list.
    - `LEONARDO_API_URL`: provider base URL (point at `scripts/leonardo_mock_provider.py` locally).
    - `LEONARDO_TIMEOUT`: seconds per provider call (default 120).
    - `RATE_LIMIT_MAX` / `RATE_LIMIT_WINDOW_MS`: start-generation quota (10 per 60000ms).
    - `REDIS_URL`: optional shared store for the rate limiter.
    - `LOG_LEVEL`: logging level (default INFO).
    """

    def __init__(
        self,
        leonardo_api_key: Optional[str] = None,
        bridge_secret_key: Optional[str] = None,
        allowed_origins: Optional[List[str]] = None,
        api_base_url: str = DEFAULT_API_URL,
        request_timeout: float = 120,
        rate_limit_max: int = 10,
        rate_limit_window_ms: int = 60000,
        redis_url: Optional[str] = None,
        log_level: str = "INFO",
    ):
        self.leonardo_api_key = leonardo_api_key
        self.bridge_secret_key = bridge_secret_key
        self.allowed_origins = list(allowed_origins or [])
        self.api_base_url = api_base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.rate_limit_max = rate_limit_max
        self.rate_limit_window_ms = rate_limit_window_ms
        self.redis_url = redis_url
        self.log_level = log_level

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        return cls(
            leonardo_api_key=os.getenv("LEONARDO_API_KEY") or None,
            bridge_secret_key=os.getenv("BRIDGE_SECRET_KEY") or None,
            allowed_origins=_split_origins(os.getenv("ALLOWED_ORIGINS")),
            api_base_url=os.getenv("LEONARDO_API_URL") or DEFAULT_API_URL,
            request_timeout=float(os.getenv("LEONARDO_TIMEOUT", "120")),
            rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "10")),
            rate_limit_window_ms=int(os.getenv("RATE_LIMIT_WINDOW_MS", "60000")),
            redis_url=os.getenv("REDIS_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def require_api_key(self) -> str:
        if not self.leonardo_api_key:
            raise ConfigurationError("LEONARDO_API_KEY is not configured on the server.")
        return self.leonardo_api_key

    def environment_flags(self) -> dict:
        return {
            "hasLeonardoKey": bool(self.leonardo_api_key),
            "hasBridgeKey": bool(self.bridge_secret_key),
            "hasAllowedOrigins": bool(self.allowed_origins),
        }
