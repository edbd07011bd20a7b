"""
Runtime configuration for the API server, read from the environment (.env supported).
"""

from typing import List, Optional
import os

import dotenv

dotenv.load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:3000"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


class APIConfig:
    """
    Configuration for the HTTP API.

    Constructor arguments override the environment, so tests can build
    an app with auth on or off deterministically.
    """

    def __init__(
        self,
        auth_disabled: Optional[bool] = None,
        database_url: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        health_path: Optional[str] = None,
        rate_limit_max_requests: Optional[int] = None,
        rate_limit_window_seconds: Optional[float] = None,
        cors_origins: Optional[List[str]] = None,
        log_level: Optional[str] = None,
        log_dir: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        # Development convenience only: disables every auth and permission check
        self.auth_disabled = _env_bool("API_AUTH_DISABLED") if auth_disabled is None else auth_disabled

        self.database_url = database_url or os.getenv("DATABASE_URL")
        self.host = host or os.getenv("API_HOST", "0.0.0.0")
        self.port = port if port is not None else int(os.getenv("API_PORT", "5000"))
        self.health_path = health_path or os.getenv("HEALTH_PATH", "/api/health")

        if rate_limit_max_requests is None:
            rate_limit_max_requests = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))
        self.rate_limit_max_requests = rate_limit_max_requests
        if rate_limit_window_seconds is None:
            rate_limit_window_seconds = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.rate_limit_window_seconds = rate_limit_window_seconds

        if cors_origins is None:
            cors_origins = [
                origin.strip()
                for origin in os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
                if origin.strip()
            ]
        self.cors_origins = cors_origins

        self.log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
        self.log_dir = log_dir if log_dir is not None else os.getenv("LOG_DIR", "./logs")
        self.environment = (environment or os.getenv("ENVIRONMENT", "development")).lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
