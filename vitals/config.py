from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Probes file (absolute or relative to CWD)
    probes_file: str = "probes.yaml"

    # Engine
    probe_timeout_seconds: float = 10.0  # default when a probe sets no timeout_ms
    max_concurrency: int = 8  # probes running at once per query
    query_deadline_seconds: float | None = None  # None = no overall limit

    # Logging
    log_level: str = "INFO"


settings = Settings()
