from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"

    # Device channel (Redis pub/sub)
    request_channel: str = "blockrunner:device:requests"
    event_channel: str = "blockrunner:device:events"

    # Command settings
    command_timeout: float = 10.0  # Per-command response bound
    default_sleep_ms: int = 1000
    default_match_timeout_ms: int = 10000
    match_grace_seconds: float = 5.0  # Added on top of the match timeout
    log_start_timeout: float = 5.0
    log_stop_timeout: float = 2.0

    # Run settings
    max_log_lines: int = 5000
    stop_poll_interval: float = 0.5

    class Config:
        env_file = ".env"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
