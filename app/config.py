from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    telegram_token: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout_seconds: float = 60.0
    database_url: str = "sqlite:///./relay.db"
    app_base_url: Optional[str] = None  # set -> webhook mode, unset -> long polling
    webhook_path: str = "/bot/update"
    store_timezone: str = "America/Bogota"
    context_limit: int = 50
    save_max_attempts: int = 3
    save_backoff_seconds: float = 3.0
    poll_retry_delay_seconds: float = 2.0
    poll_timeout_seconds: int = 30
    log_level: str = "INFO"
    debug: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def push_mode(self) -> bool:
        return bool(self.app_base_url and self.app_base_url.strip())

    @property
    def webhook_url(self) -> Optional[str]:
        if not self.push_mode:
            return None
        return f"{self.app_base_url.strip().rstrip('/')}{self.webhook_path}"


def require_runtime_settings(config: Settings) -> None:
    """Refuse to start without the bot token or a storage connection string."""
    if not config.telegram_token:
        raise RuntimeError("TELEGRAM_TOKEN is not configured")
    if not config.database_url:
        raise RuntimeError("DATABASE_URL is not configured")


settings = Settings()
