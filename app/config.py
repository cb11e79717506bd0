from enum import Enum
import logging

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.logging import RichHandler


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    """Loaded once at startup and handed to whatever needs it."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: Env = Env.local
    log_level: str = "INFO"
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    core_model: str = "gpt-5-mini"
    stream_idle_timeout: float = 60.0
    emit_error_events: bool = True
    db_url: str = "sqlite+aiosqlite:///cooksmart.db"
    cors_origins: list[str] = ["*"]


def configure_logging(config: Config) -> None:
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=config.env == Env.local)],
    )
