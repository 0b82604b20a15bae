import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

ENV_PREFIX = "TASKCAL"


def _env(suffix: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}_{suffix}")
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(suffix: str, default: int) -> int:
    raw = _env(suffix)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(suffix: str, default: List[str]) -> List[str]:
    raw = _env(suffix)
    if raw is None:
        return list(default)
    return [p for p in raw.replace(",", " ").split() if p]


@dataclass(frozen=True)
class Settings:
    db_path: str = "todo.db"
    token_ttl_hours: int = 168
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    api_url: str = "http://127.0.0.1:8000/api"


def load_settings() -> Settings:
    return Settings(
        db_path=_env("DB_PATH", "todo.db"),
        token_ttl_hours=_env_int("TOKEN_TTL_HOURS", 168),
        cors_origins=_env_list("CORS_ORIGINS", ["*"]),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
        log_dir=_env("LOG_DIR"),
        api_url=_env("API_URL", "http://127.0.0.1:8000/api").rstrip("/"),
    )


settings = load_settings()
