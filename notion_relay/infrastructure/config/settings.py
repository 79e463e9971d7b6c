from typing import List, Mapping, Optional
from pydantic import BaseModel, Field, field_validator
import os


def _split(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseModel):
    """Runtime configuration, read from the environment"""

    bot_token: str = ""
    bot_token_todo: str = ""
    notion_secret: str = ""
    notion_db_id: str = ""
    notion_todo_db_id: str = ""
    allowed_user_ids: List[int] = Field(default_factory=list)
    rate_limit_max_requests: int = 10
    rate_limit_window_seconds: float = 60.0
    session_ttl_seconds: int = 3600
    default_categories: List[str] = Field(default_factory=lambda: ["Work", "Study", "Video", "Other"])
    telegram_webhook_secret: Optional[str] = None
    http_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    log_format: str = "json"

    @field_validator("allowed_user_ids", mode="before")
    @classmethod
    def parse_user_ids(cls, value):
        if isinstance(value, str):
            ids = []
            for part in _split(value):
                try:
                    ids.append(int(part))
                except ValueError:
                    continue
            return ids
        return value

    @field_validator("default_categories", mode="before")
    @classmethod
    def parse_categories(cls, value):
        if isinstance(value, str):
            return _split(value)
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from upper-case environment variables; unset keys keep defaults"""

        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**values)
