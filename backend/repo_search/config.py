from functools import lru_cache
from typing import Optional

from pydantic import Field, HttpUrl
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    github_base_url: HttpUrl = Field(
        default="https://api.github.com", alias="GITHUB_BASE_URL"
    )
    debounce_ms: int = Field(default=500, ge=0, alias="SEARCH_DEBOUNCE_MS")
    # no timeout unless the deployment asks for one
    request_timeout_seconds: Optional[float] = Field(
        default=None, gt=0, alias="REQUEST_TIMEOUT_SECONDS"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # ignore unrelated env vars to avoid validation errors

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000


@lru_cache
def get_settings() -> Settings:
    return Settings()
