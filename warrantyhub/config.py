"""Configuration management using Pydantic Settings"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

AppMode = Literal["embedded", "remote"]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WARRANTYHUB_",
        extra="ignore",
    )

    # Embedded store (also holds the audit log in remote mode)
    embedded_database_url: str = "sqlite:///./warrantyhub.db"

    # Remote relational backend (PostgREST-compatible)
    remote_api_base: Optional[str] = None
    remote_api_key: Optional[str] = None

    # Service
    service_name: str = "warrantyhub-engine"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = Field(default=5.0, gt=0)

    # Lifecycle
    warranty_id_prefix: str = "WH-"
    audit_log_max_events: int = Field(default=5000, ge=1)

    @property
    def app_mode(self) -> AppMode:
        """Remote mode only when both the backend URL and key are present"""
        if (self.remote_api_base or "").strip() and (self.remote_api_key or "").strip():
            return "remote"
        return "embedded"


settings = Settings()
