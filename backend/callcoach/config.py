"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CallCoach"
    app_env: str = "development"
    debug: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "auto"  # auto (based on app_env), console, or json
    logs_dir: str = "./logs"
    log_to_file: bool = True
    log_file_max_bytes: int = 10 * 1024 * 1024  # 10MB
    log_file_backup_count: int = 5

    # Platform backend: "supabase" (hosted) or "local" (SQLite + filesystem)
    platform_backend: str = "local"

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_key: str = ""
    """Service-role key used for server-side storage and table access.
    Falls back to the anon key when empty."""
    supabase_storage_bucket: str = "audio-files"

    # Local backend
    database_url: str = "sqlite+aiosqlite:///./callcoach.db"
    storage_local_path: str = "./storage"

    # Security (local backend tokens)
    secret_key: str = "your-super-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60
    jwt_refresh_token_expire_days: int = 7

    # Speech-to-text (Deepgram)
    deepgram_api_key: str = ""
    deepgram_base_url: str = "https://api.deepgram.com/v1/listen"
    deepgram_model: str = "nova-2"
    deepgram_language: str = "en"
    deepgram_smart_format: bool = True
    deepgram_punctuate: bool = True

    # Generative language (Gemini)
    gemini_api_key: str = ""
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    gemini_model: str = "gemini-2.0-flash-exp"
    gemini_temperature: float = 0.7
    gemini_top_k: int = 40
    gemini_top_p: float = 0.95
    gemini_max_output_tokens: int = 2048

    provider_timeout_seconds: float = 120.0

    # Upload
    upload_max_bytes: int = 25 * 1024 * 1024  # 25MB
    upload_mime_types: list[str] = [
        "audio/mpeg",
        "audio/wav",
        "audio/mp4",
        "audio/flac",
        "audio/ogg",
    ]

    @field_validator("upload_mime_types", mode="before")
    @classmethod
    def parse_mime_types(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v

    # Recording
    recording_sample_rate: int = 44100
    recording_channels: int = 1

    # Workflow
    auto_chain: bool = True
    training_material: str = ""
    """Company training notes injected into the coaching rubric."""

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    # Plugins
    plugins_enabled: list[str] = ["upload", "recording", "transcription", "analysis", "history"]

    @field_validator("plugins_enabled", mode="before")
    @classmethod
    def parse_plugins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            return [p.strip() for p in v.split(",")]
        return v

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
