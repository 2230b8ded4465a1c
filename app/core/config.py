"""
Configuration module - loads all env vars using pydantic-settings.
This is the SINGLE SOURCE OF TRUTH for all config values.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # PostgreSQL (users, companies, jobs - owned by the CRUD subsystem)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "talentgrid_user"
    postgres_password: str = "password"
    postgres_db: str = "talentgrid_db"

    # MongoDB (batches, applicants, parsed resumes)
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "talentgrid_docs"

    # LLM provider (OpenAI-compatible endpoint, Groq by default)
    llm_api_key: str = ""
    llm_base_url: str = "https://api.groq.com/openai/v1"
    llm_model: str = "llama-3.1-8b-instant"
    llm_timeout_seconds: float = 60.0
    llm_max_tokens: int = 3000

    # Screening pipeline
    max_upload_mb: int = 50
    parse_char_limit: int = 6000
    academic_char_limit: int = 15000
    llm_min_delay_ms: int = 500  # provider rate limit, keep >= 300
    ocr_fallback_enabled: bool = False

    # App
    debug: bool = False
    log_level: str = "INFO"
    log_format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL"""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
