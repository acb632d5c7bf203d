"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", case_sensitive=False, extra="ignore"
    )

    app_port: int = Field(8000, alias="APP_PORT")

    wiki_api_url: str = Field("https://en.wikipedia.org/w/api.php", alias="WIKI_API_URL")
    wiki_base_url: str = Field("https://en.wikipedia.org", alias="WIKI_BASE_URL")
    wiki_user_agent: str = Field(
        "wikiextract/0.1 (encyclopedia extraction tool)", alias="WIKI_USER_AGENT"
    )
    wiki_timeout_seconds: float = Field(30.0, alias="WIKI_TIMEOUT_SECONDS")
    wiki_preview_timeout_seconds: float = Field(10.0, alias="WIKI_PREVIEW_TIMEOUT_SECONDS")

    anthropic_api_url: str = Field(
        "https://api.anthropic.com/v1/messages", alias="ANTHROPIC_API_URL"
    )
    anthropic_api_version: str = Field("2023-06-01", alias="ANTHROPIC_API_VERSION")
    anthropic_model: str = Field("claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_api_key: str | None = Field(default=None, alias="ANTHROPIC_API_KEY")
    llm_max_tokens: int = Field(4096, alias="LLM_MAX_TOKENS")
    llm_timeout_seconds: float = Field(240.0, alias="LLM_TIMEOUT_SECONDS")
    llm_max_retries: int = Field(3, alias="LLM_MAX_RETRIES")
    llm_retry_delay_seconds: float = Field(2.0, alias="LLM_RETRY_DELAY_SECONDS")

    summary_ratio: float = Field(0.5, alias="SUMMARY_RATIO")
    min_summary_ratio: float = Field(0.4, alias="MIN_SUMMARY_RATIO")
    max_summary_ratio: float = Field(0.7, alias="MAX_SUMMARY_RATIO")
    max_table_rows: int = Field(500, alias="MAX_TABLE_ROWS")
    request_delay_seconds: float = Field(1.0, alias="REQUEST_DELAY_SECONDS")
    max_batch_size: int = Field(200, alias="MAX_BATCH_SIZE")

    discovery_batch_size: int = Field(50, alias="DISCOVERY_BATCH_SIZE")
    discovery_max_tokens: int = Field(8192, alias="DISCOVERY_MAX_TOKENS")
    validation_batch_size: int = Field(20, alias="VALIDATION_BATCH_SIZE")
    validation_pause_seconds: float = Field(0.1, alias="VALIDATION_PAUSE_SECONDS")
    continuation_title_cap: int = Field(50, alias="CONTINUATION_TITLE_CAP")

    input_cost_per_million: float = Field(3.00, alias="INPUT_COST_PER_MILLION")
    output_cost_per_million: float = Field(15.00, alias="OUTPUT_COST_PER_MILLION")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    log_file: str | None = Field(default=None, alias="LOG_FILE")

    @property
    def has_llm_credential(self) -> bool:
        """Return True if an API key was supplied through the environment."""
        return bool(self.anthropic_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
