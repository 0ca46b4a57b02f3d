"""Application configuration settings."""

from functools import lru_cache
from typing import Annotated, Any, Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_VALID_LABELS = [
    "acne",
    "hyperpigmentation",
    "vitiligo",
    "sjs",
    "melanoma",
    "keratosis",
    "psoriasis",
    "ringworm",
]

CommaList = Annotated[list[str], NoDecode]


def _split_csv(value: Any) -> Any:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    """Application configuration settings.

    All settings can be overridden via environment variables. Settings are read
    once at startup; the provider configuration derived from them never changes
    while the process runs.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "DermAssist Orchestrator"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="The environment the application is running in"
    )
    debug: bool = Field(default=False, description="Whether to run the application in debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="The log level to use"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="The host to bind the server to")
    port: int = Field(default=8000, description="The port to bind the server to")
    cors_origins: CommaList = Field(
        default_factory=lambda: ["*"], description="Comma-separated allowed CORS origins"
    )

    # Classification service(s), tried in order
    classifier_urls: CommaList = Field(
        default_factory=list,
        description="Comma-separated image classification endpoints, in priority order",
    )
    classifier_timeout: float = 120.0
    max_image_bytes: int = 10 * 1024 * 1024
    min_confidence_threshold: float = Field(default=0.15, ge=0.0, le=1.0)
    valid_labels: CommaList = Field(default_factory=lambda: list(DEFAULT_VALID_LABELS))

    # Generation providers, tried in this order
    advice_provider_order: CommaList = Field(
        default_factory=lambda: ["openai", "hosted", "ollama"],
        description="Comma-separated generation provider kinds, in priority order",
    )

    # OpenAI Configuration
    openai_api_key: SecretStr = Field(default=SecretStr(""))
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: str | None = Field(
        default=None, description="Override for OpenAI-compatible gateways"
    )
    openai_timeout: float = 30.0

    # Hosted inference endpoint (Hugging Face Space / Inference Endpoint)
    hosted_llm_url: str = Field(
        default="", validation_alias=AliasChoices("hosted_llm_url", "llm_url")
    )
    hosted_llm_token: SecretStr = Field(default=SecretStr(""))
    hosted_llm_timeout: float = 60.0

    # Local Ollama daemon
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "phi3:mini"
    ollama_timeout: float = 120.0

    # Health checks
    health_stale_after: float = 30.0
    health_probe_timeout: float = 5.0
    health_warmup_attempts: int = Field(default=3, ge=1)

    @field_validator(
        "classifier_urls", "valid_labels", "advice_provider_order", "cors_origins", mode="before"
    )
    @classmethod
    def _parse_comma_list(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("advice_provider_order")
    @classmethod
    def _lowercase_kinds(cls, value: list[str]) -> list[str]:
        return [item.lower() for item in value]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


__all__ = ["DEFAULT_VALID_LABELS", "Settings", "get_settings"]
