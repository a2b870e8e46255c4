"""Shared configuration management for the platform.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        protected_namespaces=(),
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="billdraft",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Model provider configuration
    model_provider: Literal["openai", "ollama"] = Field(
        default="openai",
        description="Generative model provider: openai (cloud API), ollama (self-hosted LLM)",
    )
    openai_model: str = Field(
        default="gpt-4-turbo",
        description="OpenAI chat model used for extraction",
    )

    # Ollama configuration (for model_provider="ollama")
    ollama_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama server base URL",
    )
    ollama_model: str = Field(
        default="qwen2.5:7b",
        description="Ollama model to use for extraction (e.g., qwen2.5:7b, llama3.1:8b)",
    )

    # Model call policy (owned by the provider, not the orchestrator)
    model_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Timeout for a single model call",
    )
    model_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum model call attempts, including the first one",
    )
    model_retry_initial_wait: float = Field(
        default=1.0,
        ge=0,
        description="Initial backoff between model call attempts (seconds)",
    )
    model_retry_max_wait: float = Field(
        default=30.0,
        ge=0,
        description="Upper bound for backoff between model call attempts (seconds)",
    )

    # Document defaults
    default_payment_term_days: int = Field(
        default=30,
        ge=0,
        description="Days added to the issue date for missing due/valid-until dates",
    )

    # Entity matching
    match_limit: int = Field(
        default=3,
        ge=1,
        description="Number of top candidates returned by entity matching",
    )
    client_high_threshold: float = Field(
        default=8.0,
        description="Client match score above which confidence is high",
    )
    client_medium_threshold: float = Field(
        default=4.0,
        description="Client match score above which confidence is medium",
    )
    product_high_threshold: float = Field(
        default=3.0,
        description="Product match score above which confidence is high",
    )
    product_medium_threshold: float = Field(
        default=1.5,
        description="Product match score above which confidence is medium",
    )

    # Storage collaborator
    business_data_path: str | None = Field(
        default=None,
        description="JSON file with business profiles, clients and products",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
