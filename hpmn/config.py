"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """HPMN configuration. All values come from environment variables."""

    # Model provider
    llm_provider: str = Field(default="anthropic")
    anthropic_api_key: str = Field(default="")
    chat_model: str = Field(default="claude-sonnet-4-5-20250929")
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-4o-mini")
    request_timeout: float = Field(default=60.0)
    max_retries: int = Field(default=2)
    max_tokens: int = Field(default=1024)

    # Sampling per pipeline stage
    reply_temperature: float = Field(default=0.5)
    classifier_temperature: float = Field(default=0.2)
    rerank_temperature: float = Field(default=0.0)

    # Conversation
    history_limit: int = Field(default=10)
    inactive_days: int = Field(default=15)

    # Recall
    action_recall_limit: int = Field(default=5)
    memory_recall_limit: int = Field(default=5)

    # Relational store
    database_path: Path = Field(default=Path("data/hpmn.db"))

    # Vector index (Qdrant REST)
    vector_db_url: str = Field(default="http://localhost:6333")
    vector_db_api_key: str = Field(default="")

    # Embedding service
    embedding_url: str = Field(default="")
    embedding_token: str = Field(default="")
    embedding_model: str = Field(default="text-embedding-3-small")

    # Workflow / webhook endpoints invoked by actions
    workflow_url: str = Field(default="")
    workflow_api_token: str = Field(default="")
    workflow_timeout: float = Field(default=30.0)

    # Time shown to the model in prompts
    timezone: str = Field(default="UTC")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def api_key_for(self, provider: str) -> str:
        """Return the configured API key for a provider, or empty string."""
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
        }.get(provider, "")

    def model_for(self, provider: str) -> str:
        """Return the default model name for a provider, or empty string."""
        return {
            "anthropic": self.chat_model,
            "openai": self.openai_model,
        }.get(provider, "")


settings = Settings()
