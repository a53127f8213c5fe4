"""Configuration settings for toolvote."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ROLE = (
    "You are a helpful assistant that completes the user's request by calling "
    "one tool at a time."
)


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or overrides."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, populate_by_name=True
    )

    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL"
    )
    openai_model: str = Field(default="gpt-4.1-mini", validation_alias="OPENAI_MODEL")
    openai_timeout_seconds: int = Field(
        default=30, validation_alias="OPENAI_TIMEOUT_SECONDS"
    )
    openai_extra_headers: str | None = Field(
        default=None, validation_alias="OPENAI_EXTRA_HEADERS"
    )
    openai_force_chatcompletions_path: str | None = Field(
        default=None, validation_alias="OPENAI_FORCE_CHATCOMPLETIONS_PATH"
    )
    agent_role: str = Field(default=DEFAULT_ROLE, validation_alias="AGENT_ROLE")
    max_iterations: int = Field(default=20, validation_alias="MAX_ITERATIONS")
    generation_timeout_seconds: float = Field(
        default=30.0, validation_alias="GENERATION_TIMEOUT_SECONDS"
    )
    tool_timeout_seconds: float = Field(default=900.0, validation_alias="TOOL_TIMEOUT_SECONDS")
    select_max_queries: int = Field(default=7, validation_alias="SELECT_MAX_QUERIES")
    select_min_matches: int = Field(default=3, validation_alias="SELECT_MIN_MATCHES")
    reflect_max_queries: int = Field(default=3, validation_alias="REFLECT_MAX_QUERIES")
    reflect_min_matches: int = Field(default=2, validation_alias="REFLECT_MIN_MATCHES")
    route_max_queries: int = Field(default=3, validation_alias="ROUTE_MAX_QUERIES")
    route_min_matches: int = Field(default=2, validation_alias="ROUTE_MIN_MATCHES")
    execute_max_attempts: int = Field(default=2, validation_alias="EXECUTE_MAX_ATTEMPTS")
    llm_max_attempts: int = Field(default=2, validation_alias="LLM_MAX_ATTEMPTS")
    consensus_concurrency: int = Field(default=1, validation_alias="CONSENSUS_CONCURRENCY")
    interpret_enabled: bool = Field(default=True, validation_alias="INTERPRET_ENABLED")
    history_max_prompts: int = Field(default=5, validation_alias="HISTORY_MAX_PROMPTS")
    trace_dir: str | None = Field(default=None, validation_alias="TRACE_DIR")
