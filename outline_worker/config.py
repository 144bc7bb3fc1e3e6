from __future__ import annotations

from fastapi import Request
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings.

    Values may be provided via environment variables or a local ``.env`` file.
    Names are unprefixed so ``DEEPSEEK_API_KEY`` maps to ``deepseek_api_key``.
    """

    # HTTP
    port: int = 3001
    cors_allow_origins: str = Field("*", description="Comma-separated origins")

    # Upstream selection
    provider: str = Field("auto", description="auto|deepseek|ollama")
    upstream_timeout: int = Field(120, description="Seconds per upstream request")
    max_tokens: int = 1024
    temperature: float = 0.7

    # DeepSeek (OpenAI-compatible chat completions)
    deepseek_api_key: str = ""
    deepseek_base: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"

    # Local Ollama, no key required
    ollama_base: str = "http://127.0.0.1:11434"
    ollama_model: str = "qwen2.5:7b"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def load_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


def get_settings(request: Request) -> Settings:  # FastAPI dependency helper
    return request.app.state.settings
