"""
Configuration module for the OnlyCoins backend.

This module handles all environment variable loading and configuration settings.
All external dependencies (API URLs, tokens, model names) are configured here.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values and external endpoints should be configured
    via environment variables or a .env file.
    """

    # ==========================================================================
    # APPLICATION SETTINGS
    # ==========================================================================

    APP_NAME: str = "OnlyCoins Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # ==========================================================================
    # CHAT COMPLETION SETTINGS (Groq, OpenAI-compatible API)
    # ==========================================================================

    # API key for the hosted chat completion service
    GROQ_API_KEY: Optional[str] = None

    # Groq exposes an OpenAI-compatible endpoint, so the openai client is used
    # with this base URL. Point it at any other compatible provider if needed.
    CHAT_BASE_URL: str = "https://api.groq.com/openai/v1"
    CHAT_MODEL: str = "llama-3.3-70b-versatile"

    # Generation parameters, kept conservative to bound output size
    CHAT_TEMPERATURE: float = 0.6
    CHAT_TOP_P: float = 0.95
    CHAT_MAX_TOKENS: int = 4096

    # Timeout for chat completion calls (in seconds)
    CHAT_TIMEOUT: int = 60

    # When true, the generated posts must match the CryptoPost schema
    POSTS_STRICT_SCHEMA: bool = False

    # ==========================================================================
    # IMAGE GENERATION SETTINGS (Cloudflare Workers AI)
    # ==========================================================================

    # Account and token for the Workers AI REST API
    # Endpoint: {WORKERS_AI_BASE_URL}/accounts/{CLOUDFLARE_ACCOUNT_ID}/ai/run/{IMAGE_MODEL}
    CLOUDFLARE_ACCOUNT_ID: Optional[str] = None
    CLOUDFLARE_API_TOKEN: Optional[str] = None
    WORKERS_AI_BASE_URL: str = "https://api.cloudflare.com/client/v4"
    IMAGE_MODEL: str = "@cf/black-forest-labs/flux-1-schnell"

    # Timeout for a single image generation attempt (in seconds)
    IMAGE_TIMEOUT: int = 120

    # Attempts are immediate, there is no backoff between them
    IMAGE_MAX_ATTEMPTS: int = 3

    # Supported values: "random", "round_robin", "fixed"
    IMAGE_PROMPT_STRATEGY: str = "random"

    # Theme used when the request does not carry a "name" query parameter
    IMAGE_DEFAULT_THEME: str = "mystical warrior"

    # ==========================================================================
    # CORS SETTINGS
    # ==========================================================================

    # Comma-separated list of allowed origins, "*" allows any origin
    CORS_ORIGINS: str = "*"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS string into a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def chat_configured(self) -> bool:
        return bool(self.GROQ_API_KEY)

    @property
    def image_configured(self) -> bool:
        return bool(self.CLOUDFLARE_ACCOUNT_ID and self.CLOUDFLARE_API_TOKEN)

    class Config:
        # Load settings from .env file if it exists
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once
    and reused across the application.

    Returns:
        Settings: The application settings instance
    """
    return Settings()
