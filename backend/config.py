"""
Configuration settings for the Job Salary Estimator API and client.

This file contains all the configuration settings for the application.
For sensitive information like API keys, use environment variables.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # API Configuration
    API_TITLE: str = "Job Salary Estimator API"
    API_VERSION: str = "1.0.0"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Completion service (OpenAI-compatible chat completions). Read from env/.env only.
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4-turbo"
    # Accepts either a base API URL (.../v1) or a full .../chat/completions endpoint
    OPENAI_API_URL: str = "https://api.openai.com/v1"
    OPENAI_TIMEOUT: float = 60.0

    # Extraction service (Firecrawl scrape endpoint)
    FIRECRAWL_API_KEY: str = ""
    FIRECRAWL_API_URL: str = "https://api.firecrawl.dev/v1/scrape"
    FIRECRAWL_TIMEOUT: float = 120.0

    # Client side
    SALARY_API_BASE_URL: str = "http://localhost:8000"
    CLIENT_TIMEOUT: float = 180.0

    # Pydantic settings config
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding='utf-8',
        case_sensitive=True,
        extra='ignore'  # Ignore extra fields in .env
    )


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
