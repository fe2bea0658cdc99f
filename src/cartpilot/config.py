"""Configuration settings for the application."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Pydantic settings class for the application."""

    # Define the settings with default values and types
    # These will be loaded from environment variables or a .env file if not provided
    API_PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "info"  # Options: debug, info, warning, error, critical

    # LLM gateway
    GATEWAY: str = "openrouter"  # Options: openrouter, openai
    OPENROUTER_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    LLM_BASE_URL: str | None = None  # Overrides the gateway's default endpoint
    GATEWAY_TIMEOUT: float = 60.0
    APP_REFERER: str = "https://github.com/cartpilot/cartpilot"
    APP_TITLE: str = "CartPilot"

    # Agent
    MODEL: str = "openai/gpt-4o-mini"
    MAX_ITERATIONS: int = 10
    SYSTEM_PROMPT_PATH: str | None = None

    # Barcode scan rendezvous (seconds)
    SCAN_TIMEOUT: float = 20.0  # enforced by the UI while the scanner is open
    SCAN_SAFETY_TIMEOUT: float = 60.0  # enforced by the request_scan tool

    # Product catalog
    BESTBUY_API_KEY: str | None = None
    BESTBUY_BASE_URL: str = "https://api.bestbuy.com/v1"

    class Config:
        """Configuration for Pydantic settings."""

        # Load environment variables from a .env file
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
