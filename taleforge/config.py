"""
Configuration management for TaleForge
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # LLM Provider Configuration
    model_provider: Literal["openai", "generic", "mock"] = Field(default="openai")
    openai_api_base: str = Field(default="https://api.openai.com/v1")
    openai_api_key: str = Field(default="")
    model_name: str = Field(default="gpt-4o-mini")
    generator_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="A narrator call that runs longer than this counts as a failed turn",
    )

    # Scene image rendering
    enable_scene_images: bool = Field(default=True)
    image_api_base: Optional[str] = Field(
        default=None,
        description="Image API base URL (defaults to openai_api_base if not set)",
    )
    image_model_name: str = Field(default="gpt-image-1")
    image_timeout_seconds: float = Field(default=120.0, gt=0)

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    debug: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    enable_console_logs: bool = Field(default=True)

    # Database Configuration
    database_path: str = Field(
        default="data/taleforge.db",
        description="SQLite database file path for users, adventures and turns",
    )

    # Free tier
    allow_anonymous_play: bool = Field(default=True)
    anonymous_daily_game_limit: int = Field(
        default=3,
        ge=0,
        description="Adventures an anonymous IP may start per calendar day",
    )
    anonymous_max_turns: int = Field(
        default=5, ge=1, description="Turn cap for anonymous adventures"
    )
    registered_max_turns: int = Field(
        default=-1, description="Turn cap for registered owners (-1 = unlimited)"
    )
    single_active_adventure: bool = Field(
        default=True,
        description="Abandon an owner's active adventure when a new one starts",
    )
    free_history_limit: int = Field(
        default=5,
        ge=1,
        description="Most recent adventures listed for non-premium owners",
    )

    # Identity supplied by the auth proxy
    user_id_header: str = Field(default="X-User-Id")
    auth_callback_secret: str = Field(default="")

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
