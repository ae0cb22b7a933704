"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # App settings
    app_name: str = "Label Verification API"
    debug: bool = False
    log_level: str = "INFO"
    
    # CORS - Allow all origins for prototype (restrict in production)
    cors_origins: list[str] = ["*"]
    
    # Request limits
    max_images_per_application: int = 10  # Front, back, neck and side panels fit comfortably
    max_batch_size: int = 50
    
    # Extraction response parsing
    fix_warning_prefix: bool = True  # Vision models sometimes drop "GOVERNMENT WARNING:"
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "LABELVERIFY_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
