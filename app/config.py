"""
Application settings
"""
import sys
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings

load_dotenv()


class Settings(BaseSettings):
    """Rankings core settings (.env / environment)"""

    # Supabase
    supabase_url: str = Field(default="", description="Supabase Project URL")
    supabase_key: str = Field(default="", description="Supabase anon key")
    supabase_service_key: str = Field(default="", description="Service role key, used for writes when set")

    # Rankings
    rolling_window_days: int = Field(default=365, ge=0, description="Current ranking window (days)")
    expiring_within_days: int = Field(default=30, ge=0, description="Expiring points horizon (days)")

    # Import
    player_code_prefix: str = Field(default="NPL", description="Prefix of generated player codes")
    import_error_preview_limit: int = Field(default=10, ge=0, description="Errors returned in a commit response")

    # Tenancy
    default_organization_id: Optional[str] = Field(None, description="Organization used when none is given")

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(log_name: str, settings: Optional[Settings] = None) -> None:
    """stderr sink plus a daily rotated file under log_dir"""
    settings = settings or get_settings()
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=settings.log_level)
    logger.add(
        f"{settings.log_dir}/{log_name}_{{time:YYYY-MM-DD}}.log",
        rotation="1 day",
        retention="30 days",
        level="DEBUG",
    )
