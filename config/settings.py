"""
Configuration module for the Course Web Services.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./course_services.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # Site
    wwwroot: str = "http://localhost/moodle"
    fullnamedisplay: str = "{firstname} {lastname}"
    alternativefullnameformat: str = "{firstname} {lastname}"

    # Forum read tracking
    forum_trackreadposts: bool = True
    forum_allowforcedreadtracking: bool = False
    forum_oldpostdays: int = 14

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


settings = get_settings()
