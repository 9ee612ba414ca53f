"""
Configuration management using Pydantic Settings.
Loads from environment variables and .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Known project
    known_project_id: str = Field(
        default="",
        description="Optimizely project ID that is always checked, even if not seen on the page"
    )
    optimizely_api_token: str = Field(
        default="",
        description="Default Optimizely REST API token (optional)"
    )

    # Sources
    cdn_base_url: str = Field(
        default="https://cdn.optimizely.com",
        description="Optimizely CDN base URL"
    )
    snippet_url_template: str = Field(
        default="{cdn}/js/{identifier}.js",
        description="Snippet script URL template"
    )
    datafile_url_templates: list[str] = Field(
        default=[
            "{cdn}/datafiles/{identifier}.json",
            "{cdn}/json/{identifier}.json",
            "{cdn}/public/{identifier}/datafile.json",
        ],
        description="Datafile URL candidates, tried in order"
    )
    rest_api_base_url: str = Field(
        default="https://api.optimizely.com/v2",
        description="Optimizely REST API base URL"
    )
    rest_page_size: int = Field(default=100, description="REST listing page size")

    # Per-fetcher timeouts (seconds)
    runtime_timeout: float = Field(default=5.0, description="Live runtime read timeout")
    snippet_timeout: float = Field(default=10.0, description="Snippet download timeout")
    datafile_timeout: float = Field(default=10.0, description="Datafile download timeout")
    rest_api_timeout: float = Field(default=25.0, description="REST API timeout")

    # Browser
    headless: bool = Field(default=True, description="Run browser in headless mode")
    navigation_timeout: int = Field(default=20000, description="Page navigation timeout in ms")
    settle_delay_ms: int = Field(
        default=1500,
        description="Wait after DOMContentLoaded for page scripts to initialize"
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        description="User agent for rendering"
    )
    block_resource_types: list[str] = Field(
        default=["image", "media", "font"],
        description="Resource types aborted during rendering"
    )
    screenshot_quality: int = Field(default=70, description="JPEG screenshot quality")

    # Report limits
    max_analytics_requests: int = Field(
        default=10,
        description="Maximum analytics network requests kept in a report"
    )
    max_datalayer_entries: int = Field(
        default=20,
        description="Maximum dataLayer entries kept in a report"
    )

    # Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging
    log_enabled: bool = Field(default=True, description="Print component log lines")


# Global settings instance
settings = Settings()
