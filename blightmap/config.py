"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Tree Data Source
    tree_data_source: str = Field(
        default="data/jindai_trees_sample.csv",
        description="Local path or http(s) URL of the tree observation CSV"
    )
    tree_data_format: str = Field(
        default="auto",
        description="CSV layout: auto, time_series or suginami"
    )
    load_row_limit: int = Field(
        default=0,
        description="Maximum number of CSV rows to read (0 = no limit)"
    )

    # Remote Loading / Retry Configuration
    request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for fetching a remote CSV"
    )
    max_retry_attempts: int = Field(
        default=1,
        description="Maximum number of attempts for fetching a remote CSV"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=1,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Outbreak Clustering Parameters
    cluster_algorithm: str = Field(
        default="circle_union",
        description="Default clustering algorithm: circle_union or density"
    )
    cluster_radius_m: float = Field(
        default=25.0,
        description="Default cluster radius in meters"
    )
    cluster_radius_min_m: float = Field(
        default=1.0,
        description="Smallest accepted cluster radius in meters"
    )
    cluster_radius_max_m: float = Field(
        default=200.0,
        description="Largest radius accepted by the API in meters"
    )
    overlap_threshold: float = Field(
        default=0.3,
        description="Fraction of the smaller circle's radius that must overlap to merge"
    )
    density_min_points: int = Field(
        default=3,
        description="Neighbor count that makes a tree a core point in density clustering"
    )

    # Polygon Rendering
    polygon_padding_m: float = Field(
        default=3.0,
        description="Outward padding applied to hull vertices before smoothing"
    )
    point_cluster_radius_m: float = Field(
        default=10.0,
        description="Radius of the circle drawn for clusters with fewer than 3 trees"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_enabled: bool = Field(
        default=True,
        description="Whether per-client rate limiting is active"
    )
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Tree Blight Map",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
