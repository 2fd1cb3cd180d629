"""
Application configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "amenity-finder-api"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|test|staging|production)$")
    debug: bool = False

    # Database -- empty string selects the in-memory store
    database_url: str = ""

    # Redis (rate limiting only)
    redis_url: str = ""

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"]
    )

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # Moderator requests are HMAC-signed by the admin proxy; empty disables admin routes
    admin_hmac_secret: str = ""
    admin_replay_window_s: int = 30

    # Rate Limiting
    rate_limit_anon_per_min: int = 30
    rate_limit_auth_per_min: int = 120
    rate_limit_write_per_min: int = 10

    # Overpass -- tried in order, first success wins
    overpass_urls: list[str] = Field(
        default=[
            "https://overpass-api.de/api/interpreter",
            "https://overpass.kumi.systems/api/interpreter",
        ],
        min_length=2,
    )
    overpass_timeout_s: float = 30.0

    # Default area for category listings without explicit bounds
    # (south, west, north, east) -- San Francisco
    default_bounds: tuple[float, float, float, float] = (37.7049, -122.5161, 37.8349, -122.3549)

    # Reviews
    flag_threshold: int = Field(default=2, ge=1)
    # A claim older than this is considered abandoned and may be claimed again
    message_claim_ttl_s: int = Field(default=300, ge=1)
    thank_you_message: str = (
        "Thank you for your review! Your contribution helps others find great "
        "facilities. Your review is now pending approval."
    )

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
