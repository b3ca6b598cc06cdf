from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str = "sqlite:///./mathquest.db"
    db_pool_timeout_seconds: int = 10

    # Problem cache store (disabled when unset)
    problem_cache_url: str | None = None
    cache_probability: float = 0.25

    # Generation backend (Gemini)
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    generation_timeout_seconds: float = 30.0

    # Quota ledger
    owner_ips: list[str] | str = []
    general_play_limit: int = 10
    general_window_hours: int = 8
    first_request_spacing_seconds: int = 60

    # Leaderboard
    difficulty_score_caps: dict[str, int] = {"Easy": 5, "Medium": 10, "Hard": 15, "Expert": 20}
    default_score_cap: int = 100
    leaderboard_top_limit: int = 100
    username_min_length: int = 3
    username_max_length: int = 25

    # Rate Limiting
    rate_limit_submit: str = "30/minute"
    rate_limit_leaderboard_read: str = "60/minute"
    rate_limit_cert_request: str = "5/minute"
    rate_limit_admin: str = "60/minute"

    # Administration
    admin_api_key: str | None = None
    certificate_image_base_url: str = "https://example.com/certificate.png"

    # Webhooks
    discord_admin_webhook_url: str | None = None
    discord_alerts_webhook_url: str | None = None

    # Background jobs
    cleanup_interval_hours: int = 1
    daily_play_retention_days: int = 30

    # Logging
    log_level: str = "info"
    log_format: str = "console"

    # CORS
    cors_origins: list[str] | str = ["http://localhost:5173", "http://127.0.0.1:5173"]

    @field_validator("cors_origins", "owner_ips", mode="before")
    @classmethod
    def parse_comma_separated(cls, v):
        """Parse comma-separated strings into lists."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


settings = Settings()
