"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Cycles"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Engine ---
    engine_config_path: str | None = None  # defaults to the bundled engine_config.yaml
    default_privacy_mode: bool | None = None  # None = use engine_config.yaml
    adaptive_scorer_enabled: bool = True  # still gated by the ml_predictions flag
    refresh_loop_enabled: bool = True

    # --- Remote config ---
    # JSON object, e.g. FLAG_OVERRIDES='{"ml_predictions": true}'
    flag_overrides: dict[str, bool] = {}

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
