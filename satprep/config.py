from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".satprep" / "data"
    sqlite_filename: str = "satprep.db"

    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0
    llm_retry_attempts: int = 2
    cache_ttl_seconds: float = 300.0  # generated-set cache per topic

    free_tier_limit: int = 1  # sets per calendar month for non-subscribers
    generate_rate_limit: int = 25
    generate_rate_window_seconds: int = 60

    session_cookie_name: str = "sat_session_id"
    session_duration_days: int = 30
    cookie_secure: bool = False

    log_level: str = "warning"

    model_config = {"env_prefix": "SATPREP_"}


settings = Settings()
