from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    github_token: str = ""  # Read from GITHUB_TOKEN, validated by the client
    github_api_url: str = "https://api.github.com"
    cache_dir: Path = Path(".github.cache")
    recency_days: int = 2  # Only runs created within this window are inspected
    workflow_runs_per_page: int = 10
    check_runs_per_page: int = 10
    repos_per_page: int = 100  # GitHub REST API max is 100 per page
    max_rate_limit_retries: int = 2
    request_timeout: int = 30


settings = Settings()
