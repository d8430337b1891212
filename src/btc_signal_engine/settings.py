from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    store_backend: str = Field(default="file", alias="SIGNAL_STORE_BACKEND")
    store_dir: str = Field(default="data", alias="SIGNAL_STORE_DIR")
    history_key: str = Field(default="signal-history", alias="SIGNAL_HISTORY_KEY")
    calls_key: str = Field(default="historical-calls", alias="HISTORICAL_CALLS_KEY")

    github_repo: str = Field(default="", alias="GITHUB_REPO")
    github_token: str = Field(default="", alias="GITHUB_TOKEN")
    github_branch: str = Field(default="main", alias="GITHUB_BRANCH")
    github_data_dir: str = Field(default="data", alias="GITHUB_DATA_DIR")

    max_signal_history: int = Field(default=500, alias="MAX_SIGNAL_HISTORY")
    min_pattern_samples: int = Field(default=5, alias="MIN_PATTERN_SAMPLES")
    call_retention_days: int = Field(default=30, alias="CALL_RETENTION_DAYS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


settings = Settings()
