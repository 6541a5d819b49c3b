from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_ROOT = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    app_name: str = "DashVerdict API"
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "sqlite:///./dashverdict.db"
    upload_dir: str = "uploads"
    report_dir: str = "reports"
    log_level: str = "INFO"

    oracle_api_key: str = ""
    oracle_base_url: str = "https://openrouter.ai/api/v1"
    oracle_model: str = "google/gemini-3-flash-preview"
    oracle_timeout_sec: float = 120.0

    sample_count: int = Field(default=5, ge=1, le=25)
    event_half_width_sec: float = Field(default=5.0, gt=0.0)
    verdict_policy: str = "majority"
    supermajority_threshold: float = Field(default=0.6, gt=0.5, le=1.0)

    prompts_path: str = str(PACKAGE_ROOT / "prompts.yaml")
    fallback_verdict: str = "victim"


settings = Settings()
