import os
from functools import lru_cache
from pathlib import Path
from typing import Optional


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        token_secret: Optional[str],
        token_max_age_days: int,
        environment: str,
        cors_origins: list[str],
        ai_api_key: Optional[str],
        ai_api_url: str,
        ai_model: str,
        ai_temperature: float,
        ai_max_tokens: int,
        ai_timeout_secs: float,
        port: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.token_secret = token_secret
        self.token_max_age_days = token_max_age_days
        self.environment = environment
        self.cors_origins = cors_origins
        self.ai_api_key = ai_api_key
        self.ai_api_url = ai_api_url
        self.ai_model = ai_model
        self.ai_temperature = ai_temperature
        self.ai_max_tokens = ai_max_tokens
        self.ai_timeout_secs = ai_timeout_secs
        self.port = port

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCE_DATABASE_URL")
    if not database_url:
        default_db = _ensure_data_dir() / "finance.db"
        database_url = f"sqlite:///{default_db}"
    cors_origins = [
        origin.strip()
        for origin in os.getenv("FINANCE_CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]
    return Settings(
        database_url=database_url,
        timezone=os.getenv("FINANCE_TIMEZONE", "UTC"),
        token_secret=os.getenv("FINANCE_TOKEN_SECRET") or None,
        token_max_age_days=int(os.getenv("FINANCE_TOKEN_MAX_AGE_DAYS", "7")),
        environment=os.getenv("FINANCE_ENV", "production").lower(),
        cors_origins=cors_origins,
        ai_api_key=os.getenv("FINANCE_AI_API_KEY") or None,
        ai_api_url=os.getenv(
            "FINANCE_AI_API_URL", "https://api.together.xyz/v1/chat/completions"
        ),
        ai_model=os.getenv("FINANCE_AI_MODEL", "deepseek-ai/DeepSeek-V3"),
        ai_temperature=float(os.getenv("FINANCE_AI_TEMPERATURE", "0.7")),
        ai_max_tokens=int(os.getenv("FINANCE_AI_MAX_TOKENS", "500")),
        ai_timeout_secs=float(os.getenv("FINANCE_AI_TIMEOUT_SECS", "30")),
        port=int(os.getenv("FINANCE_PORT", os.getenv("PORT", "5000"))),
    )
