from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # `.env.prod` takes priority over `.env`
        env_file=(".env", ".env.prod")
    )

    app_name: str = "Jobly"

    # Shared secret for signing and verifying bearer tokens
    secret_key: str = "secret-dev"
    jwt_algorithm: str = "HS256"

    # bcrypt cost; tests drop this to the minimum (4) to stay fast
    bcrypt_work_factor: int = 12

    # Full SQLAlchemy URL; when unset database.py falls back to DB_* vars or SQLite
    database_url: Optional[str] = None


@lru_cache()
def get_settings() -> Settings:
    return Settings()
