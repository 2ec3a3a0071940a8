# settings.py
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Primary DB (DB_URL wins over the parts)
    DB_URL: Optional[str] = None
    DB_ENGINE: str = "postgresql+psycopg2"
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 5432
    DB_NAME: str = "circa"
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""

    SQL_ECHO: bool = False
    POOL_SIZE: int = 5
    POOL_RECYCLE: int = 280

    # sql | supabase
    STORE_BACKEND: str = "sql"
    SUPABASE_URL: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    SUPABASE_TIMEOUT: int = 20

    # table / column overrides
    FACTORS_TABLE: Optional[str] = None
    ENTRIES_TABLE: Optional[str] = None
    PREFERENCES_TABLE: Optional[str] = None
    FACTOR_SOURCE_COL: Optional[str] = None

    # matching overrides (circa_match.config)
    DEFAULT_SOURCE: Optional[str] = None
    MATCH_THRESHOLD: Optional[float] = None
    SEARCH_LIMIT: Optional[int] = None
    DIAG_TOP_N: Optional[int] = None

    def db_url(self) -> str:
        if self.DB_URL:
            return self.DB_URL
        if self.DB_ENGINE.startswith("sqlite"):
            return f"sqlite:///{self.DB_NAME}"
        return (
            f"{self.DB_ENGINE}://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


settings = Settings()
