import os

from pydantic_settings import BaseSettings, SettingsConfigDict

DEV_DEFAULT_DB_URL = "sqlite:///./dev.db"


class Settings(BaseSettings):
    app_name: str = "ledger_runs"
    env: str = "dev"
    database_url: str = "sqlite+pysqlite:///./ledger_runs.db"
    log_level: str = "INFO"

    content_root: str = "./content"
    default_content_id: str = "genesis"
    default_start_scene: str = "1.1"
    default_arrival_scene: str = "2B"

    base_dc: int = 13
    turn_timeout_s: int = 86400
    sleight_history_limit: int = 50
    durability_tick: int = 1

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _is_sqlite_memory_url(db_url: str) -> bool:
    candidate = (db_url or "").strip().lower()
    if not candidate.startswith("sqlite"):
        return False
    if ":memory:" in candidate:
        return True
    return candidate in {
        "sqlite://",
        "sqlite:///",
        "sqlite+pysqlite://",
        "sqlite+pysqlite:///",
    }


def validate_database_url(env: str, db_url: str | None) -> str:
    env_value = (env or "").strip().lower()
    if env_value != "dev":
        return db_url or ""

    if not db_url or not db_url.strip():
        return DEV_DEFAULT_DB_URL

    if _is_sqlite_memory_url(db_url):
        raise RuntimeError(
            "DATABASE_URL cannot be sqlite :memory: when ENV=dev because runs must survive restarts. "
            f"Set DATABASE_URL={DEV_DEFAULT_DB_URL} or another file-based sqlite url."
        )
    return db_url


settings = Settings()
settings.database_url = validate_database_url(settings.env, os.getenv("DATABASE_URL") or settings.database_url)
