"""Runtime configuration read from the process environment."""
import os
from typing import NamedTuple

from sqlalchemy.engine import URL


class Settings(NamedTuple):
    database_url: str
    seed_on_startup: bool
    session_secret: str
    log_level: str
    cors_origins: list[str]


def _truthy(value: str | None) -> bool:
    return (value or "").lower() in ("1", "true", "yes", "on")


def build_database_url(env=os.environ) -> str:
    # DATABASE_URL wins; otherwise compose from DB_* parts when a host is given
    url = env.get("DATABASE_URL")
    if url:
        return url
    host = env.get("DB_HOST")
    if not host:
        return "sqlite:///./storerate.db"
    return URL.create(
        env.get("DB_DRIVER", "mysql+pymysql"),
        username=env.get("DB_USER"),
        password=env.get("DB_PASSWORD"),
        host=host,
        port=int(env.get("DB_PORT", "3306")),
        database=env.get("DB_NAME", "storerate"),
    ).render_as_string(hide_password=False)


def load_settings(env=os.environ) -> Settings:
    origins = [o.strip() for o in env.get("CORS_ORIGINS", "").split(",") if o.strip()]
    return Settings(
        database_url=build_database_url(env),
        seed_on_startup=_truthy(env.get("SEED_ON_STARTUP", "1")),
        session_secret=env.get("SESSION_SECRET", "dev-secret"),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
        cors_origins=origins,
    )


settings = load_settings()


def reload_settings() -> Settings:
    global settings
    settings = load_settings()
    return settings
