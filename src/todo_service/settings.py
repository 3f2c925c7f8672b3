from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.engine import URL, make_url


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - NODE_ENV / APP_ENV: 'production' enables TLS to the database, rate limiting
      and compact logging. Anything else is development (default).
    - HOST, PORT: listen address. HOST defaults to 0.0.0.0 in production and
      localhost otherwise; PORT defaults to 3000.
    - DATABASE_URL: SQLAlchemy URL for the todo storage. When unset, the URL is
      assembled from PGUSER, PGPASSWORD, PGHOST, PGPORT and PGDATABASE.
    - DB_POOL_MAX: maximum concurrent connections (default 20)
    - DB_IDLE_TIMEOUT: seconds a pooled connection may stay idle (default 30)
    - DB_CONNECT_TIMEOUT: seconds to wait for a free connection (default 2)
    - DB_PING_AFTER: seconds of idleness after which a reused connection is
      pinged before use (default 5)
    - DB_CREATE_SCHEMA: 'true' to create the todos table at startup (default: false)
    - CLIENT_URL: the single origin allowed for cross-origin requests; unset disables CORS
    - RATE_LIMIT_ENABLED: defaults to true in production, false otherwise
    - RATE_LIMIT_MAX, RATE_LIMIT_WINDOW: requests allowed per client per window
      of seconds (default 100 per 60)
    - LOG_LEVEL: root log level (default INFO)
    """

    environment: str
    host: str
    port: int
    database_url: str
    db_pool_max: int
    db_idle_timeout: float
    db_connect_timeout: float
    db_ping_after: float
    db_create_schema: bool
    client_url: Optional[str]
    rate_limit_enabled: bool
    rate_limit_max: int
    rate_limit_window: float
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def db_ssl_required(self) -> bool:
        return self.is_production


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value.strip())
    except ValueError:
        return default


def _database_url() -> str:
    """
    Resolve the storage URL. DATABASE_URL wins; otherwise the libpq-style PG*
    variables are assembled into a psycopg2 URL.
    """
    explicit = os.getenv("DATABASE_URL")
    if explicit:
        url = make_url(explicit)
        # Bare postgres:// URLs (as handed out by most hosting providers) get the psycopg2 driver.
        if url.drivername in {"postgres", "postgresql"}:
            url = url.set(drivername="postgresql+psycopg2")
        return url.render_as_string(hide_password=False)

    url = URL.create(
        "postgresql+psycopg2",
        username=os.getenv("PGUSER") or None,
        password=os.getenv("PGPASSWORD") or None,
        host=_get_env("PGHOST", "localhost"),
        port=_parse_int(_get_env("PGPORT", "5432"), 5432),
        database=_get_env("PGDATABASE", "postgres"),
    )
    return url.render_as_string(hide_password=False)


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from the environment (and a .env file when present)."""
    load_dotenv()

    environment = (os.getenv("NODE_ENV") or _get_env("APP_ENV", "development")).strip().lower()
    is_production = environment == "production"

    client_url = os.getenv("CLIENT_URL", "").strip() or None

    return Settings(
        environment=environment,
        host=_get_env("HOST", "0.0.0.0" if is_production else "localhost").strip(),
        port=_parse_int(_get_env("PORT", "3000"), 3000),
        database_url=_database_url(),
        db_pool_max=max(_parse_int(_get_env("DB_POOL_MAX", "20"), 20), 1),
        db_idle_timeout=_parse_float(_get_env("DB_IDLE_TIMEOUT", "30"), 30.0),
        db_connect_timeout=_parse_float(_get_env("DB_CONNECT_TIMEOUT", "2"), 2.0),
        db_ping_after=_parse_float(_get_env("DB_PING_AFTER", "5"), 5.0),
        db_create_schema=_parse_bool(_get_env("DB_CREATE_SCHEMA", "false"), False),
        client_url=client_url,
        rate_limit_enabled=_parse_bool(
            _get_env("RATE_LIMIT_ENABLED", "true" if is_production else "false"), is_production
        ),
        rate_limit_max=max(_parse_int(_get_env("RATE_LIMIT_MAX", "100"), 100), 1),
        rate_limit_window=_parse_float(_get_env("RATE_LIMIT_WINDOW", "60"), 60.0),
        log_level=_get_env("LOG_LEVEL", "INFO").strip().upper(),
    )
