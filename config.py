"""Configuración de la API de productos.

Todo sale de variables de entorno (opcionalmente desde un .env).
Si falta algo obligatorio falla al arrancar, no en la primera petición.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_required_env(key: str) -> str:
    value = os.environ.get(key)
    if not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set. "
            f"Please add it to your .env file."
        )
    return value


def _get_int_env(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable '{key}' must be an integer, got {raw!r}")


def _get_bool_env(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DatabaseSettings:
    """Conexión a Postgres (o una URL completa de SQLAlchemy)."""
    url: Optional[str]
    host: str
    port: int
    user: Optional[str]
    password: Optional[str]
    name: Optional[str]
    sslmode: str
    pool_size: int


@dataclass(frozen=True)
class PerimeterSettings:
    enabled: bool
    redis_url: str
    rate_limit_requests: int
    rate_limit_window: int


@dataclass(frozen=True)
class Settings:
    database: DatabaseSettings
    perimeter: PerimeterSettings
    port: int
    environment: str
    frontend_dist: str
    cors_origins: tuple
    log_level: str

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    """
    Lee la configuración del entorno.

    DATABASE_URL tiene prioridad; sin ella hace falta al menos PGDATABASE.
    PGSSLMODE=require cifra la conexión pero no verifica el certificado
    (necesario con las bases gestionadas tipo RDS).

    Raises:
        ConfigurationError: si falta una variable obligatoria o un número no lo es.
    """
    load_dotenv()

    database_url = os.environ.get("DATABASE_URL") or None
    database = DatabaseSettings(
        url=database_url,
        host=os.environ.get("PGHOST", "localhost"),
        port=_get_int_env("PGPORT", 5432),
        user=os.environ.get("PGUSER"),
        password=os.environ.get("PGPASSWORD"),
        name=os.environ.get("PGDATABASE") if database_url else _get_required_env("PGDATABASE"),
        sslmode=os.environ.get("PGSSLMODE", "require"),
        pool_size=_get_int_env("DB_POOL_SIZE", 10),
    )

    perimeter = PerimeterSettings(
        enabled=_get_bool_env("PERIMETER_ENABLED", True),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
        rate_limit_requests=_get_int_env("RATE_LIMIT_REQUESTS", 10),
        rate_limit_window=_get_int_env("RATE_LIMIT_WINDOW", 10),
    )

    origins = os.environ.get("CORS_ORIGINS", "*")

    return Settings(
        database=database,
        perimeter=perimeter,
        port=_get_int_env("PORT", 3000),
        environment=os.environ.get("APP_ENV", "development").strip().lower(),
        frontend_dist=os.environ.get("FRONTEND_DIST", os.path.join("frontend", "dist")),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Singleton perezoso: se carga la primera vez que alguien lo pide."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
