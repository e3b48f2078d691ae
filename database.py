import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import DatabaseSettings, get_settings

logger = logging.getLogger(__name__)


def build_engine(settings: DatabaseSettings):
    """Un único pool de conexiones para todo el proceso."""
    if settings.url and settings.url.startswith("sqlite"):
        # SQLite en memoria: todas las sesiones deben compartir la misma conexión
        return create_engine(
            settings.url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    url = settings.url or URL.create(
        "postgresql+psycopg2",
        username=settings.user,
        password=settings.password,
        host=settings.host,
        port=settings.port,
        database=settings.name,
    )
    return create_engine(
        url,
        connect_args={"sslmode": settings.sslmode},
        pool_size=settings.pool_size,
        max_overflow=0,
        pool_pre_ping=True,
    )


engine = build_engine(get_settings().database)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_connection():
    """Lanza la excepción del driver si la base no responde."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def init_db():
    # create_all solo crea las tablas que no existen
    import models  # noqa: F401  registra Product en Base.metadata

    Base.metadata.create_all(bind=engine)


def dispose():
    engine.dispose()
    logger.info("Pool de conexiones cerrado")
