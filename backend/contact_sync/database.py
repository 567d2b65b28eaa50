"""Database connection and session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from contact_sync.config import settings

SYNC_DRIVER_PREFIX = "postgresql+psycopg2://"


def normalize_database_url(url: str) -> str:
    """Pin the psycopg2 driver, also for async URLs handed over from other services."""
    for prefix in ("postgresql+asyncpg://", "postgresql://", "postgres://"):
        if url.startswith(prefix):
            return SYNC_DRIVER_PREFIX + url[len(prefix):]
    return url


database_url = normalize_database_url(settings.DATABASE_URL)

# Create engine
engine = create_engine(
    database_url,
    echo=settings.LOG_LEVEL == "DEBUG",
    pool_pre_ping=True,
    pool_size=20,
    max_overflow=10
)

# Create session factory
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

# Base class for models
Base = declarative_base()


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
