"""Database session. SQLite compatible with connection pooling."""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from chatshop.core.config import settings


def build_engine(database_url: str):
    """Create an engine with pooling suited to the backend."""
    if database_url.startswith("sqlite"):
        # SQLite: NullPool for thread-safety; 15s busy timeout so concurrent
        # writers wait on the file lock instead of failing immediately
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 15},
            poolclass=NullPool,
        )
    # PostgreSQL/MySQL: QueuePool with sensible defaults
    return create_engine(
        database_url,
        pool_size=5,  # Number of persistent connections
        max_overflow=10,  # Max temporary connections
        pool_timeout=30,  # Seconds to wait for connection
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Verify connection health
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
