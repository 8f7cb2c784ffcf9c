"""SQLAlchemy base configuration and session management."""
from functools import lru_cache
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from signal_feed.config.settings import get_settings

# Base class for all models
Base = declarative_base()

@lru_cache()
def get_engine() -> Engine:
    """
    Create the database engine from settings on first use.
    SQLite gets a single-file connection shared across threads;
    server databases get a bounded connection pool.
    """
    settings = get_settings()
    url = settings.DATABASE_URL

    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )

    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
    )

@lru_cache()
def get_session_factory() -> sessionmaker:
    """Session factory bound to the configured engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())

def get_db() -> Session:
    """
    Dependency for FastAPI routes.
    Provides database session and ensures cleanup.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()

def init_db(engine: Engine = None) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata
    from signal_feed.models import signal_events  # noqa: F401

    Base.metadata.create_all(bind=engine or get_engine())
