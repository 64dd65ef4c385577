from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from typing import Optional
from functools import lru_cache
from marginalia.core.config import get_settings

# Database configuration
SQLITE_DEV_DB = "sqlite:///./dev.db"
SQLITE_TEST_DB = "sqlite:///./test.db"
SQLITE_PROD_DB = "sqlite:///./prod.db"

Base = declarative_base()

def resolve_database_url() -> str:
    """Pick the database URL for the current APP_ENV"""
    settings = get_settings()
    if settings.app_env == "test":
        return SQLITE_TEST_DB
    if settings.app_env == "production":
        return settings.database_url or SQLITE_PROD_DB
    return settings.database_url or SQLITE_DEV_DB

def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value

def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite gets foreign keys and a Unicode lower()"""
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    engine = create_engine(
        database_url,
        connect_args={"check_same_thread": False}
    )

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # SQLite's own lower() only folds ASCII
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)

    return engine

@lru_cache()
def get_engine() -> Engine:
    """Get the database engine"""
    return build_engine(resolve_database_url())

def get_session_maker():
    """Get the session factory"""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())

def get_session():
    """Get a database session"""
    SessionLocal = get_session_maker()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

def create_tables(db_engine: Optional[Engine] = None):
    """Create all tables

    Args:
        db_engine: optional engine, the default engine is used when omitted
    """
    # register every model on Base.metadata
    from marginalia.models import image, post, post_tag, tag, user  # noqa: F401

    engine = db_engine or get_engine()
    Base.metadata.create_all(bind=engine)
