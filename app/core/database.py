"""
Database configuration and session management
"""
import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from app.core.config import settings
from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs):
    """Create an engine; sqlite gets thread sharing instead of pool sizing"""
    if database_url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_size", settings.DATABASE_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DATABASE_MAX_OVERFLOW)
        kwargs.setdefault("pool_pre_ping", True)
    return create_engine(database_url, echo=settings.DEBUG, **kwargs)


engine = build_engine(settings.DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

# Create declarative base for models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Dependency function to get database session

    Usage:
        @app.get("/")
        def read_data(db: Session = Depends(get_db)):
            # Use db session here
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        db.rollback()
        logger.error(f"Database error in get_db: {e}")
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Unit of work: commit everything written inside the block or nothing

    Domain errors raised inside the block roll back and propagate unchanged;
    store failures are rolled back and surfaced as PersistenceError.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Transaction rolled back: {e}")
        raise PersistenceError("The operation could not be saved") from e
    except Exception:
        db.rollback()
        raise


def init_db():
    """Create database tables"""
    # Models must be imported so their tables are registered on Base
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def test_connection() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
