"""
Database connection management and ORM session factory.
Supports dialect abstraction for SQLite and PostgreSQL.
"""
from contextlib import contextmanager
from typing import Any, Iterator, List
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base
from sqlalchemy.orm import sessionmaker
from cotamarket.core.config import settings
from cotamarket.core.logger import logger

engine = create_engine(
    settings.DATABASE_URL,
    # SQLite specific: check_same_thread=False is required for FastAPI's concurrent execution model
    connect_args={"check_same_thread": False} if "sqlite" in settings.DATABASE_URL else {}
)

# Enable Write-Ahead Logging (WAL) for SQLite to handle concurrency better
if "sqlite" in settings.DATABASE_URL:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_enum_values(enum_cls: Any) -> List[str]:
    """Helper to get values from an Enum class for SQLAlchemy."""
    return [e.value for e in enum_cls]


def get_db():
    """Yields a thread-safe database session context. Ensures connection closure upon completion."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    Single transactional boundary for a business operation.
    Commits when the block completes, rolls everything back and re-raises otherwise.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.warning("Transaction rolled back")
        raise


def init_db():
    """Idempotent initialization of database schema artifacts."""
    # Models must be imported so that their tables are registered on Base.metadata
    import cotamarket.auth.models  # noqa: F401
    import cotamarket.cotas.models  # noqa: F401
    import cotamarket.proposals.models  # noqa: F401

    logger.info("Creating database tables")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
