"""
Database setup and connection management for the API key store.

This module handles:
- SQLAlchemy engine creation
- Session management
- SQLite pragmas (WAL journal, foreign keys)
- Database health checks
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional
import os

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from loguru import logger

import dotenv

dotenv.load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./data/brohelp.db"


class DatabaseConfig:
    """Configuration for database connections"""

    def __init__(self, connection_string: Optional[str] = None, echo: Optional[bool] = None):
        self.connection_string = connection_string or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        # Echo SQL for debugging (set False in production)
        if echo is None:
            echo = os.getenv("DB_ECHO", "False").lower() == "true"
        self.echo = echo

    @property
    def is_sqlite(self) -> bool:
        return self.connection_string.startswith("sqlite")


class DatabaseManager:
    """
    Manages the engine and session lifecycle for one database.

    Usage:
        db = DatabaseManager(DatabaseConfig("sqlite:///./data/brohelp.db"))
        with db.session_scope() as session:
            # Do database operations
            pass
    """

    def __init__(self, config: Optional[DatabaseConfig] = None):
        self.config = config or DatabaseConfig()
        self._engine = self._create_engine(self.config)
        self._SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self._engine,
            expire_on_commit=False,
        )
        logger.info(f"Database initialized ({self._engine.url.get_backend_name()})")

    @staticmethod
    def _create_engine(config: DatabaseConfig) -> Engine:
        if not config.is_sqlite:
            return create_engine(config.connection_string, echo=config.echo, pool_pre_ping=True)

        url = make_url(config.connection_string)
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_engine(
            url,
            echo=config.echo,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transactional scope around a series of operations.

        Commits on success, rolls back and re-raises on any error.
        """
        session = self._SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def health_check(self) -> bool:
        """Check if database is healthy"""
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def dispose(self) -> None:
        self._engine.dispose()
