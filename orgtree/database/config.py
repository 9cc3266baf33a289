"""
Engine and session management for the org tree store.

SQLite is the default and is what the tests run against; MySQL/MariaDB and
PostgreSQL are selected with ``DB_TYPE`` or a full ``DATABASE_URL``.
"""

import os
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from .models import create_all_tables

logger = logging.getLogger(__name__)

# DB_TYPE -> (URL template, default port, default user)
_SERVER_URLS = {
    'mysql': ("mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4", '3306', 'root'),
    'mariadb': ("mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4", '3306', 'root'),
    'postgresql': ("postgresql://{user}:{password}@{host}:{port}/{name}", '5432', 'postgres'),
}


def database_url_from_env() -> str:
    """
    Resolve the database URL.

    DATABASE_URL wins when set. Otherwise the URL is assembled from DB_TYPE,
    DB_HOST, DB_PORT, DB_NAME, DB_USER and DB_PASSWORD; sqlite uses DB_NAME
    as a file in the working directory (default ``orgtree.db``).

    Raises:
        ValueError: DB_TYPE is not sqlite, mysql, mariadb or postgresql
    """
    explicit = os.getenv('DATABASE_URL')
    if explicit:
        return explicit

    db_type = os.getenv('DB_TYPE', 'sqlite').lower()
    if db_type == 'sqlite':
        return f"sqlite:///{Path.cwd() / os.getenv('DB_NAME', 'orgtree.db')}"

    if db_type not in _SERVER_URLS:
        raise ValueError(f"Unsupported database type: {db_type}")

    template, default_port, default_user = _SERVER_URLS[db_type]
    return template.format(
        user=os.getenv('DB_USER', default_user),
        password=os.getenv('DB_PASSWORD', ''),
        host=os.getenv('DB_HOST', 'localhost'),
        port=os.getenv('DB_PORT', default_port),
        name=os.getenv('DB_NAME', 'orgtree'),
    )


class DatabaseConfig:
    """
    Owns the engine and the session factory for one database.

    The engine is created lazily by initialize(); every other method
    initializes on first use.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False):
        self.database_url = database_url or database_url_from_env()
        self.echo = echo
        self.db_type = self.database_url.split(':', 1)[0].split('+', 1)[0]
        if self.db_type == 'postgres':
            self.db_type = 'postgresql'
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker] = None
        self._is_initialized = False

        logger.info(f"Database configured for {self.db_type}")

    @property
    def is_memory_database(self) -> bool:
        return self.db_type == 'sqlite' and (
            ':memory:' in self.database_url or self.database_url in ('sqlite://', 'sqlite:///')
        )

    def _engine_kwargs(self) -> Dict[str, Any]:
        if self.db_type == 'sqlite':
            # A single shared connection keeps in-memory databases alive across sessions
            return {
                'echo': self.echo,
                'poolclass': StaticPool,
                'connect_args': {'check_same_thread': False, 'timeout': 30},
            }

        kwargs: Dict[str, Any] = {
            'echo': self.echo,
            'poolclass': QueuePool,
            'pool_size': int(os.getenv('DB_POOL_SIZE', '10')),
            'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', '20')),
            'pool_timeout': int(os.getenv('DB_POOL_TIMEOUT', '30')),
            'pool_recycle': int(os.getenv('DB_POOL_RECYCLE', '3600')),
            'pool_pre_ping': True,
        }
        if self.db_type == 'mysql':
            kwargs['connect_args'] = {'charset': 'utf8mb4', 'connect_timeout': 30}
        return kwargs

    def _on_connect(self, dbapi_connection, connection_record) -> None:
        if self.db_type != 'sqlite':
            return
        cursor = dbapi_connection.cursor()
        # ON DELETE SET NULL on group references needs enforced foreign keys
        cursor.execute("PRAGMA foreign_keys=ON")
        if not self.is_memory_database:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    def initialize(self) -> None:
        """
        Create the engine, verify it with ``SELECT 1`` and build the session factory.

        Raises:
            SQLAlchemyError: the database is unreachable
        """
        if self._is_initialized:
            return

        try:
            self.engine = create_engine(self.database_url, **self._engine_kwargs())
            event.listen(self.engine, "connect", self._on_connect)
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize {self.db_type} database: {e}")
            raise

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        self._is_initialized = True
        logger.info(f"Database engine ready ({self.db_type})")

    def create_tables(self) -> None:
        self.initialize()
        try:
            create_all_tables(self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create tables: {e}")
            raise
        logger.info("Database tables created")

    def get_session(self) -> Session:
        self.initialize()
        return self.SessionLocal()

    @contextmanager
    def get_session_context(self) -> Iterator[Session]:
        """
        Session scope: commits on success, rolls back and re-raises on error.

            with db_config.get_session_context() as session:
                session.add(group)
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.debug(f"Session rolled back: {e}")
            raise
        finally:
            session.close()

    def test_connection(self) -> bool:
        """True when ``SELECT 1`` succeeds."""
        try:
            self.initialize()
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database connection test failed: {e}")
            return False
        return True

    def get_connection_info(self) -> Dict[str, Any]:
        """Connection details with credentials stripped from the URL."""
        return {
            'database_type': self.db_type,
            'database_url': self.database_url.rsplit('@', 1)[-1],
            'is_initialized': self._is_initialized,
            'echo_enabled': self.echo,
        }

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connections closed")


def initialize_database(
    database_url: Optional[str] = None,
    echo: bool = False,
    create_tables: bool = True,
) -> DatabaseConfig:
    """
    Build and initialize a DatabaseConfig, creating tables unless told not to.
    """
    db_config = DatabaseConfig(database_url=database_url, echo=echo)
    db_config.initialize()
    if create_tables:
        db_config.create_tables()
    return db_config
