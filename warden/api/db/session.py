"""
Database Session Management

Async SQLAlchemy engine and sessions. The schema comes from the Alembic
revisions under warden/api/alembic; DEBUG builds it from the models instead.
"""

import logging
import ssl
from pathlib import Path
from typing import AsyncGenerator, Optional

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from warden.api.config import settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "alembic"

# Module-level engine (created lazily)
_engine: Optional[AsyncEngine] = None
_async_session_maker: Optional[async_sessionmaker] = None


def _ssl_context() -> ssl.SSLContext:
    """TLS context for managed PostgreSQL that presents its own certificate."""
    context = ssl.create_default_context()
    if not settings.DATABASE_SSL_VERIFY:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def get_engine() -> AsyncEngine:
    """Get or create the database engine."""
    global _engine

    if _engine is None:
        url = settings.DATABASE_URL
        logger.info("Creating database engine for %s", url.split("@")[-1])

        connect_args = {}
        if settings.DATABASE_SSL:
            connect_args["ssl"] = _ssl_context()

        _engine = create_async_engine(
            url,
            echo=settings.DATABASE_ECHO,
            poolclass=NullPool,
            connect_args=connect_args,
        )

    return _engine


def get_session_maker() -> async_sessionmaker:
    """Get or create the session maker."""
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    return _async_session_maker


def migration_config(connection: Optional[Connection] = None) -> Config:
    """Alembic config pointing at the bundled revisions."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    if connection is not None:
        config.attributes["connection"] = connection
    return config


def _upgrade(connection: Connection) -> None:
    command.upgrade(migration_config(connection), "head")


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """
    Bring the schema up to date.

    DEBUG creates tables straight from the models. Otherwise the Alembic
    revisions run to head unless DATABASE_AUTO_MIGRATE is off.
    """
    from warden.api.db.models import Base

    engine = engine or get_engine()

    async with engine.begin() as conn:
        if settings.DEBUG:
            logger.info("Creating tables from models (DEBUG mode)")
            await conn.run_sync(Base.metadata.create_all)
        elif settings.DATABASE_AUTO_MIGRATE:
            logger.info("Applying database migrations")
            await conn.run_sync(_upgrade)
        else:
            logger.info("Automatic migration disabled; expecting schema at head")


async def close_db() -> None:
    """Close database connection."""
    global _engine, _async_session_maker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
        logger.info("Database connection closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    Usage in FastAPI:
        @router.get("/principals")
        async def list_principals(db: AsyncSession = Depends(get_db)):
            ...
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
