"""
Database connection utilities for async SQLAlchemy.
"""
import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from vetpromo.config import settings
from vetpromo.errors import DependencyUnavailable

logger = logging.getLogger(__name__)

# Failures that mean "the database could not answer"
DATABASE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def normalize_database_url(url: str) -> str:
    """
    Normalize the database URL:
    - postgresql:// -> postgresql+asyncpg://
    - postgres:// (Heroku/Render style) -> postgresql+asyncpg://
    """
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def mask_url(url: str) -> str:
    """Mask the password in a database URL for logging."""
    if '@' in url:
        parts = url.split('@')
        user_pass = parts[0].split('//')[1] if '//' in parts[0] else parts[0]
        if ':' in user_pass:
            user = user_pass.split(':')[0]
            return url.replace(user_pass, f"{user}:***")
    return url


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Create the async engine on first use."""
    global _engine

    if _engine is None:
        url = normalize_database_url(settings.database_url)
        logger.info(f"Database URL: {mask_url(url)}")
        connect_args = {
            "command_timeout": settings.store_query_timeout_seconds,
            "server_settings": {
                "application_name": "vetpromo_engine"
            }
        } if "+asyncpg" in url else {}
        _engine = create_async_engine(
            url,
            echo=False,
            pool_pre_ping=True,  # check connections before use
            pool_recycle=3600,
            connect_args=connect_args
        )
    return _engine


def get_session_factory() -> async_sessionmaker:
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )
    return _session_factory


async def fetch_all(
    session_factory: async_sessionmaker,
    sql: str,
    params: Dict[str, Any],
    dependency: str
) -> List[Mapping[str, Any]]:
    """
    Run a read query in its own short-lived session.

    Returns:
        Row mappings

    Raises:
        DependencyUnavailable: On any database failure
    """
    try:
        async with session_factory() as session:
            result = await session.execute(text(sql), params)
            return [row._mapping for row in result.fetchall()]
    except DATABASE_ERRORS as e:
        raise DependencyUnavailable(dependency, str(e)) from e


async def fetch_scalar(
    session_factory: async_sessionmaker,
    sql: str,
    params: Dict[str, Any],
    dependency: str
) -> Any:
    try:
        async with session_factory() as session:
            result = await session.execute(text(sql), params)
            return result.scalar()
    except DATABASE_ERRORS as e:
        raise DependencyUnavailable(dependency, str(e)) from e
