# database.py

import asyncio
import logging
import os

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from settings import LOCAL_DATABASE_URL, normalize_database_url

logger = logging.getLogger(__name__)


def make_engine(url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(normalize_database_url(url), echo=echo) # Set echo=True for SQL logging


def make_session_factory(bind: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Engine and session class used by the read API
DATABASE_URL = os.environ.get("POSTGRES_URL") or LOCAL_DATABASE_URL
engine = make_engine(DATABASE_URL)
AsyncSessionLocal = make_session_factory(engine)

# Dependency to get DB session
async def get_db() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session

# Create the posts table if it does not exist yet
async def create_tables(bind: AsyncEngine = engine):
    from models import Base # Import Base here to avoid circular imports
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Posts table checked on %s", bind.url.render_as_string(hide_password=True))

# Retry table creation while the database is still starting up
async def init_db(bind: AsyncEngine = engine, attempts: int = 5, delay: float = 2.0):
    for attempt in range(1, attempts + 1):
        try:
            await create_tables(bind)
            return
        except (SQLAlchemyError, OSError) as e:
            if attempt == attempts:
                raise
            logger.warning("Failed to connect to DB (attempt %d/%d): %s. Retrying in %ss...", attempt, attempts, e, delay)
            await asyncio.sleep(delay)
