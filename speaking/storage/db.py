from __future__ import annotations

import os
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from ..helper.env import load_repo_dotenv
from .models import Base

# .env must be loaded before DATABASE_URL is read.
load_repo_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "").strip()


def create_engine(url: Optional[str] = None) -> AsyncEngine:
    url = (url or DATABASE_URL).strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set")
    return create_async_engine(url, echo=False, pool_pre_ping=True)


def make_sessionmaker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


async def init_models(engine: AsyncEngine) -> None:
    """Create missing tables. Migrations are not managed here."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
