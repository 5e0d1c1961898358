import os
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from farm_office.core.config import settings


def create_engine(database_uri: str = None) -> AsyncEngine:
    """创建异步引擎

    仅在开发环境打印SQL（通过环境变量控制）
    """
    uri = database_uri or settings.async_database_uri
    if uri.startswith("sqlite:///"):
        uri = uri.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return create_async_engine(
        uri,
        echo=os.getenv("SQL_DEBUG", "false").lower() == "true",
        future=True,
    )
