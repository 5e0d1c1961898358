import asyncio
from sqlalchemy.ext.asyncio import AsyncEngine

from farm_office.db.base import Base
from farm_office.db.session import create_engine

# 导入模型，确保表能被创建
from farm_office.models import Document  # noqa: F401


async def ensure_tables_exist(engine: AsyncEngine) -> None:
    """
    确保数据库表存在（应用启动时调用）
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def init_db() -> None:
    """
    初始化数据库 - 创建所有表
    """
    engine = create_engine()
    try:
        await ensure_tables_exist(engine)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
