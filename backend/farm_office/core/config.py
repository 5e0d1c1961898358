from typing import List, Literal, Union
import logging

from pydantic import AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, env_file=".env", extra="ignore")

    PROJECT_NAME: str = "农场后台管理系统"
    API_V1_STR: str = "/api/v1"

    # CORS配置
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    # 数据库配置（文档库落在 SQLite 上）
    DATABASE_URI: str = "sqlite:///./farm_office.db"

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_TO_FILE: bool = True

    # 事务重试（乐观并发冲突时重新执行事务体）
    TRANSACTION_MAX_ATTEMPTS: int = Field(default=5, ge=1)
    TRANSACTION_RETRY_DELAY: float = Field(default=0.05, ge=0)

    # 到货数量超过待到货数量时：clamp=截断为待到货数量，reject=报错
    DELIVERY_OVER_REQUEST_POLICY: Literal["clamp", "reject"] = "clamp"

    # 删除商品销售支出时是否回补库存
    EXPENSE_DELETE_RESTORES_STOCK: bool = True

    # 自动备份配置
    AUTO_BACKUP_ENABLED: bool = True
    AUTO_BACKUP_HOUR: int = Field(default=3, ge=0, le=23)
    AUTO_BACKUP_MINUTE: int = Field(default=0, ge=0, le=59)
    AUTO_BACKUP_KEEP_COUNT: int = Field(default=7, ge=1)

    @property
    def async_database_uri(self) -> str:
        """转换为 aiosqlite 驱动的连接串"""
        if self.DATABASE_URI.startswith("sqlite:///"):
            return self.DATABASE_URI.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return self.DATABASE_URI


settings = Settings()
logger.info(f"加载配置: API_V1_STR={settings.API_V1_STR}, DATABASE_URI={settings.DATABASE_URI}")
