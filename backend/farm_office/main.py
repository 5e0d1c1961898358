from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from farm_office.api.api_v1.api import api_router as api_v1_router
from farm_office.core.config import settings
from farm_office.core.exceptions import FarmOfficeError
from farm_office.core.logging_config import setup_logging, get_logger
from farm_office.db.document_store import DocumentStore
from farm_office.db.init_db import ensure_tables_exist
from farm_office.db.session import create_engine
from farm_office.services.scheduler import init_scheduler, shutdown_scheduler

# 初始化日志系统
setup_logging(settings.LOG_LEVEL, settings.LOG_DIR if settings.LOG_TO_FILE else None)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("🚀 应用启动中...")

    engine = create_engine()
    await ensure_tables_exist(engine)
    logger.info("📊 数据库表已就绪")

    app.state.store = DocumentStore(
        engine,
        max_attempts=settings.TRANSACTION_MAX_ATTEMPTS,
        retry_delay=settings.TRANSACTION_RETRY_DELAY,
    )

    init_scheduler()
    yield
    logger.info("🛑 应用关闭中...")
    shutdown_scheduler()
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    description="农场后台 - 采购到货对账与库存账本",
    lifespan=lifespan
)

# CORS配置
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"配置CORS，允许的源: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.exception_handler(FarmOfficeError)
async def farm_office_error_handler(request: Request, exc: FarmOfficeError):
    """业务异常统一转换为 JSON 响应"""
    if exc.status_code >= 409:
        logger.warning(f"{request.method} {request.url.path} → {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


logger.info(f"注册API v1路由，前缀: {settings.API_V1_STR}")
app.include_router(api_v1_router, prefix=settings.API_V1_STR)


@app.get("/")
async def root():
    return {"message": settings.PROJECT_NAME}


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000, log_level="info")
