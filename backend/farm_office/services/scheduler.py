"""
定时任务调度器服务
使用 APScheduler 定时备份 SQLite 数据库文件
"""

import os
import shutil
import logging
from datetime import datetime
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from farm_office.core.config import settings

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "auto_backup_"

# 全局调度器实例
scheduler: Optional[AsyncIOScheduler] = None


def get_db_path(database_uri: Optional[str] = None) -> Optional[str]:
    """从连接串解析数据库文件路径，非文件数据库返回 None"""
    uri = database_uri or settings.DATABASE_URI
    for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
        if uri.startswith(prefix):
            path = uri[len(prefix):]
            return path if path and path != ":memory:" else None
    return None


def get_backup_dir(db_path: str) -> str:
    """备份目录：数据库文件旁边的 backups/"""
    backup_dir = os.path.join(os.path.dirname(os.path.abspath(db_path)), "backups")
    os.makedirs(backup_dir, exist_ok=True)
    return backup_dir


def auto_backup(database_uri: Optional[str] = None, keep_count: Optional[int] = None) -> Optional[str]:
    """执行一次备份，返回备份文件路径"""
    db_path = get_db_path(database_uri)
    if db_path is None:
        logger.warning("当前数据库不是文件数据库，跳过备份")
        return None
    if not os.path.exists(db_path):
        logger.warning(f"数据库文件不存在: {db_path}")
        return None

    try:
        backup_dir = get_backup_dir(db_path)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup_filename = f"{BACKUP_PREFIX}{timestamp}.db"
        backup_path = os.path.join(backup_dir, backup_filename)

        shutil.copy2(db_path, backup_path)

        size_mb = os.stat(backup_path).st_size / 1024 / 1024
        logger.info(f"✅ 自动备份完成: {backup_filename} ({size_mb:.2f} MB)")
    except OSError as e:
        logger.error(f"❌ 自动备份失败: {e}")
        return None

    cleanup_old_backups(backup_dir, keep_count=keep_count or settings.AUTO_BACKUP_KEEP_COUNT)
    return backup_path


def cleanup_old_backups(backup_dir: str, keep_count: int = 7) -> int:
    """只保留最近的 N 个自动备份，返回删除的数量"""
    auto_backups = [
        os.path.join(backup_dir, filename)
        for filename in os.listdir(backup_dir)
        if filename.startswith(BACKUP_PREFIX) and filename.endswith(".db")
    ]
    # 文件名带时间戳，按名称倒序即最新的在前
    auto_backups.sort(reverse=True)

    removed = 0
    for filepath in auto_backups[keep_count:]:
        try:
            os.remove(filepath)
        except OSError as e:
            logger.warning(f"清理旧备份时出错: {e}")
            continue
        removed += 1
        logger.info(f"🗑️ 清理旧备份: {os.path.basename(filepath)}")
    return removed


def init_scheduler() -> Optional[AsyncIOScheduler]:
    """初始化并启动调度器"""
    global scheduler

    if not settings.AUTO_BACKUP_ENABLED:
        logger.info("📦 自动备份已禁用")
        return None

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        auto_backup,
        trigger=CronTrigger(
            hour=settings.AUTO_BACKUP_HOUR,
            minute=settings.AUTO_BACKUP_MINUTE
        ),
        id="auto_backup",
        name="自动数据库备份",
        replace_existing=True
    )

    scheduler.start()
    logger.info(f"⏰ 定时任务调度器已启动 - 自动备份时间: 每天 {settings.AUTO_BACKUP_HOUR:02d}:{settings.AUTO_BACKUP_MINUTE:02d}")
    return scheduler


def shutdown_scheduler():
    """关闭调度器"""
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("⏰ 定时任务调度器已关闭")
