"""
文档库 - 基于 SQLAlchemy 异步会话的文档存储与事务

事务采用乐观并发：
- 读取文档时记录版本号
- 写操作先缓存在事务对象里
- 提交时在写锁内重新核对读过的版本，一致才落库（UPDATE 同时带版本条件）
版本不一致抛 TransactionConflict，run_transaction 重新执行事务体。
事务体抛出的业务异常直接向上传播，缓存的写操作全部丢弃。
"""

import asyncio
import copy
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from farm_office.core.exceptions import DocumentNotFound, TransactionConflict
from farm_office.models.document import Document

logger = logging.getLogger(__name__)

T = TypeVar("T")
DocKey = Tuple[str, str]


def generate_id() -> str:
    """生成文档ID"""
    return uuid.uuid4().hex


def _strip_id(data: Dict[str, Any]) -> Dict[str, Any]:
    """id 不写入文档内容"""
    return {k: copy.deepcopy(v) for k, v in data.items() if k != "id"}


def _with_id(doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(data)
    result["id"] = doc_id
    return result


class Transaction:
    """事务内的读写接口（get / set / update / delete）"""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._reads: Dict[DocKey, Optional[int]] = {}
        self._snapshots: Dict[DocKey, Optional[Dict[str, Any]]] = {}
        self._writes: Dict[DocKey, Tuple[str, Optional[Dict[str, Any]]]] = {}

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """读取文档，不存在返回 None；同一事务内能读到自己的写入"""
        key = (collection, doc_id)
        if key not in self._snapshots:
            version, data = await self._store._read(collection, doc_id)
            self._reads[key] = version
            self._snapshots[key] = data
        data = self._snapshots[key]
        if key in self._writes:
            data = self._apply(data, self._writes[key])
        return None if data is None else _with_id(doc_id, data)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """整体写入（不存在则创建）"""
        self._writes[(collection, doc_id)] = ("set", _strip_id(data))

    def update(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        """按字段合并更新，文档必须存在"""
        key = (collection, doc_id)
        patch = _strip_id(patch)
        pending = self._writes.get(key)
        if pending is None:
            self._writes[key] = ("update", patch)
        elif pending[0] == "delete":
            raise DocumentNotFound(doc_id)
        else:
            self._writes[key] = (pending[0], {**pending[1], **patch})

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes[(collection, doc_id)] = ("delete", None)

    @property
    def has_writes(self) -> bool:
        return bool(self._writes)

    @staticmethod
    def _apply(current: Optional[Dict[str, Any]], write: Tuple[str, Optional[Dict[str, Any]]]):
        op, payload = write
        if op == "delete":
            return None
        if op == "set":
            return copy.deepcopy(payload)
        if current is None:
            return None
        merged = copy.deepcopy(current)
        merged.update(copy.deepcopy(payload))
        return merged


class DocumentStore:
    """文档库

    Args:
        engine: SQLAlchemy 异步引擎
        max_attempts: 事务冲突时最多执行事务体的次数
        retry_delay: 重试间隔基数（秒），第 n 次重试等待 n * retry_delay
    """

    def __init__(self, engine: AsyncEngine, max_attempts: int = 5, retry_delay: float = 0.05):
        self.engine = engine
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._session_factory = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
        # 进程内串行化提交阶段；跨进程由 UPDATE 的版本条件兜底
        self._commit_lock = asyncio.Lock()

    # ===== 单文档操作 =====

    async def get_document(self, collection: str, doc_id: str) -> Dict[str, Any]:
        _, data = await self._read(collection, doc_id)
        if data is None:
            raise DocumentNotFound(doc_id)
        return _with_id(doc_id, data)

    async def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        """按创建顺序列出集合内所有文档"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Document)
                .where(Document.collection == collection)
                .order_by(Document.created_at.asc(), Document.doc_id.asc())
            )
            return [_with_id(row.doc_id, row.data) for row in result.scalars().all()]

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = generate_id()

        async def body(tx: Transaction) -> str:
            tx.set(collection, doc_id, data)
            return doc_id

        return await self.run_transaction(body)

    async def update_document(self, collection: str, doc_id: str, patch: Dict[str, Any]) -> None:
        async def body(tx: Transaction) -> None:
            if await tx.get(collection, doc_id) is None:
                raise DocumentNotFound(doc_id)
            tx.update(collection, doc_id, patch)

        await self.run_transaction(body)

    async def delete_document(self, collection: str, doc_id: str) -> None:
        async def body(tx: Transaction) -> None:
            if await tx.get(collection, doc_id) is None:
                raise DocumentNotFound(doc_id)
            tx.delete(collection, doc_id)

        await self.run_transaction(body)

    # ===== 事务 =====

    async def run_transaction(self, body: Callable[[Transaction], Awaitable[T]]) -> T:
        """执行事务体并提交；版本冲突时重新执行，超过次数后抛 TransactionConflict"""
        attempt = 0
        while True:
            attempt += 1
            tx = Transaction(self)
            result = await body(tx)
            try:
                await self._commit(tx)
            except TransactionConflict:
                if attempt >= self.max_attempts:
                    logger.error(f"❌ 事务冲突，已重试 {attempt} 次，放弃")
                    raise
                logger.warning(f"事务冲突，第 {attempt} 次重试")
                await asyncio.sleep(self.retry_delay * attempt)
                continue
            return result

    async def _read(self, collection: str, doc_id: str) -> Tuple[Optional[int], Optional[Dict[str, Any]]]:
        async with self._session_factory() as session:
            row = await session.get(Document, (collection, doc_id))
            if row is None:
                return None, None
            return row.version, copy.deepcopy(row.data)

    async def _commit(self, tx: Transaction) -> None:
        if not tx.has_writes:
            return

        async with self._commit_lock:
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        await self._apply_writes(session, tx)
            except (StaleDataError, IntegrityError) as e:
                raise TransactionConflict() from e
            except OperationalError as e:
                if "locked" not in str(e):
                    raise
                logger.warning(f"数据库被锁定，按冲突处理: {e}")
                raise TransactionConflict() from e

    async def _apply_writes(self, session: AsyncSession, tx: Transaction) -> None:
        rows: Dict[DocKey, Optional[Document]] = {}
        for key in set(tx._reads) | set(tx._writes):
            rows[key] = await session.get(Document, key)

        # 读过的文档版本必须没变
        for key, version in tx._reads.items():
            row = rows[key]
            current = row.version if row is not None else None
            if current != version:
                logger.debug(f"版本冲突 {key}: 读取时 {version}，提交时 {current}")
                raise TransactionConflict()

        for key, (op, payload) in tx._writes.items():
            row = rows[key]
            if op == "delete":
                if row is not None:
                    await session.delete(row)
            elif op == "set":
                if row is None:
                    session.add(Document(collection=key[0], doc_id=key[1], data=payload))
                else:
                    row.data = payload
            else:
                if row is None:
                    raise DocumentNotFound(key[1])
                merged = copy.deepcopy(row.data)
                merged.update(payload)
                row.data = merged
