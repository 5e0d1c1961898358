"""
文档模型 - 所有业务数据以 JSON 文档形式存放

每条记录由 (collection, doc_id) 唯一确定，version 用于事务提交时的
乐观并发校验：每次写入 version + 1。
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, JSON
from farm_office.db.base import Base


class Document(Base):
    """文档记录"""
    __tablename__ = "documents"

    # 集合名：products / purchases / expenses / stock_movements / counters
    collection = Column(String(50), primary_key=True, comment="集合")
    doc_id = Column(String(64), primary_key=True, comment="文档ID")

    # 文档内容（camelCase 字段）
    data = Column(JSON, nullable=False, default=dict, comment="文档内容")

    # 版本号，从 1 开始，由 SQLAlchemy 在每次 UPDATE 时递增并作为条件
    version = Column(Integer, nullable=False, comment="版本号")

    # 审计字段
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Document {self.collection}/{self.doc_id} v{self.version}>"
