# models包初始化文件

from farm_office.models.document import Document

__all__ = [
    "Document",
]
