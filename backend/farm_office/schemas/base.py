"""Schema 基类：文档字段统一使用 camelCase"""
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

M = TypeVar("M", bound="DocumentModel")


class CamelModel(BaseModel):
    """请求/响应模型，JSON 字段为 camelCase，同时接受 snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DocumentModel(CamelModel):
    """与文档库互转的模型"""

    id: str = ""

    @classmethod
    def from_document(cls: Type[M], data: Dict[str, Any]) -> M:
        return cls.model_validate(data)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude={"id"})
