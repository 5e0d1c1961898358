"""到货单Schema"""
from typing import Optional, List, Union
from datetime import date, datetime
from enum import Enum
from pydantic import Field, field_validator

from farm_office.schemas.base import CamelModel, DocumentModel


class DeliveryStatus(str, Enum):
    """到货单状态：in_transit（在途）→ completed（已入库）/ cancelled（已取消）"""
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# 占用采购数量的状态（在途也算占用）
RESERVING_STATUSES = (DeliveryStatus.IN_TRANSIT, DeliveryStatus.COMPLETED)


class DeliveryProduct(DocumentModel):
    """到货明细"""
    line_item_id: Optional[str] = Field(None, description="对应采购明细ID")
    product_id: Optional[str] = Field(None, description="库存商品ID")
    name: str = Field(default="", description="商品名称")
    category: str = Field(default="")
    unit: str = Field(default="kg")
    quantity: float = Field(default=0, ge=0, description="到货数量")
    unit_cost: float = Field(default=0, ge=0, description="单价")

    @property
    def key(self) -> str:
        """匹配采购明细用的键：优先明细ID，其次名称"""
        return self.line_item_id or self.name


class Delivery(DocumentModel):
    """到货单（嵌在采购单文档内）"""
    purchase_id: str = Field(default="")
    warehouse_id: str = Field(..., description="入库仓库")
    warehouse_name: str = Field(default="")
    delivery_date: date
    products: List[DeliveryProduct] = Field(default_factory=list)
    freight: float = Field(default=0, ge=0, description="运费")
    notes: str = Field(default="")
    status: DeliveryStatus = DeliveryStatus.IN_TRANSIT
    total_quantity: float = 0
    total_product_value: float = 0
    total_with_freight: float = 0
    created_by: str = Field(default="")
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != DeliveryStatus.IN_TRANSIT


# ===== 请求 =====
class DeliveryProductRequest(CamelModel):
    """到货请求中的单个商品，数量可能是表单里的字符串"""
    key: str = Field(..., description="采购明细键（明细ID或名称）")
    quantity: Optional[Union[float, str]] = Field(None, description="到货数量")


class DeliveryRequest(CamelModel):
    """创建到货单请求"""
    warehouse_id: Optional[str] = Field(None, description="入库仓库")
    warehouse_name: str = Field(default="")
    delivery_date: Optional[date] = Field(None, description="到货日期")
    products: List[DeliveryProductRequest] = Field(default_factory=list)
    freight: Optional[Union[float, str]] = Field(None, description="运费")
    notes: str = Field(default="")
    created_by: str = Field(default="")

    @field_validator("delivery_date", mode="before")
    @classmethod
    def blank_date_as_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class DeliveryDraft(CamelModel):
    """校验、截断后的到货单草稿"""
    warehouse_id: str
    warehouse_name: str = ""
    delivery_date: date
    products: List[DeliveryProduct]
    freight: float = 0
    notes: str = ""
    created_by: str = ""
    total_quantity: float = 0
    total_product_value: float = 0
    total_with_freight: float = 0


class DeliveryCancel(CamelModel):
    """取消到货单"""
    reason: str = Field(default="", max_length=200, description="取消原因")


class DeliveryCreated(CamelModel):
    delivery_id: str
