"""采购单Schema"""
from typing import Optional, List
from datetime import date, datetime
from enum import Enum
from pydantic import Field

from farm_office.schemas.base import CamelModel, DocumentModel
from farm_office.schemas.delivery import Delivery


class PurchaseStatus(str, Enum):
    PENDING = "pending"                        # 待审核
    APPROVED = "approved"                      # 已审核
    PARTIAL_DELIVERED = "partial_delivered"    # 部分到货
    COMPLETED = "completed"                    # 全部到货
    CANCELLED = "cancelled"                    # 已取消


# 可以登记到货的采购单状态
DELIVERABLE_STATUSES = (PurchaseStatus.APPROVED, PurchaseStatus.PARTIAL_DELIVERED)
TERMINAL_STATUSES = (PurchaseStatus.COMPLETED, PurchaseStatus.CANCELLED)


# ===== 明细 =====
class LineItemBase(CamelModel):
    """明细基础字段"""
    product_id: Optional[str] = Field(None, description="库存商品ID（为空时首次入库自动建档）")
    name: str = Field(..., min_length=1, max_length=100, description="商品名称")
    category: str = Field(default="", max_length=50, description="分类")
    unit: str = Field(default="kg", max_length=20, description="单位")
    quantity: float = Field(..., gt=0, description="采购数量")
    unit_cost: float = Field(default=0, ge=0, description="单价")


class LineItemCreate(LineItemBase):
    """创建明细"""


class LineItem(DocumentModel):
    """采购明细（文档内）"""
    id: Optional[str] = None
    product_id: Optional[str] = None
    name: str = ""
    category: str = ""
    unit: str = "kg"
    quantity: float = Field(default=0, ge=0)
    unit_cost: float = Field(default=0, ge=0)

    @property
    def key(self) -> str:
        """明细键：优先ID，旧数据没有ID时退回名称"""
        return self.id or self.name


# ===== 采购单 =====
class PurchaseOrder(DocumentModel):
    """采购单文档"""
    purchase_number: str = ""
    supplier: str = ""
    purchase_date: Optional[date] = None
    status: PurchaseStatus = PurchaseStatus.PENDING
    line_items: List[LineItem] = Field(default_factory=list)
    freight: float = 0
    taxes: float = 0
    total_products: float = 0
    total_amount: float = 0
    deliveries: List[Delivery] = Field(default_factory=list)
    # 以下汇总字段由到货单列表重算，仅作缓存
    total_delivered: float = 0
    total_in_transit: float = 0
    total_pending: float = 0
    total_freight_paid: float = 0
    notes: str = ""
    created_by: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    def find_delivery(self, delivery_id: str) -> Optional[Delivery]:
        return next((d for d in self.deliveries if d.id == delivery_id), None)

    def find_line_item(self, key: str) -> Optional[LineItem]:
        return next((item for item in self.line_items if item.key == key), None)


class PurchaseCreate(CamelModel):
    """创建采购单"""
    purchase_number: Optional[str] = Field(None, max_length=50, description="采购单号，为空自动生成")
    supplier: str = Field(..., min_length=1, max_length=100, description="供应商")
    purchase_date: Optional[date] = Field(None, description="采购日期")
    line_items: List[LineItemCreate] = Field(..., min_length=1, description="采购明细")
    freight: float = Field(default=0, ge=0, description="运费")
    taxes: float = Field(default=0, ge=0, description="税费")
    notes: str = Field(default="", description="备注")
    created_by: str = Field(default="", description="创建人")


class PurchaseUpdate(CamelModel):
    """更新采购单；明细、运费、税费仅在没有有效到货单时可改"""
    supplier: Optional[str] = Field(None, min_length=1, max_length=100)
    purchase_date: Optional[date] = None
    line_items: Optional[List[LineItemCreate]] = Field(None, min_length=1)
    freight: Optional[float] = Field(None, ge=0)
    taxes: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class PurchaseCancel(CamelModel):
    reason: str = Field(default="", max_length=200, description="取消原因")


class PurchaseCreated(CamelModel):
    purchase_id: str


class PurchaseListResponse(CamelModel):
    data: List[PurchaseOrder]
    total: int


# ===== 到货对账 =====
class PendingQuantity(CamelModel):
    """单个明细的数量对账"""
    original: float
    delivered: float
    pending: float


class DeliverableLineItem(CamelModel):
    """可登记到货的明细"""
    key: str
    product_id: Optional[str] = None
    name: str
    category: str = ""
    unit: str = ""
    unit_cost: float = 0
    original_qty: float
    delivered_qty: float
    pending_qty: float


class PurchaseStats(CamelModel):
    """采购统计"""
    total: int = 0
    pending: int = 0
    approved: int = 0
    partial_delivered: int = 0
    completed: int = 0
    cancelled: int = 0
    total_amount: float = 0
