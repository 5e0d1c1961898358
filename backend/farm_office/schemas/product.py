"""商品与库存流水Schema"""
from typing import Optional, List
from datetime import datetime
from enum import Enum
from pydantic import Field

from farm_office.schemas.base import CamelModel, DocumentModel


# ===== 商品 =====
class Product(DocumentModel):
    """商品文档（库存账本的持有对象）"""
    name: str = Field(..., description="商品名称")
    category: str = Field(default="", description="分类")
    unit: str = Field(default="kg", description="单位")
    stock: float = Field(default=0, ge=0, description="当前库存")
    min_stock: float = Field(default=0, ge=0, description="最低库存")
    cost: float = Field(default=0, ge=0, description="单位成本")
    warehouse_id: Optional[str] = Field(None, description="所在仓库")
    supplier_name: str = Field(default="", description="供应商")
    notes: str = Field(default="", description="备注")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def low_stock(self) -> bool:
        """是否低于最低库存"""
        return self.stock <= self.min_stock


class ProductCreate(CamelModel):
    """创建商品"""
    name: str = Field(..., min_length=1, max_length=100, description="商品名称")
    category: str = Field(default="", max_length=50, description="分类")
    unit: str = Field(default="kg", max_length=20, description="单位")
    stock: float = Field(default=0, ge=0, description="期初库存")
    min_stock: float = Field(default=0, ge=0, description="最低库存")
    cost: float = Field(default=0, ge=0, description="单位成本")
    warehouse_id: Optional[str] = Field(None, description="所在仓库")
    supplier_name: str = Field(default="", description="供应商")
    notes: str = Field(default="", description="备注")


class ProductUpdate(CamelModel):
    """更新商品（库存只能通过入库/出库变动）"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[str] = Field(None, max_length=50)
    unit: Optional[str] = Field(None, max_length=20)
    min_stock: Optional[float] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)
    warehouse_id: Optional[str] = None
    supplier_name: Optional[str] = None
    notes: Optional[str] = None


class ProductResponse(Product):
    """商品响应"""
    is_low_stock: bool = False

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(**product.model_dump(), is_low_stock=product.low_stock)


class ProductListResponse(CamelModel):
    data: List[ProductResponse]
    total: int


# ===== 库存流水 =====
class MovementType(str, Enum):
    IN = "in"
    OUT = "out"


class StockMovement(DocumentModel):
    """库存流水 - 每次库存变动一条，与变动在同一事务内写入"""
    product_id: str
    movement_type: MovementType
    quantity: float = Field(..., gt=0, description="变动数量")
    stock_before: float = Field(..., description="变动前数量")
    stock_after: float = Field(..., description="变动后数量")
    reason: str = Field(default="", description="变动原因")
    # delivery: 到货入库 / expense: 销售出库 / expense_deletion: 删除支出回补
    source_type: str = Field(default="", description="来源类型")
    source_id: Optional[str] = Field(None, description="来源ID")
    created_at: Optional[datetime] = None


class StockMovementListResponse(CamelModel):
    data: List[StockMovement]
    total: int
