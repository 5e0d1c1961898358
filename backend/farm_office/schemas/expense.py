"""支出Schema"""
from typing import Annotated, Optional, List
from datetime import datetime, timezone
from enum import Enum
from pydantic import AfterValidator, Field

from farm_office.schemas.base import CamelModel, DocumentModel


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间转成不带时区的 UTC，和 utcnow() 写入的时间可比较"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


ExpenseDate = Annotated[Optional[datetime], AfterValidator(naive_utc)]


class ExpenseType(str, Enum):
    PRODUCT = "product"   # 商品销售（扣减库存）
    MISC = "misc"         # 杂项支出


class Expense(DocumentModel):
    """支出文档"""
    expense_number: str = ""
    type: ExpenseType = ExpenseType.PRODUCT
    date: ExpenseDate = None
    # 商品销售
    product_id: Optional[str] = None
    product_name: str = ""
    product_category: str = ""
    quantity_sold: float = 0
    unit_price: float = 0
    total_amount: float = 0
    sale_reason: str = ""
    # 杂项支出
    description: str = ""
    category: str = ""
    amount: float = 0
    supplier: str = ""
    # 通用
    notes: str = ""
    created_by: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductSaleExpenseCreate(CamelModel):
    """登记商品销售支出"""
    expense_number: Optional[str] = Field(None, max_length=50)
    product_id: str = Field(..., min_length=1, description="商品ID")
    quantity_sold: float = Field(..., gt=0, description="销售数量")
    unit_price: float = Field(default=0, ge=0, description="单价")
    total_amount: Optional[float] = Field(None, ge=0, description="总金额，为空按数量×单价")
    sale_reason: str = Field(default="", max_length=200)
    date: ExpenseDate = None
    notes: str = Field(default="")
    created_by: str = Field(default="")


class MiscExpenseCreate(CamelModel):
    """登记杂项支出"""
    expense_number: Optional[str] = Field(None, max_length=50)
    description: str = Field(..., min_length=1, max_length=200)
    category: str = Field(default="", max_length=50)
    amount: float = Field(..., ge=0)
    supplier: str = Field(default="", max_length=100)
    date: ExpenseDate = None
    notes: str = Field(default="")
    created_by: str = Field(default="")


class ExpenseUpdate(CamelModel):
    """更新支出（商品、数量、单价不可改）"""
    date: ExpenseDate = None
    sale_reason: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, max_length=50)
    supplier: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ExpenseCreated(CamelModel):
    expense_id: str


class ExpenseListResponse(CamelModel):
    data: List[Expense]
    total: int
