"""支出API"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from farm_office.core.deps import get_expense_service
from farm_office.schemas.expense import (
    Expense, ExpenseCreated, ExpenseListResponse, ExpenseUpdate,
    MiscExpenseCreate, ProductSaleExpenseCreate
)
from farm_office.services.expense_service import ExpenseService

router = APIRouter()


@router.get("/", response_model=ExpenseListResponse)
async def list_expenses(
    type: Optional[str] = Query(None, description="product / misc"),
    category: Optional[str] = Query(None, description="分类"),
    search: Optional[str] = Query(None, description="单号/商品/描述/供应商"),
    service: ExpenseService = Depends(get_expense_service)
):
    """支出列表"""
    expenses = await service.list_expenses(expense_type=type, category=category, search=search)
    return ExpenseListResponse(data=expenses, total=len(expenses))


@router.post("/product-sale", response_model=ExpenseCreated, status_code=201)
async def record_product_sale_expense(
    data: ProductSaleExpenseCreate,
    service: ExpenseService = Depends(get_expense_service)
):
    """登记商品销售支出（扣减库存）"""
    expense_id = await service.record_product_sale_expense(data)
    return ExpenseCreated(expense_id=expense_id)


@router.post("/misc", response_model=ExpenseCreated, status_code=201)
async def record_misc_expense(
    data: MiscExpenseCreate,
    service: ExpenseService = Depends(get_expense_service)
):
    """登记杂项支出"""
    expense_id = await service.record_misc_expense(data)
    return ExpenseCreated(expense_id=expense_id)


@router.get("/{expense_id}", response_model=Expense)
async def get_expense(expense_id: str, service: ExpenseService = Depends(get_expense_service)):
    return await service.get_expense(expense_id)


@router.put("/{expense_id}", response_model=Expense)
async def update_expense(
    expense_id: str,
    data: ExpenseUpdate,
    service: ExpenseService = Depends(get_expense_service)
):
    return await service.update_expense(expense_id, data)


@router.delete("/{expense_id}")
async def delete_expense(expense_id: str, service: ExpenseService = Depends(get_expense_service)):
    await service.delete_expense(expense_id)
    return {"message": "删除成功"}
