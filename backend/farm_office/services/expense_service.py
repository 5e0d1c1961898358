"""
支出服务
- 商品销售支出：同一事务内校验并扣减库存，库存不足时支出不落库
- 杂项支出
- 查询、修改、删除（删除商品销售支出时按配置回补库存）
"""

import logging
from datetime import datetime
from typing import List, Optional

from farm_office.core.exceptions import DocumentNotFound, ExpenseNotFound
from farm_office.db.document_store import DocumentStore, Transaction, generate_id
from farm_office.schemas.expense import (
    Expense, ExpenseType, ExpenseUpdate, MiscExpenseCreate, ProductSaleExpenseCreate
)
from farm_office.services.numbering import EXPENSE_PREFIX, next_document_number
from farm_office.services.purchase_calc import to_decimal, to_money
from farm_office.services.stock_ledger import PRODUCTS, deduct_stock, increment_stock

logger = logging.getLogger(__name__)

EXPENSES = "expenses"


class ExpenseService:
    """支出服务

    Args:
        store: 文档库
        delete_restores_stock: 删除商品销售支出时是否把销售数量加回库存
    """

    def __init__(self, store: DocumentStore, delete_restores_stock: bool = True):
        self.store = store
        self.delete_restores_stock = delete_restores_stock

    async def record_product_sale_expense(self, expense_in: ProductSaleExpenseCreate) -> str:
        """登记商品销售支出，返回支出ID

        Raises:
            ProductNotFound: 商品不存在
            InsufficientStock: 库存不足，支出不会保存
        """
        expense_id = generate_id()

        async def body(tx: Transaction) -> Expense:
            number = expense_in.expense_number or await next_document_number(tx, EXPENSE_PREFIX)
            product = await deduct_stock(
                tx,
                expense_in.product_id,
                expense_in.quantity_sold,
                reason=f"销售出库 {number}",
                source_type="expense",
                source_id=expense_id,
            )

            if expense_in.total_amount is not None:
                total_amount = to_money(expense_in.total_amount)
            else:
                total_amount = to_money(to_decimal(expense_in.quantity_sold) * to_decimal(expense_in.unit_price))

            now = datetime.utcnow()
            expense = Expense(
                id=expense_id,
                expense_number=number,
                type=ExpenseType.PRODUCT,
                date=expense_in.date or now,
                product_id=product.id,
                product_name=product.name,
                product_category=product.category,
                quantity_sold=expense_in.quantity_sold,
                unit_price=expense_in.unit_price,
                total_amount=total_amount,
                sale_reason=expense_in.sale_reason,
                notes=expense_in.notes,
                created_by=expense_in.created_by,
                created_at=now,
                updated_at=now,
            )
            tx.set(EXPENSES, expense_id, expense.to_document())
            return expense

        expense = await self.store.run_transaction(body)
        logger.info(
            f"💰 商品销售支出 {expense.expense_number}: {expense.product_name} "
            f"× {expense.quantity_sold}，金额 {expense.total_amount}"
        )
        return expense_id

    async def record_misc_expense(self, expense_in: MiscExpenseCreate) -> str:
        """登记杂项支出（不影响库存）"""
        expense_id = generate_id()

        async def body(tx: Transaction) -> Expense:
            number = expense_in.expense_number or await next_document_number(tx, EXPENSE_PREFIX)
            now = datetime.utcnow()
            expense = Expense(
                id=expense_id,
                expense_number=number,
                type=ExpenseType.MISC,
                date=expense_in.date or now,
                description=expense_in.description,
                category=expense_in.category,
                amount=to_money(expense_in.amount),
                total_amount=to_money(expense_in.amount),
                supplier=expense_in.supplier,
                notes=expense_in.notes,
                created_by=expense_in.created_by,
                created_at=now,
                updated_at=now,
            )
            tx.set(EXPENSES, expense_id, expense.to_document())
            return expense

        expense = await self.store.run_transaction(body)
        logger.info(f"💰 杂项支出 {expense.expense_number}: {expense.description}，金额 {expense.amount}")
        return expense_id

    async def get_expense(self, expense_id: str) -> Expense:
        try:
            data = await self.store.get_document(EXPENSES, expense_id)
        except DocumentNotFound:
            raise ExpenseNotFound(expense_id) from None
        return Expense.from_document(data)

    async def list_expenses(
        self,
        expense_type: Optional[str] = None,
        category: Optional[str] = None,
        search: Optional[str] = None) -> List[Expense]:
        """支出列表（按日期倒序）"""
        expenses = [Expense.from_document(d) for d in await self.store.list_documents(EXPENSES)]

        if expense_type:
            expenses = [e for e in expenses if e.type.value == expense_type]
        if category:
            expenses = [e for e in expenses if category in (e.category, e.product_category)]
        if search:
            term = search.lower()
            expenses = [
                e for e in expenses
                if term in e.expense_number.lower()
                or term in e.product_name.lower()
                or term in e.description.lower()
                or term in e.supplier.lower()
            ]

        expenses.sort(key=lambda e: e.date or e.created_at or datetime.min, reverse=True)
        return expenses

    async def update_expense(self, expense_id: str, expense_in: ExpenseUpdate) -> Expense:
        """修改支出的描述性字段"""
        changes = expense_in.model_dump(exclude_unset=True, exclude_none=True)

        async def body(tx: Transaction) -> Expense:
            data = await tx.get(EXPENSES, expense_id)
            if data is None:
                raise ExpenseNotFound(expense_id)
            expense = Expense.from_document(data)
            updated = expense.model_copy(update={**changes, "updated_at": datetime.utcnow()})
            tx.set(EXPENSES, expense_id, updated.to_document())
            return updated

        return await self.store.run_transaction(body)

    async def delete_expense(self, expense_id: str) -> None:
        """删除支出

        商品销售支出：delete_restores_stock 为真时在同一事务内把销售数量加回库存；
        商品已被删除则跳过回补。为假时扣减保持不变。
        """

        async def body(tx: Transaction) -> Expense:
            data = await tx.get(EXPENSES, expense_id)
            if data is None:
                raise ExpenseNotFound(expense_id)
            expense = Expense.from_document(data)

            if (
                self.delete_restores_stock
                and expense.type == ExpenseType.PRODUCT
                and expense.product_id
                and expense.quantity_sold > 0
            ):
                if await tx.get(PRODUCTS, expense.product_id) is None:
                    logger.warning(f"商品 {expense.product_id} 已不存在，删除支出 {expense.expense_number} 时不回补库存")
                else:
                    await increment_stock(
                        tx,
                        expense.product_id,
                        expense.quantity_sold,
                        reason=f"删除支出回补 {expense.expense_number}",
                        source_type="expense_deletion",
                        source_id=expense.id,
                    )

            tx.delete(EXPENSES, expense_id)
            return expense

        expense = await self.store.run_transaction(body)
        logger.info(f"🗑️ 删除支出 {expense.expense_number}")
