"""支出服务：商品销售扣库存、杂项支出、删除回补"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from farm_office.core.exceptions import ExpenseNotFound, InsufficientStock, ProductNotFound
from farm_office.schemas.expense import (
    ExpenseType, ExpenseUpdate, MiscExpenseCreate, ProductSaleExpenseCreate
)
from farm_office.services.expense_service import ExpenseService


def sale(product_id, quantity, **kwargs):
    return ProductSaleExpenseCreate(product_id=product_id, quantity_sold=quantity, **kwargs)


async def test_product_sale_deducts_stock(expense_service, product_service, make_product):
    product = await make_product(name="玉米", stock=10, category="饲料")

    expense_id = await expense_service.record_product_sale_expense(sale(product.id, 4, unit_price=2.5))

    expense = await expense_service.get_expense(expense_id)
    assert expense.type == ExpenseType.PRODUCT
    assert (expense.product_name, expense.product_category) == ("玉米", "饲料")
    assert expense.total_amount == 10
    assert expense.expense_number == f"GAST-{datetime.now().year}-0001"
    assert (await product_service.get_product(product.id)).stock == 6

    movements = await product_service.list_movements(product.id)
    assert movements[0].source_type == "expense"
    assert movements[0].source_id == expense_id


async def test_explicit_total_amount_is_kept(expense_service, make_product):
    product = await make_product(stock=10)
    expense_id = await expense_service.record_product_sale_expense(
        sale(product.id, 3, unit_price=2, total_amount=5.5)
    )
    assert (await expense_service.get_expense(expense_id)).total_amount == 5.5


async def test_insufficient_stock_persists_nothing(expense_service, product_service, make_product):
    product = await make_product(stock=3)

    with pytest.raises(InsufficientStock) as exc_info:
        await expense_service.record_product_sale_expense(sale(product.id, 5))

    assert (exc_info.value.available, exc_info.value.requested) == (3, 5)
    assert await expense_service.list_expenses() == []
    assert (await product_service.get_product(product.id)).stock == 3


async def test_concurrent_sales_only_one_succeeds(expense_service, product_service, make_product):
    product = await make_product(stock=5)

    results = await asyncio.gather(
        expense_service.record_product_sale_expense(sale(product.id, 5)),
        expense_service.record_product_sale_expense(sale(product.id, 5)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, str)]
    failed = [r for r in results if isinstance(r, InsufficientStock)]
    assert len(succeeded) == 1
    assert len(failed) == 1
    assert (await product_service.get_product(product.id)).stock == 0
    assert len(await expense_service.list_expenses()) == 1


async def test_unknown_product(expense_service):
    with pytest.raises(ProductNotFound):
        await expense_service.record_product_sale_expense(sale("missing", 1))


async def test_expense_numbers_are_sequential(expense_service, make_product):
    product = await make_product(stock=10)
    first = await expense_service.record_product_sale_expense(sale(product.id, 1))
    second = await expense_service.record_misc_expense(MiscExpenseCreate(description="电费", amount=120))

    numbers = [(await expense_service.get_expense(i)).expense_number for i in (first, second)]
    year = datetime.now().year
    assert numbers == [f"GAST-{year}-0001", f"GAST-{year}-0002"]


async def test_misc_expense_has_no_stock_effect(expense_service):
    expense_id = await expense_service.record_misc_expense(
        MiscExpenseCreate(description="农机维修", category="维修", amount=350.456, supplier="张记")
    )
    expense = await expense_service.get_expense(expense_id)
    assert expense.type == ExpenseType.MISC
    assert expense.amount == 350.46
    assert expense.product_id is None


async def test_list_and_update(expense_service, make_product):
    product = await make_product(name="豆粕", stock=10)
    await expense_service.record_product_sale_expense(sale(product.id, 1))
    misc_id = await expense_service.record_misc_expense(
        MiscExpenseCreate(description="电费", category="水电", amount=80)
    )

    assert len(await expense_service.list_expenses(expense_type="misc")) == 1
    assert len(await expense_service.list_expenses(category="水电")) == 1
    assert len(await expense_service.list_expenses(search="豆粕")) == 1

    updated = await expense_service.update_expense(misc_id, ExpenseUpdate(notes="三月"))
    assert updated.notes == "三月"
    assert updated.amount == 80


async def test_delete_restores_stock(expense_service, product_service, make_product):
    product = await make_product(stock=10)
    expense_id = await expense_service.record_product_sale_expense(sale(product.id, 4))

    await expense_service.delete_expense(expense_id)

    with pytest.raises(ExpenseNotFound):
        await expense_service.get_expense(expense_id)
    assert (await product_service.get_product(product.id)).stock == 10
    movements = await product_service.list_movements(product.id)
    assert movements[0].source_type == "expense_deletion"


async def test_delete_keeps_deduction_when_disabled(store, product_service, make_product):
    service = ExpenseService(store, delete_restores_stock=False)
    product = await make_product(stock=10)
    expense_id = await service.record_product_sale_expense(sale(product.id, 4))

    await service.delete_expense(expense_id)

    assert await service.list_expenses() == []
    assert (await product_service.get_product(product.id)).stock == 6


async def test_delete_skips_restore_for_removed_product(store, expense_service, make_product):
    product = await make_product(stock=10)
    expense_id = await expense_service.record_product_sale_expense(sale(product.id, 4))
    await store.delete_document("products", product.id)

    await expense_service.delete_expense(expense_id)

    assert await expense_service.list_expenses() == []


async def test_delete_missing_expense(expense_service):
    with pytest.raises(ExpenseNotFound):
        await expense_service.delete_expense("missing")


async def test_mixed_timezone_dates_are_listed(expense_service):
    await expense_service.record_misc_expense(MiscExpenseCreate(description="电费", amount=80))
    aware_id = await expense_service.record_misc_expense(MiscExpenseCreate(
        description="种子", amount=200, date=datetime(2026, 1, 1, 8, tzinfo=timezone(timedelta(hours=8))),
    ))

    expenses = await expense_service.list_expenses()

    assert len(expenses) == 2
    assert expenses[-1].id == aware_id
    # 统一存为不带时区的 UTC
    assert expenses[-1].date == datetime(2026, 1, 1, 0, 0)


async def test_update_normalizes_date(expense_service):
    expense_id = await expense_service.record_misc_expense(MiscExpenseCreate(description="电费", amount=80))

    updated = await expense_service.update_expense(
        expense_id, ExpenseUpdate(date=datetime(2026, 2, 1, tzinfo=timezone.utc))
    )

    assert updated.date == datetime(2026, 2, 1)
    assert len(await expense_service.list_expenses()) == 1
