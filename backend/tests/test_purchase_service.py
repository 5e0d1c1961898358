"""采购单服务：创建、审核、修改、取消、删除、统计"""
from datetime import datetime

import pytest

from conftest import delivery_request
from farm_office.core.exceptions import InvalidTransition, ProductNotFound, PurchaseNotFound
from farm_office.schemas.purchase import (
    LineItemCreate, PurchaseCreate, PurchaseStatus, PurchaseUpdate
)


async def test_create_purchase(purchase_service, make_purchase):
    purchase = await make_purchase(
        [{"name": "玉米", "quantity": 10, "unit_cost": 2}, {"name": "玉米", "quantity": 5, "unit_cost": 2.2}],
        approve=False,
        freight=30,
        taxes=4.5,
    )

    assert purchase.status == PurchaseStatus.PENDING
    assert purchase.purchase_number == f"COMP-{datetime.now().year}-0001"
    assert purchase.total_products == 31
    assert purchase.total_amount == 65.5
    assert purchase.total_pending == 15
    # 同名明细也有各自的ID
    ids = [item.id for item in purchase.line_items]
    assert all(ids) and len(set(ids)) == 2


async def test_purchase_numbers_are_sequential(make_purchase):
    first = await make_purchase(approve=False)
    second = await make_purchase(approve=False)
    year = datetime.now().year
    assert [first.purchase_number, second.purchase_number] == [f"COMP-{year}-0001", f"COMP-{year}-0002"]


async def test_create_with_unknown_product_fails(purchase_service):
    with pytest.raises(ProductNotFound):
        await purchase_service.create_purchase(PurchaseCreate(
            supplier="绿源农资",
            line_items=[LineItemCreate(name="玉米", product_id="missing", quantity=1)],
        ))
    assert await purchase_service.list_purchases() == []


async def test_approve_only_from_pending(purchase_service, make_purchase):
    purchase = await make_purchase(approve=False)

    approved = await purchase_service.approve_purchase(purchase.id)
    assert approved.status == PurchaseStatus.APPROVED
    assert approved.approved_at is not None

    with pytest.raises(InvalidTransition):
        await purchase_service.approve_purchase(purchase.id)


async def test_update_line_items_before_deliveries(purchase_service, make_purchase):
    purchase = await make_purchase()

    updated = await purchase_service.update_purchase(purchase.id, PurchaseUpdate(
        notes="改数量",
        line_items=[LineItemCreate(name="玉米", quantity=20, unit_cost=2)],
        freight=5,
    ))

    assert updated.notes == "改数量"
    assert updated.total_pending == 20
    assert updated.total_amount == 45
    assert updated.status == PurchaseStatus.APPROVED


async def test_structural_update_blocked_after_delivery(purchase_service, delivery_service, make_purchase):
    purchase = await make_purchase()
    await delivery_service.create_delivery(purchase.id, delivery_request((purchase.line_items[0].id, 2)))

    with pytest.raises(InvalidTransition):
        await purchase_service.update_purchase(purchase.id, PurchaseUpdate(freight=10))

    updated = await purchase_service.update_purchase(purchase.id, PurchaseUpdate(supplier="丰收合作社"))
    assert updated.supplier == "丰收合作社"
    assert updated.total_in_transit == 2


async def test_cancel_blocked_while_delivery_in_transit(purchase_service, delivery_service, make_purchase):
    purchase = await make_purchase()
    delivery_id = await delivery_service.create_delivery(
        purchase.id, delivery_request((purchase.line_items[0].id, 2))
    )

    with pytest.raises(InvalidTransition):
        await purchase_service.cancel_purchase(purchase.id, reason="供应商缺货")

    await delivery_service.cancel_delivery(purchase.id, delivery_id)
    cancelled = await purchase_service.cancel_purchase(purchase.id, reason="供应商缺货")
    assert cancelled.status == PurchaseStatus.CANCELLED
    assert cancelled.cancellation_reason == "供应商缺货"

    with pytest.raises(InvalidTransition):
        await purchase_service.cancel_purchase(purchase.id)
    with pytest.raises(InvalidTransition):
        await delivery_service.create_delivery(purchase.id, delivery_request((purchase.line_items[0].id, 1)))


async def test_delete_purchase(purchase_service, delivery_service, make_purchase):
    purchase = await make_purchase()
    key = purchase.line_items[0].id
    delivery_id = await delivery_service.create_delivery(purchase.id, delivery_request((key, 2)))

    with pytest.raises(InvalidTransition):
        await purchase_service.delete_purchase(purchase.id)

    await delivery_service.cancel_delivery(purchase.id, delivery_id)
    await purchase_service.delete_purchase(purchase.id)
    with pytest.raises(PurchaseNotFound):
        await purchase_service.get_purchase(purchase.id)


async def test_list_filters(purchase_service, make_purchase):
    await make_purchase(supplier="绿源农资", approve=False)
    await make_purchase([{"name": "豆粕", "quantity": 3}], supplier="丰收合作社")

    assert len(await purchase_service.list_purchases()) == 2
    assert len(await purchase_service.list_purchases(status="approved")) == 1
    assert len(await purchase_service.list_purchases(supplier="丰收")) == 1
    found = await purchase_service.list_purchases(search="豆粕")
    assert [p.supplier for p in found] == ["丰收合作社"]


async def test_stats(purchase_service, make_purchase):
    await make_purchase(approve=False)
    approved = await make_purchase()
    cancelled = await make_purchase()
    await purchase_service.cancel_purchase(cancelled.id)

    stats = await purchase_service.get_purchase_stats()

    assert (stats.total, stats.pending, stats.approved, stats.cancelled) == (3, 1, 1, 1)
    assert stats.total_amount == approved.total_amount * 2
