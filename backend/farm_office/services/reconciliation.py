"""
到货对账
- 按采购明细计算已到货 / 待到货数量
- 校验到货请求并截断超出待到货的数量

在途到货单同样占用数量：还没入库，但不能再被其他到货单重复登记。
已取消的到货单不占用。
"""

import logging
import math
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List

from farm_office.core.exceptions import (
    EmptySelection, MissingDate, MissingWarehouse, QuantityExceedsPending
)
from farm_office.schemas.delivery import (
    RESERVING_STATUSES, DeliveryDraft, DeliveryProduct, DeliveryRequest
)
from farm_office.schemas.purchase import DeliverableLineItem, PendingQuantity, PurchaseOrder
from farm_office.services.purchase_calc import sum_quantities, to_decimal, to_money

logger = logging.getLogger(__name__)

CLAMP = "clamp"
REJECT = "reject"


def parse_number(value) -> float:
    """表单数值转换：空值或无法解析的按 0 处理"""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            parsed = float(text)
        except ValueError:
            return 0.0
    if math.isnan(parsed) or math.isinf(parsed):
        return 0.0
    return parsed


def compute_pending_quantities(purchase: PurchaseOrder) -> Dict[str, PendingQuantity]:
    """明细键 → {original, delivered, pending}"""
    delivered: Dict[str, Decimal] = defaultdict(Decimal)
    for delivery in purchase.deliveries:
        if delivery.status not in RESERVING_STATUSES:
            continue
        for product in delivery.products:
            delivered[product.key] += to_decimal(product.quantity)

    originals: Dict[str, Decimal] = {}
    for item in purchase.line_items:
        originals[item.key] = originals.get(item.key, Decimal("0")) + to_decimal(item.quantity)

    result = {}
    for key, original in originals.items():
        done = delivered.get(key, Decimal("0"))
        result[key] = PendingQuantity(
            original=float(original),
            delivered=float(done),
            pending=float(max(Decimal("0"), original - done)),
        )
    return result


def get_deliverable_line_items(purchase: PurchaseOrder) -> List[DeliverableLineItem]:
    """待到货数量大于0的明细，按采购明细顺序"""
    pending_map = compute_pending_quantities(purchase)
    items = []
    seen = set()
    for item in purchase.line_items:
        if item.key in seen:
            continue
        seen.add(item.key)
        quantities = pending_map[item.key]
        if quantities.pending <= 0:
            continue
        items.append(DeliverableLineItem(
            key=item.key,
            product_id=item.product_id,
            name=item.name,
            category=item.category,
            unit=item.unit,
            unit_cost=item.unit_cost,
            original_qty=quantities.original,
            delivered_qty=quantities.delivered,
            pending_qty=quantities.pending,
        ))
    return items


def validate_delivery_request(
    purchase: PurchaseOrder,
    request: DeliveryRequest,
    policy: str = CLAMP) -> DeliveryDraft:
    """
    校验到货请求，生成到货单草稿

    Args:
        purchase: 采购单（含历史到货单）
        request: 到货请求
        policy: clamp 截断到待到货数量；reject 超出时报 QuantityExceedsPending
    """
    if not (request.warehouse_id or "").strip():
        raise MissingWarehouse()
    if request.delivery_date is None:
        raise MissingDate()

    requested = [(p.key, parse_number(p.quantity)) for p in request.products]
    requested = [(key, qty) for key, qty in requested if qty > 0]
    if not requested:
        raise EmptySelection()

    pending_map = compute_pending_quantities(purchase)
    remaining = {key: to_decimal(q.pending) for key, q in pending_map.items()}

    products: List[DeliveryProduct] = []
    for key, qty in requested:
        available = remaining.get(key, Decimal("0"))
        quantity = to_decimal(qty)
        if quantity > available:
            if policy == REJECT:
                raise QuantityExceedsPending(key, float(available), qty)
            logger.info(f"到货数量超出待到货数量，已截断: {key} {qty} → {available}")
            quantity = available
        if quantity <= 0:
            continue
        remaining[key] = available - quantity

        item = purchase.find_line_item(key)
        products.append(DeliveryProduct(
            line_item_id=item.id,
            product_id=item.product_id,
            name=item.name,
            category=item.category,
            unit=item.unit,
            quantity=float(quantity),
            unit_cost=item.unit_cost,
        ))

    if not products:
        raise EmptySelection("所选商品已无待到货数量")

    freight = max(0.0, parse_number(request.freight))
    total_value = sum(
        (to_decimal(p.quantity) * to_decimal(p.unit_cost) for p in products), Decimal("0")
    )

    return DeliveryDraft(
        warehouse_id=request.warehouse_id.strip(),
        warehouse_name=request.warehouse_name,
        delivery_date=request.delivery_date,
        products=products,
        freight=to_money(freight),
        notes=request.notes,
        created_by=request.created_by,
        total_quantity=sum_quantities(p.quantity for p in products),
        total_product_value=to_money(total_value),
        total_with_freight=to_money(total_value + to_decimal(freight)),
    )
