"""
采购单计算（纯函数）
- 金额汇总
- 到货汇总（已入库 / 在途 / 待到货 / 已付运费）
- 状态推导

汇总字段和状态都只由明细和到货单列表决定，重复计算结果不变。
"""

from decimal import Decimal
from typing import Iterable, NamedTuple

from farm_office.schemas.delivery import DeliveryStatus
from farm_office.schemas.purchase import LineItem, PurchaseOrder, PurchaseStatus


def to_decimal(value) -> Decimal:
    return Decimal(str(value or 0))


def to_money(value) -> float:
    """金额保留两位小数"""
    return float(to_decimal(value).quantize(Decimal("0.01")))


def sum_quantities(values: Iterable[float]) -> float:
    """数量求和（用 Decimal 避免浮点累积误差）"""
    return float(sum((to_decimal(v) for v in values), Decimal("0")))


class PurchaseTotals(NamedTuple):
    total_products: float
    total_amount: float


class DeliverySummary(NamedTuple):
    ordered: float
    delivered: float
    in_transit: float
    pending: float
    freight_paid: float


def calculate_purchase_totals(line_items: Iterable[LineItem], freight=0, taxes=0) -> PurchaseTotals:
    """商品金额 = Σ数量×单价；总金额 = 商品金额 + 运费 + 税费"""
    total_products = sum(
        (to_decimal(item.quantity) * to_decimal(item.unit_cost) for item in line_items),
        Decimal("0"),
    )
    total_amount = total_products + to_decimal(freight) + to_decimal(taxes)
    return PurchaseTotals(to_money(total_products), to_money(total_amount))


def summarize_deliveries(purchase: PurchaseOrder) -> DeliverySummary:
    ordered = sum_quantities(item.quantity for item in purchase.line_items)
    completed = [d for d in purchase.deliveries if d.status == DeliveryStatus.COMPLETED]
    in_transit = [d for d in purchase.deliveries if d.status == DeliveryStatus.IN_TRANSIT]

    # 逐个商品数量累加，和订购数量用同一种求和方式
    delivered_qty = sum_quantities(p.quantity for d in completed for p in d.products)
    in_transit_qty = sum_quantities(p.quantity for d in in_transit for p in d.products)
    pending = max(0.0, float(to_decimal(ordered) - to_decimal(delivered_qty) - to_decimal(in_transit_qty)))
    freight_paid = to_money(sum((to_decimal(d.freight) for d in completed), Decimal("0")))

    return DeliverySummary(ordered, delivered_qty, in_transit_qty, pending, freight_paid)


def derive_purchase_status(purchase: PurchaseOrder) -> PurchaseStatus:
    """根据到货单推导采购单状态

    - 待审核、已取消的采购单状态不受到货单影响
    - 全部数量已入库 → completed
    - 有已入库或在途数量 → partial_delivered
    - 否则 → approved
    """
    if purchase.status in (PurchaseStatus.PENDING, PurchaseStatus.CANCELLED):
        return purchase.status

    summary = summarize_deliveries(purchase)
    if summary.ordered > 0 and summary.delivered >= summary.ordered:
        return PurchaseStatus.COMPLETED
    if summary.delivered > 0 or summary.in_transit > 0:
        return PurchaseStatus.PARTIAL_DELIVERED
    return PurchaseStatus.APPROVED


def refresh_aggregates(purchase: PurchaseOrder) -> PurchaseOrder:
    """重算金额、到货汇总和状态，返回新对象"""
    totals = calculate_purchase_totals(purchase.line_items, purchase.freight, purchase.taxes)
    summary = summarize_deliveries(purchase)
    return purchase.model_copy(update={
        "total_products": totals.total_products,
        "total_amount": totals.total_amount,
        "total_delivered": summary.delivered,
        "total_in_transit": summary.in_transit,
        "total_pending": summary.pending,
        "total_freight_paid": summary.freight_paid,
        "status": derive_purchase_status(purchase),
    })
