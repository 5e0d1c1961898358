"""
到货单服务
- 登记到货（在途，占用待到货数量，不动库存）
- 确认入库（库存增加）
- 取消到货（释放占用，不动库存）

状态流转：in_transit → completed / cancelled，终态不可再变。
"""

import logging
from datetime import datetime
from typing import List

from farm_office.core.exceptions import (
    DeliveryNotFound, DocumentNotFound, InvalidTransition, PurchaseNotFound
)
from farm_office.db.document_store import DocumentStore, Transaction, generate_id
from farm_office.schemas.delivery import Delivery, DeliveryProduct, DeliveryRequest, DeliveryStatus
from farm_office.schemas.product import Product
from farm_office.schemas.purchase import (
    DELIVERABLE_STATUSES, DeliverableLineItem, LineItem, PurchaseOrder
)
from farm_office.services.purchase_calc import refresh_aggregates
from farm_office.services.purchase_service import PURCHASES, get_purchase_in_tx
from farm_office.services.reconciliation import (
    CLAMP, get_deliverable_line_items, validate_delivery_request
)
from farm_office.services.stock_ledger import PRODUCTS, increment_stock

logger = logging.getLogger(__name__)


def _ensure_accepts_deliveries(purchase: PurchaseOrder) -> None:
    if purchase.status not in DELIVERABLE_STATUSES:
        raise InvalidTransition(
            f"采购单 {purchase.purchase_number} 当前状态为 {purchase.status.value}，不能登记到货",
            current_status=purchase.status.value,
        )


def _get_in_transit_delivery(purchase: PurchaseOrder, delivery_id: str, action: str) -> Delivery:
    delivery = purchase.find_delivery(delivery_id)
    if delivery is None:
        raise DeliveryNotFound(delivery_id)
    if delivery.is_terminal:
        raise InvalidTransition(
            f"到货单当前状态为 {delivery.status.value}，不能{action}",
            current_status=delivery.status.value,
        )
    return delivery


class DeliveryService:
    """到货单服务

    Args:
        store: 文档库
        over_request_policy: 到货数量超出待到货数量时的处理方式（clamp / reject）
    """

    def __init__(self, store: DocumentStore, over_request_policy: str = CLAMP):
        self.store = store
        self.over_request_policy = over_request_policy

    async def _load_purchase(self, purchase_id: str) -> PurchaseOrder:
        try:
            data = await self.store.get_document(PURCHASES, purchase_id)
        except DocumentNotFound:
            raise PurchaseNotFound(purchase_id) from None
        return PurchaseOrder.from_document(data)

    async def get_deliverable_line_items(self, purchase_id: str) -> List[DeliverableLineItem]:
        purchase = await self._load_purchase(purchase_id)
        return get_deliverable_line_items(purchase)

    async def create_delivery(self, purchase_id: str, request: DeliveryRequest) -> str:
        """登记到货，返回到货单ID"""
        # 事务前先校验一遍，缺字段等错误直接返回
        purchase = await self._load_purchase(purchase_id)
        _ensure_accepts_deliveries(purchase)
        validate_delivery_request(purchase, request, self.over_request_policy)

        delivery_id = generate_id()

        async def body(tx: Transaction) -> Delivery:
            # 事务内按最新的到货记录重新校验和截断
            current = await get_purchase_in_tx(tx, purchase_id)
            _ensure_accepts_deliveries(current)
            draft = validate_delivery_request(current, request, self.over_request_policy)

            now = datetime.utcnow()
            delivery = Delivery(
                id=delivery_id,
                purchase_id=purchase_id,
                status=DeliveryStatus.IN_TRANSIT,
                created_at=now,
                **draft.model_dump(),
            )
            updated = refresh_aggregates(current.model_copy(update={
                "deliveries": [*current.deliveries, delivery],
                "updated_at": now,
            }))
            tx.set(PURCHASES, purchase_id, updated.to_document())
            return delivery

        delivery = await self.store.run_transaction(body)
        logger.info(
            f"🚚 登记到货 {purchase.purchase_number} / {delivery_id}: "
            f"{len(delivery.products)} 个商品，共 {delivery.total_quantity}"
        )
        return delivery_id

    async def complete_delivery(self, purchase_id: str, delivery_id: str) -> None:
        """确认入库：到货单置为 completed，逐个商品增加库存"""

        async def body(tx: Transaction) -> PurchaseOrder:
            purchase = await get_purchase_in_tx(tx, purchase_id)
            delivery = _get_in_transit_delivery(purchase, delivery_id, "确认入库")

            now = datetime.utcnow()
            line_items = list(purchase.line_items)
            for product in delivery.products:
                product_id = self._resolve_product_id(tx, purchase, delivery, product, line_items, now)
                await increment_stock(
                    tx,
                    product_id,
                    product.quantity,
                    reason=f"采购入库 {purchase.purchase_number}",
                    source_type="delivery",
                    source_id=delivery.id,
                )

            deliveries = [
                d.model_copy(update={"status": DeliveryStatus.COMPLETED, "completed_at": now})
                if d.id == delivery_id else d
                for d in purchase.deliveries
            ]
            updated = refresh_aggregates(purchase.model_copy(update={
                "line_items": line_items,
                "deliveries": deliveries,
                "updated_at": now,
            }))
            tx.set(PURCHASES, purchase_id, updated.to_document())
            return updated

        updated = await self.store.run_transaction(body)
        logger.info(
            f"✅ 到货入库 {updated.purchase_number} / {delivery_id}，"
            f"采购单状态 {updated.status.value}，已入库 {updated.total_delivered}"
        )

    async def cancel_delivery(self, purchase_id: str, delivery_id: str, reason: str = "") -> None:
        """取消到货：释放占用的待到货数量，库存不变"""

        async def body(tx: Transaction) -> PurchaseOrder:
            purchase = await get_purchase_in_tx(tx, purchase_id)
            _get_in_transit_delivery(purchase, delivery_id, "取消")

            now = datetime.utcnow()
            deliveries = [
                d.model_copy(update={
                    "status": DeliveryStatus.CANCELLED,
                    "cancelled_at": now,
                    "cancellation_reason": reason or "",
                })
                if d.id == delivery_id else d
                for d in purchase.deliveries
            ]
            updated = refresh_aggregates(purchase.model_copy(update={
                "deliveries": deliveries,
                "updated_at": now,
            }))
            tx.set(PURCHASES, purchase_id, updated.to_document())
            return updated

        updated = await self.store.run_transaction(body)
        logger.info(f"🚫 取消到货 {updated.purchase_number} / {delivery_id}: {reason or '未填写原因'}")

    @staticmethod
    def _resolve_product_id(
        tx: Transaction,
        purchase: PurchaseOrder,
        delivery: Delivery,
        product: DeliveryProduct,
        line_items: List[LineItem],
        now: datetime) -> str:
        """确定入库的库存商品

        明细上的商品ID优先；都没有时首次入库自动建档，并把新ID写回明细。
        """
        index = next((i for i, item in enumerate(line_items) if item.key == product.key), None)
        line_item = line_items[index] if index is not None else None

        product_id = (line_item.product_id if line_item else None) or product.product_id
        if product_id:
            return product_id

        new_product = Product(
            id=generate_id(),
            name=product.name or (line_item.name if line_item else ""),
            category=product.category,
            unit=product.unit,
            stock=0,
            cost=product.unit_cost,
            warehouse_id=delivery.warehouse_id,
            supplier_name=purchase.supplier,
            notes=f"采购单 {purchase.purchase_number} 到货建档",
            created_at=now,
            updated_at=now,
        )
        tx.set(PRODUCTS, new_product.id, new_product.to_document())
        if line_item is not None:
            line_items[index] = line_item.model_copy(update={"product_id": new_product.id})
        logger.info(f"📦 新商品建档 {new_product.name}({new_product.id})")
        return new_product.id
