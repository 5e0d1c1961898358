"""
采购单服务
- 创建（自动单号、明细分配ID）
- 查询、列表、统计
- 修改、审核、取消、删除
"""

import logging
from datetime import datetime
from typing import List, Optional

from farm_office.core.exceptions import (
    DocumentNotFound, InvalidTransition, ProductNotFound, PurchaseNotFound
)
from farm_office.db.document_store import DocumentStore, Transaction, generate_id
from farm_office.schemas.delivery import DeliveryStatus
from farm_office.schemas.purchase import (
    TERMINAL_STATUSES, LineItem, LineItemCreate, PurchaseCreate, PurchaseOrder,
    PurchaseStats, PurchaseStatus, PurchaseUpdate
)
from farm_office.services.numbering import PURCHASE_PREFIX, next_document_number
from farm_office.services.purchase_calc import refresh_aggregates, to_money
from farm_office.services.stock_ledger import PRODUCTS

logger = logging.getLogger(__name__)

PURCHASES = "purchases"


async def get_purchase_in_tx(tx: Transaction, purchase_id: str) -> PurchaseOrder:
    data = await tx.get(PURCHASES, purchase_id)
    if data is None:
        raise PurchaseNotFound(purchase_id)
    return PurchaseOrder.from_document(data)


async def _build_line_items(tx: Transaction, items: List[LineItemCreate]) -> List[LineItem]:
    """校验关联商品存在，并给每个明细分配稳定ID"""
    line_items = []
    for item in items:
        if item.product_id and await tx.get(PRODUCTS, item.product_id) is None:
            raise ProductNotFound(item.product_id)
        line_items.append(LineItem(id=generate_id(), **item.model_dump()))
    return line_items


def _has_active_deliveries(purchase: PurchaseOrder) -> bool:
    return any(d.status != DeliveryStatus.CANCELLED for d in purchase.deliveries)


class PurchaseService:
    """采购单服务"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_purchase(self, purchase_in: PurchaseCreate) -> str:
        """创建采购单，初始状态 pending，返回采购单ID"""
        purchase_id = generate_id()

        async def body(tx: Transaction) -> PurchaseOrder:
            line_items = await _build_line_items(tx, purchase_in.line_items)
            number = purchase_in.purchase_number or await next_document_number(tx, PURCHASE_PREFIX)
            now = datetime.utcnow()

            purchase = refresh_aggregates(PurchaseOrder(
                id=purchase_id,
                purchase_number=number,
                supplier=purchase_in.supplier,
                purchase_date=purchase_in.purchase_date or now.date(),
                status=PurchaseStatus.PENDING,
                line_items=line_items,
                freight=purchase_in.freight,
                taxes=purchase_in.taxes,
                notes=purchase_in.notes,
                created_by=purchase_in.created_by,
                created_at=now,
                updated_at=now,
            ))
            tx.set(PURCHASES, purchase_id, purchase.to_document())
            return purchase

        purchase = await self.store.run_transaction(body)
        logger.info(f"📝 创建采购单 {purchase.purchase_number}（{purchase.supplier}），金额 {purchase.total_amount}")
        return purchase_id

    async def get_purchase(self, purchase_id: str) -> PurchaseOrder:
        try:
            data = await self.store.get_document(PURCHASES, purchase_id)
        except DocumentNotFound:
            raise PurchaseNotFound(purchase_id) from None
        return PurchaseOrder.from_document(data)

    async def list_purchases(
        self,
        status: Optional[str] = None,
        supplier: Optional[str] = None,
        search: Optional[str] = None) -> List[PurchaseOrder]:
        """采购单列表（最新的在前）"""
        purchases = [PurchaseOrder.from_document(d) for d in await self.store.list_documents(PURCHASES)]

        if status:
            purchases = [p for p in purchases if p.status.value == status]
        if supplier:
            term = supplier.lower()
            purchases = [p for p in purchases if term in p.supplier.lower()]
        if search:
            term = search.lower()
            purchases = [
                p for p in purchases
                if term in p.purchase_number.lower()
                or term in p.supplier.lower()
                or any(term in item.name.lower() for item in p.line_items)
            ]

        purchases.sort(key=lambda p: p.created_at or datetime.min, reverse=True)
        return purchases

    async def update_purchase(self, purchase_id: str, purchase_in: PurchaseUpdate) -> PurchaseOrder:
        """修改采购单

        明细、运费、税费影响待到货数量和金额，只能在没有有效到货单时修改。
        """
        changes = purchase_in.model_dump(exclude_unset=True)

        async def body(tx: Transaction) -> PurchaseOrder:
            purchase = await get_purchase_in_tx(tx, purchase_id)
            if purchase.status in TERMINAL_STATUSES:
                raise InvalidTransition(
                    f"采购单已{purchase.status.value}，不能修改", current_status=purchase.status.value
                )

            update = {k: v for k, v in changes.items() if k in ("supplier", "purchase_date", "notes") and v is not None}
            structural = {k: v for k, v in changes.items() if k in ("line_items", "freight", "taxes") and v is not None}
            if structural:
                if _has_active_deliveries(purchase):
                    raise InvalidTransition(
                        "采购单已有到货记录，不能修改明细、运费或税费",
                        current_status=purchase.status.value,
                    )
                if "line_items" in structural:
                    update["line_items"] = await _build_line_items(tx, purchase_in.line_items)
                for field in ("freight", "taxes"):
                    if field in structural:
                        update[field] = structural[field]

            update["updated_at"] = datetime.utcnow()
            updated = refresh_aggregates(purchase.model_copy(update=update))
            tx.set(PURCHASES, purchase_id, updated.to_document())
            return updated

        updated = await self.store.run_transaction(body)
        logger.info(f"更新采购单 {updated.purchase_number}: {', '.join(changes) or '无变更'}")
        return updated

    async def approve_purchase(self, purchase_id: str) -> PurchaseOrder:
        """审核：pending → approved"""

        async def body(tx: Transaction) -> PurchaseOrder:
            purchase = await get_purchase_in_tx(tx, purchase_id)
            if purchase.status != PurchaseStatus.PENDING:
                raise InvalidTransition(
                    f"只有待审核的采购单可以审核，当前状态 {purchase.status.value}",
                    current_status=purchase.status.value,
                )
            now = datetime.utcnow()
            updated = refresh_aggregates(purchase.model_copy(update={
                "status": PurchaseStatus.APPROVED,
                "approved_at": now,
                "updated_at": now,
            }))
            tx.set(PURCHASES, purchase_id, updated.to_document())
            return updated

        updated = await self.store.run_transaction(body)
        logger.info(f"✅ 采购单已审核 {updated.purchase_number}")
        return updated

    async def cancel_purchase(self, purchase_id: str, reason: str = "") -> PurchaseOrder:
        """取消采购单；有在途到货单时需先处理到货单"""

        async def body(tx: Transaction) -> PurchaseOrder:
            purchase = await get_purchase_in_tx(tx, purchase_id)
            if purchase.status in TERMINAL_STATUSES:
                raise InvalidTransition(
                    f"采购单已{purchase.status.value}，不能取消", current_status=purchase.status.value
                )
            if any(d.status == DeliveryStatus.IN_TRANSIT for d in purchase.deliveries):
                raise InvalidTransition(
                    "采购单有在途到货单，请先确认入库或取消到货单", current_status=purchase.status.value
                )
            now = datetime.utcnow()
            updated = refresh_aggregates(purchase.model_copy(update={
                "status": PurchaseStatus.CANCELLED,
                "cancelled_at": now,
                "cancellation_reason": reason or "",
                "updated_at": now,
            }))
            tx.set(PURCHASES, purchase_id, updated.to_document())
            return updated

        updated = await self.store.run_transaction(body)
        logger.info(f"🚫 采购单已取消 {updated.purchase_number}: {reason or '未填写原因'}")
        return updated

    async def delete_purchase(self, purchase_id: str) -> None:
        """删除采购单；已有在途或已入库的到货单时不能删除"""

        async def body(tx: Transaction) -> PurchaseOrder:
            purchase = await get_purchase_in_tx(tx, purchase_id)
            if _has_active_deliveries(purchase):
                raise InvalidTransition(
                    "采购单已有到货记录，不能删除", current_status=purchase.status.value
                )
            tx.delete(PURCHASES, purchase_id)
            return purchase

        purchase = await self.store.run_transaction(body)
        logger.info(f"🗑️ 删除采购单 {purchase.purchase_number}")

    async def get_purchase_stats(self) -> PurchaseStats:
        purchases = [PurchaseOrder.from_document(d) for d in await self.store.list_documents(PURCHASES)]
        stats = PurchaseStats(total=len(purchases))
        for purchase in purchases:
            field = purchase.status.value
            setattr(stats, field, getattr(stats, field) + 1)
        stats.total_amount = to_money(sum(
            p.total_amount for p in purchases if p.status != PurchaseStatus.CANCELLED
        ))
        return stats
