"""
库存账本
- 出库（扣减）：库存不足直接报错，整个事务放弃
- 入库（增加）
- 每次变动写一条库存流水

两个函数都在调用方的事务里执行：库存值在事务内重新读取，
和依赖它的记录（支出、到货单）一起提交或一起放弃。
"""

import logging
from datetime import datetime
from typing import Optional

from farm_office.core.exceptions import InsufficientStock, ProductNotFound
from farm_office.db.document_store import Transaction, generate_id
from farm_office.schemas.product import MovementType, Product, StockMovement
from farm_office.services.purchase_calc import to_decimal

logger = logging.getLogger(__name__)

PRODUCTS = "products"
STOCK_MOVEMENTS = "stock_movements"


async def load_product(tx: Transaction, product_id: str) -> Product:
    data = await tx.get(PRODUCTS, product_id)
    if data is None:
        raise ProductNotFound(product_id)
    return Product.from_document(data)


async def deduct_stock(
    tx: Transaction,
    product_id: str,
    quantity: float,
    reason: str = None,
    source_type: str = "",
    source_id: Optional[str] = None) -> Product:
    """出库

    Raises:
        ProductNotFound: 商品不存在
        InsufficientStock: 当前库存小于出库数量
    """
    if quantity <= 0:
        raise ValueError("出库数量必须大于0")

    product = await load_product(tx, product_id)
    if to_decimal(quantity) > to_decimal(product.stock):
        raise InsufficientStock(product.stock, quantity, product.name)

    return _apply_change(
        tx, product, -quantity, MovementType.OUT,
        reason or "出库", source_type, source_id,
    )


async def increment_stock(
    tx: Transaction,
    product_id: str,
    quantity: float,
    reason: str = None,
    source_type: str = "",
    source_id: Optional[str] = None) -> Product:
    """入库"""
    if quantity <= 0:
        raise ValueError("入库数量必须大于0")

    product = await load_product(tx, product_id)
    return _apply_change(
        tx, product, quantity, MovementType.IN,
        reason or "入库", source_type, source_id,
    )


def _apply_change(
    tx: Transaction,
    product: Product,
    delta: float,
    movement_type: MovementType,
    reason: str,
    source_type: str,
    source_id: Optional[str]) -> Product:
    before = product.stock
    after = float(to_decimal(before) + to_decimal(delta))
    now = datetime.utcnow()

    tx.update(PRODUCTS, product.id, {"stock": after, "updatedAt": now.isoformat()})

    # 记录流水
    movement = StockMovement(
        id=generate_id(),
        product_id=product.id,
        movement_type=movement_type,
        quantity=abs(delta),
        stock_before=before,
        stock_after=after,
        reason=reason,
        source_type=source_type,
        source_id=source_id,
        created_at=now,
    )
    tx.set(STOCK_MOVEMENTS, movement.id, movement.to_document())

    logger.debug(f"库存变动 {product.name}({product.id}): {before} → {after} [{reason}]")
    return product.model_copy(update={"stock": after, "updated_at": now})
