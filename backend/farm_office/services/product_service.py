"""
商品服务
- 建档、查询、修改（库存只能通过入库/出库变动）
- 低库存预警
- 库存流水查询
"""

import logging
from datetime import datetime
from typing import List, Optional

from farm_office.core.exceptions import DocumentNotFound, ProductNotFound
from farm_office.db.document_store import DocumentStore, Transaction, generate_id
from farm_office.schemas.product import Product, ProductCreate, ProductUpdate, StockMovement
from farm_office.services.stock_ledger import PRODUCTS, STOCK_MOVEMENTS, increment_stock, load_product

logger = logging.getLogger(__name__)


class ProductService:
    """商品服务"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def create_product(self, product_in: ProductCreate) -> Product:
        """商品建档；期初库存作为一条入库流水记录"""
        product_id = generate_id()

        async def body(tx: Transaction) -> Product:
            now = datetime.utcnow()
            product = Product(
                id=product_id,
                created_at=now,
                updated_at=now,
                **product_in.model_dump(exclude={"stock"}),
            )
            tx.set(PRODUCTS, product_id, product.to_document())
            if product_in.stock > 0:
                product = await increment_stock(
                    tx, product_id, product_in.stock,
                    reason="期初库存", source_type="initial", source_id=product_id,
                )
            return product

        product = await self.store.run_transaction(body)
        logger.info(f"📦 商品建档 {product.name}，期初库存 {product.stock}{product.unit}")
        return product

    async def get_product(self, product_id: str) -> Product:
        try:
            data = await self.store.get_document(PRODUCTS, product_id)
        except DocumentNotFound:
            raise ProductNotFound(product_id) from None
        return Product.from_document(data)

    async def list_products(self, category: Optional[str] = None, search: Optional[str] = None) -> List[Product]:
        products = [Product.from_document(d) for d in await self.store.list_documents(PRODUCTS)]
        if category:
            products = [p for p in products if p.category == category]
        if search:
            term = search.lower()
            products = [p for p in products if term in p.name.lower()]
        products.sort(key=lambda p: p.name)
        return products

    async def update_product(self, product_id: str, product_in: ProductUpdate) -> Product:
        changes = product_in.model_dump(exclude_unset=True, exclude_none=True)

        async def body(tx: Transaction) -> Product:
            product = await load_product(tx, product_id)
            updated = product.model_copy(update={**changes, "updated_at": datetime.utcnow()})
            # 只写描述字段，库存值保持事务内读到的最新值
            patch = updated.to_document()
            patch.pop("stock", None)
            tx.update(PRODUCTS, product_id, patch)
            return updated

        return await self.store.run_transaction(body)

    async def list_low_stock(self) -> List[Product]:
        """库存不高于最低库存的商品"""
        return [p for p in await self.list_products() if p.low_stock]

    async def list_movements(self, product_id: str) -> List[StockMovement]:
        """商品库存流水（最新的在前）"""
        await self.get_product(product_id)
        movements = [
            StockMovement.from_document(d)
            for d in await self.store.list_documents(STOCK_MOVEMENTS)
            if d.get("productId") == product_id
        ]
        movements.sort(key=lambda m: m.created_at or datetime.min, reverse=True)
        return movements
