"""
测试公共夹具：每个测试一个独立的 SQLite 文件
"""
import os
from datetime import date

import pytest

# 测试不写日志文件，不启动定时备份
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("AUTO_BACKUP_ENABLED", "false")

from farm_office.db.document_store import DocumentStore  # noqa: E402
from farm_office.db.init_db import ensure_tables_exist  # noqa: E402
from farm_office.db.session import create_engine  # noqa: E402
from farm_office.schemas.delivery import DeliveryRequest  # noqa: E402
from farm_office.schemas.product import ProductCreate  # noqa: E402
from farm_office.schemas.purchase import LineItemCreate, PurchaseCreate  # noqa: E402
from farm_office.services.delivery_service import DeliveryService  # noqa: E402
from farm_office.services.expense_service import ExpenseService  # noqa: E402
from farm_office.services.product_service import ProductService  # noqa: E402
from farm_office.services.purchase_service import PurchaseService  # noqa: E402


@pytest.fixture
def database_uri(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'farm_office.db'}"


@pytest.fixture
async def engine(database_uri):
    engine = create_engine(database_uri)
    await ensure_tables_exist(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return DocumentStore(engine, max_attempts=5, retry_delay=0)


@pytest.fixture
def product_service(store):
    return ProductService(store)


@pytest.fixture
def purchase_service(store):
    return PurchaseService(store)


@pytest.fixture
def delivery_service(store):
    return DeliveryService(store)


@pytest.fixture
def expense_service(store):
    return ExpenseService(store)


@pytest.fixture
def make_product(product_service):
    """按名称和期初库存建档商品"""

    async def _make(name="玉米", stock=0, **kwargs):
        return await product_service.create_product(ProductCreate(name=name, stock=stock, **kwargs))

    return _make


@pytest.fixture
def make_purchase(purchase_service):
    """创建采购单，approve=True 时直接审核通过"""

    async def _make(items=None, approve=True, **kwargs):
        items = items or [{"name": "玉米", "quantity": 10, "unit_cost": 2}]
        purchase_id = await purchase_service.create_purchase(PurchaseCreate(
            supplier=kwargs.pop("supplier", "绿源农资"),
            line_items=[LineItemCreate(**item) for item in items],
            **kwargs,
        ))
        if approve:
            await purchase_service.approve_purchase(purchase_id)
        return await purchase_service.get_purchase(purchase_id)

    return _make


def delivery_request(*products, warehouse_id="WH-1", delivery_date=date(2026, 3, 1), freight=None):
    """到货请求：products 为 (明细键, 数量) 列表"""
    return DeliveryRequest(
        warehouse_id=warehouse_id,
        warehouse_name="一号仓",
        delivery_date=delivery_date,
        products=[{"key": key, "quantity": qty} for key, qty in products],
        freight=freight,
    )
