"""依赖注入 - 每个请求从 app.state 取文档库，按配置构造服务"""
from fastapi import Depends, Request

from farm_office.core.config import settings
from farm_office.db.document_store import DocumentStore
from farm_office.services.delivery_service import DeliveryService
from farm_office.services.expense_service import ExpenseService
from farm_office.services.product_service import ProductService
from farm_office.services.purchase_service import PurchaseService


def get_store(request: Request) -> DocumentStore:
    """获取应用启动时创建的文档库"""
    return request.app.state.store


def get_product_service(store: DocumentStore = Depends(get_store)) -> ProductService:
    return ProductService(store)


def get_purchase_service(store: DocumentStore = Depends(get_store)) -> PurchaseService:
    return PurchaseService(store)


def get_delivery_service(store: DocumentStore = Depends(get_store)) -> DeliveryService:
    return DeliveryService(store, over_request_policy=settings.DELIVERY_OVER_REQUEST_POLICY)


def get_expense_service(store: DocumentStore = Depends(get_store)) -> ExpenseService:
    return ExpenseService(store, delete_restores_stock=settings.EXPENSE_DELETE_RESTORES_STOCK)
