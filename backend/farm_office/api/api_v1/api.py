"""V1 API 路由聚合"""
from fastapi import APIRouter

from farm_office.api.api_v1.endpoints import products, purchases, deliveries, expenses

api_router = APIRouter()

api_router.include_router(products.router, prefix="/products", tags=["商品管理"])
api_router.include_router(purchases.router, prefix="/purchases", tags=["采购管理"])
api_router.include_router(deliveries.router, prefix="/purchases", tags=["到货管理"])
api_router.include_router(expenses.router, prefix="/expenses", tags=["支出管理"])
