"""商品管理API"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from farm_office.core.deps import get_product_service
from farm_office.schemas.product import (
    ProductCreate, ProductUpdate, ProductResponse, ProductListResponse, StockMovementListResponse
)
from farm_office.services.product_service import ProductService

router = APIRouter()


@router.get("/", response_model=ProductListResponse)
async def list_products(
    category: Optional[str] = Query(None, description="分类"),
    search: Optional[str] = Query(None, description="按名称搜索"),
    service: ProductService = Depends(get_product_service)
):
    """商品列表"""
    products = await service.list_products(category=category, search=search)
    return ProductListResponse(
        data=[ProductResponse.from_product(p) for p in products],
        total=len(products),
    )


@router.post("/", response_model=ProductResponse, status_code=201)
async def create_product(
    data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    """商品建档"""
    product = await service.create_product(data)
    return ProductResponse.from_product(product)


@router.get("/low-stock", response_model=ProductListResponse)
async def list_low_stock(service: ProductService = Depends(get_product_service)):
    """低库存预警"""
    products = await service.list_low_stock()
    return ProductListResponse(
        data=[ProductResponse.from_product(p) for p in products],
        total=len(products),
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    product = await service.get_product(product_id)
    return ProductResponse.from_product(product)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: str,
    data: ProductUpdate,
    service: ProductService = Depends(get_product_service)
):
    """更新商品（库存不可直接修改）"""
    product = await service.update_product(product_id, data)
    return ProductResponse.from_product(product)


@router.get("/{product_id}/movements", response_model=StockMovementListResponse)
async def list_movements(product_id: str, service: ProductService = Depends(get_product_service)):
    """库存流水"""
    movements = await service.list_movements(product_id)
    return StockMovementListResponse(data=movements, total=len(movements))
