"""采购单API"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from farm_office.core.deps import get_delivery_service, get_purchase_service
from farm_office.schemas.purchase import (
    DeliverableLineItem, PurchaseCancel, PurchaseCreate, PurchaseCreated,
    PurchaseListResponse, PurchaseOrder, PurchaseStats, PurchaseUpdate
)
from farm_office.services.delivery_service import DeliveryService
from farm_office.services.purchase_service import PurchaseService

router = APIRouter()


@router.get("/", response_model=PurchaseListResponse)
async def list_purchases(
    status: Optional[str] = Query(None, description="状态"),
    supplier: Optional[str] = Query(None, description="供应商"),
    search: Optional[str] = Query(None, description="单号/供应商/商品名称"),
    service: PurchaseService = Depends(get_purchase_service)
):
    """采购单列表"""
    purchases = await service.list_purchases(status=status, supplier=supplier, search=search)
    return PurchaseListResponse(data=purchases, total=len(purchases))


@router.post("/", response_model=PurchaseCreated, status_code=201)
async def create_purchase(
    data: PurchaseCreate,
    service: PurchaseService = Depends(get_purchase_service)
):
    """创建采购单"""
    purchase_id = await service.create_purchase(data)
    return PurchaseCreated(purchase_id=purchase_id)


@router.get("/stats", response_model=PurchaseStats)
async def get_purchase_stats(service: PurchaseService = Depends(get_purchase_service)):
    """采购统计"""
    return await service.get_purchase_stats()


@router.get("/{purchase_id}", response_model=PurchaseOrder)
async def get_purchase(purchase_id: str, service: PurchaseService = Depends(get_purchase_service)):
    return await service.get_purchase(purchase_id)


@router.put("/{purchase_id}", response_model=PurchaseOrder)
async def update_purchase(
    purchase_id: str,
    data: PurchaseUpdate,
    service: PurchaseService = Depends(get_purchase_service)
):
    return await service.update_purchase(purchase_id, data)


@router.delete("/{purchase_id}")
async def delete_purchase(purchase_id: str, service: PurchaseService = Depends(get_purchase_service)):
    await service.delete_purchase(purchase_id)
    return {"message": "删除成功"}


@router.post("/{purchase_id}/approve", response_model=PurchaseOrder)
async def approve_purchase(purchase_id: str, service: PurchaseService = Depends(get_purchase_service)):
    """审核采购单"""
    return await service.approve_purchase(purchase_id)


@router.post("/{purchase_id}/cancel", response_model=PurchaseOrder)
async def cancel_purchase(
    purchase_id: str,
    data: Optional[PurchaseCancel] = None,
    service: PurchaseService = Depends(get_purchase_service)
):
    """取消采购单"""
    return await service.cancel_purchase(purchase_id, reason=data.reason if data else "")


@router.get("/{purchase_id}/deliverable-items", response_model=List[DeliverableLineItem])
async def get_deliverable_items(
    purchase_id: str,
    service: DeliveryService = Depends(get_delivery_service)
):
    """可登记到货的明细（待到货数量 > 0）"""
    return await service.get_deliverable_line_items(purchase_id)
