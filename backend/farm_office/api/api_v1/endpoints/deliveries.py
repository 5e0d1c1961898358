"""到货单API（挂在采购单下）"""

from typing import Optional
from fastapi import APIRouter, Depends

from farm_office.core.deps import get_delivery_service
from farm_office.schemas.delivery import DeliveryCancel, DeliveryCreated, DeliveryRequest
from farm_office.services.delivery_service import DeliveryService

router = APIRouter()


@router.post("/{purchase_id}/deliveries", response_model=DeliveryCreated, status_code=201)
async def create_delivery(
    purchase_id: str,
    data: DeliveryRequest,
    service: DeliveryService = Depends(get_delivery_service)
):
    """登记到货（在途）"""
    delivery_id = await service.create_delivery(purchase_id, data)
    return DeliveryCreated(delivery_id=delivery_id)


@router.post("/{purchase_id}/deliveries/{delivery_id}/complete")
async def complete_delivery(
    purchase_id: str,
    delivery_id: str,
    service: DeliveryService = Depends(get_delivery_service)
):
    """确认入库"""
    await service.complete_delivery(purchase_id, delivery_id)
    return {"message": "入库成功"}


@router.post("/{purchase_id}/deliveries/{delivery_id}/cancel")
async def cancel_delivery(
    purchase_id: str,
    delivery_id: str,
    data: Optional[DeliveryCancel] = None,
    service: DeliveryService = Depends(get_delivery_service)
):
    """取消到货"""
    await service.cancel_delivery(purchase_id, delivery_id, reason=data.reason if data else "")
    return {"message": "已取消"}
