"""Purchase and purchase order API endpoints."""
from fastapi import APIRouter, status

from tradedesk.api.deps import DB, CurrentUserId
from tradedesk.schemas.purchase import (
    PurchaseCreate,
    PurchaseResponse,
    PurchaseOrderCreate,
    PurchaseOrderResponse,
)
from tradedesk.services.cache_service import get_cache
from tradedesk.services.purchase_service import PurchaseService


router = APIRouter(tags=["Purchasing"])


@router.post("/purchases", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase(
    data: PurchaseCreate,
    db: DB,
    user_id: CurrentUserId,
):
    """Record a purchase. With received=true the items are booked into lots."""
    service = PurchaseService(db)
    purchase = await service.create_purchase(data, user_id)
    if data.received:
        await get_cache().invalidate_stock_views()
    return PurchaseResponse.model_validate(purchase)


@router.post("/purchase-orders", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    data: PurchaseOrderCreate,
    db: DB,
    user_id: CurrentUserId,
):
    service = PurchaseService(db)
    order = await service.create_purchase_order(data, user_id)
    return PurchaseOrderResponse.model_validate(order)
