"""Backorder API endpoints: registry listing, fulfillment and cancellation."""
from typing import Optional
import uuid
from datetime import datetime

from fastapi import APIRouter, HTTPException, status, Query

from tradedesk.api.deps import DB, CurrentUserId, Page
from tradedesk.schemas.backorder import (
    BackorderFilters,
    BackorderDetail,
    BackorderListResponse,
    BackorderResponse,
    FulfillBackorderRequest,
    FulfillmentResult,
)
from tradedesk.schemas.base import page_count
from tradedesk.services.backorder_service import BackorderService
from tradedesk.services.cache_service import get_cache
from tradedesk.services.fulfillment_service import FulfillmentService


router = APIRouter(tags=["Backorders"])


# ==================== REGISTRY ====================

@router.get("", response_model=BackorderListResponse)
async def list_backorders(
    db: DB,
    paging: Page,
    search: Optional[str] = None,
    product_id: Optional[uuid.UUID] = None,
    sale_id: Optional[uuid.UUID] = None,
    customer_id: Optional[uuid.UUID] = None,
    pending_quantity_min: Optional[int] = Query(None, ge=0),
    pending_quantity_max: Optional[int] = Query(None, ge=0),
    created_at_start: Optional[datetime] = None,
    created_at_end: Optional[datetime] = None,
    get_all: bool = Query(False, description="Return every match without paging"),
):
    """
    List active backorders, oldest first.

    Search matches product name, code and description, the sale invoice
    number and the customer name.
    """
    filters = BackorderFilters(
        search=search,
        product_id=product_id,
        sale_id=sale_id,
        customer_id=customer_id,
        pending_quantity_min=pending_quantity_min,
        pending_quantity_max=pending_quantity_max,
        created_at_start=created_at_start,
        created_at_end=created_at_end,
    )
    cache = get_cache()
    cache_params = {**filters.model_dump(), "page": paging.page, "size": paging.size, "get_all": get_all}

    cached = await cache.get_view("backorders", cache_params)
    if cached is not None:
        return cached

    service = BackorderService(db)
    items, total = await service.list_backorders(
        filters, page=paging.page, size=paging.size, get_all=get_all
    )

    size = max(total, 1) if get_all else paging.size
    response = BackorderListResponse(
        items=items,
        total=total,
        page=1 if get_all else paging.page,
        size=size,
        pages=page_count(total, size),
    )
    await cache.set_view("backorders", cache_params, response.model_dump(mode="json"))
    return response


@router.get("/{backorder_id}", response_model=BackorderDetail)
async def get_backorder(
    backorder_id: uuid.UUID,
    db: DB,
):
    """Get a backorder with its product, sale item, sale and customer."""
    service = BackorderService(db)
    detail = await service.get_backorder(backorder_id)
    if not detail:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Backorder not found"
        )
    return detail


# ==================== FULFILLMENT ====================

@router.post("/{backorder_id}/fulfill", response_model=FulfillmentResult)
async def fulfill_backorder(
    backorder_id: uuid.UUID,
    data: FulfillBackorderRequest,
    db: DB,
    user_id: CurrentUserId,
):
    """
    Fulfill a backorder from an inventory lot.

    The quantity is clamped to the pending quantity and the lot's stock.
    Lot quantity is not reduced until the goods leave on a waybill.
    """
    service = FulfillmentService(db)
    result = await service.fulfill_backorder(
        backorder_id,
        data.inventory_lot_id,
        user_id,
        requested_quantity=data.requested_quantity,
    )
    await get_cache().invalidate_stock_views()
    return result


@router.delete("/{backorder_id}", response_model=BackorderResponse)
async def delete_backorder(
    backorder_id: uuid.UUID,
    db: DB,
    user_id: CurrentUserId,
):
    """Cancel a backorder. The sale item's backorder quantity is reduced to match."""
    service = BackorderService(db)
    backorder = await service.soft_delete_backorder(backorder_id, user_id)
    await get_cache().invalidate_stock_views()
    return BackorderResponse.model_validate(backorder)
