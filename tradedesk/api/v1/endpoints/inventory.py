"""Inventory API endpoints for lots, stock levels and the transaction log."""
from typing import Optional, List
import uuid
from datetime import datetime

from fastapi import APIRouter, HTTPException, status

from tradedesk.api.deps import DB, CurrentUserId, Page
from tradedesk.schemas.base import page_count
from tradedesk.schemas.inventory import (
    StockReceiptRequest,
    InventoryLotResponse,
    InventoryLotListResponse,
    ProductStock,
    ReorderAlert,
    InventoryTransactionFilters,
    InventoryTransactionListResponse,
    InventoryTransactionResponse,
)
from tradedesk.services.cache_service import get_cache
from tradedesk.services.inventory_service import InventoryService


router = APIRouter(tags=["Inventory"])


# ==================== STOCK RECEIPT ====================

@router.post(
    "/receive",
    response_model=List[InventoryLotResponse],
    status_code=status.HTTP_201_CREATED,
)
async def receive_stock(
    data: StockReceiptRequest,
    db: DB,
    user_id: CurrentUserId,
):
    """Receive stock into lots. Matching active lots are topped up."""
    service = InventoryService(db)
    lots = await service.receive_stock(data, user_id)
    await get_cache().invalidate_stock_views()
    return [InventoryLotResponse.model_validate(lot) for lot in lots]


# ==================== LOTS ====================

@router.get("/lots", response_model=InventoryLotListResponse)
async def list_lots(
    db: DB,
    paging: Page,
    product_id: Optional[uuid.UUID] = None,
    store_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    only_available: bool = False,
):
    """List active lots, oldest received first."""
    cache = get_cache()
    cache_params = {
        "product_id": product_id,
        "store_id": store_id,
        "search": search,
        "only_available": only_available,
        "page": paging.page,
        "size": paging.size,
    }
    cached = await cache.get_view("inventory", cache_params)
    if cached is not None:
        return cached

    service = InventoryService(db)
    lots, total = await service.get_lots(
        product_id=product_id,
        store_id=store_id,
        search=search,
        only_available=only_available,
        page=paging.page,
        size=paging.size,
    )

    response = InventoryLotListResponse(
        items=[InventoryLotResponse.model_validate(lot) for lot in lots],
        total=total,
        page=paging.page,
        size=paging.size,
        pages=page_count(total, paging.size),
    )
    await cache.set_view("inventory", cache_params, response.model_dump(mode="json"))
    return response


@router.get("/lots/{lot_id}", response_model=InventoryLotResponse)
async def get_lot(
    lot_id: uuid.UUID,
    db: DB,
):
    service = InventoryService(db)
    lot = await service.get_lot(lot_id)
    if not lot:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Inventory lot not found"
        )
    return InventoryLotResponse.model_validate(lot)


# ==================== STOCK LEVELS ====================

@router.get("/products/{product_id}/stock", response_model=ProductStock)
async def get_product_stock(
    product_id: uuid.UUID,
    db: DB,
    store_id: Optional[uuid.UUID] = None,
):
    """On-hand quantity summed over the product's active lots."""
    service = InventoryService(db)
    return await service.get_product_stock(product_id, store_id)


@router.get("/alerts", response_model=List[ReorderAlert])
async def get_reorder_alerts(
    db: DB,
    store_id: Optional[uuid.UUID] = None,
):
    """Products at or below their alert quantity, or at or above the max alert quantity."""
    service = InventoryService(db)
    return await service.get_reorder_alerts(store_id)


# ==================== TRANSACTION LOG ====================

@router.get("/transactions", response_model=InventoryTransactionListResponse)
async def list_transactions(
    db: DB,
    paging: Page,
    product_id: Optional[uuid.UUID] = None,
    store_id: Optional[uuid.UUID] = None,
    inventory_lot_id: Optional[uuid.UUID] = None,
    transaction_type: Optional[str] = None,
    reference_id: Optional[uuid.UUID] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
):
    filters = InventoryTransactionFilters(
        product_id=product_id,
        store_id=store_id,
        inventory_lot_id=inventory_lot_id,
        transaction_type=transaction_type,
        reference_id=reference_id,
        date_from=date_from,
        date_to=date_to,
    )
    service = InventoryService(db)
    transactions, total = await service.list_transactions(filters, page=paging.page, size=paging.size)

    return InventoryTransactionListResponse(
        items=[InventoryTransactionResponse.model_validate(t) for t in transactions],
        total=total,
        page=paging.page,
        size=paging.size,
        pages=page_count(total, paging.size),
    )
