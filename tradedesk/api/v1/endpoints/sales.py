"""Sale API endpoints."""
import uuid

from fastapi import APIRouter, HTTPException, status

from tradedesk.api.deps import DB, CurrentUserId
from tradedesk.schemas.sale import SaleCreate, SaleResponse
from tradedesk.services.cache_service import get_cache
from tradedesk.services.sale_service import SaleService


router = APIRouter(tags=["Sales"])


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
async def create_sale(
    data: SaleCreate,
    db: DB,
    user_id: CurrentUserId,
):
    """
    Create a sale.

    Stock on hand is designated to each item oldest lot first. Any shortfall
    opens a backorder for the item.
    """
    service = SaleService(db)
    sale = await service.create_sale(data, user_id)
    await get_cache().invalidate_stock_views()
    return SaleResponse.model_validate(sale)


@router.get("/{sale_id}", response_model=SaleResponse)
async def get_sale(
    sale_id: uuid.UUID,
    db: DB,
):
    service = SaleService(db)
    sale = await service.get_sale(sale_id)
    if not sale:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sale not found"
        )
    return SaleResponse.model_validate(sale)
