"""Waybill API endpoints for dispatch, edits, loan conversion and cancellation."""
import uuid

from fastapi import APIRouter, HTTPException, status

from tradedesk.api.deps import DB, CurrentUserId
from tradedesk.schemas.waybill import (
    LoanConversionRequest,
    WaybillCreate,
    WaybillResponse,
    WaybillUpdate,
)
from tradedesk.services.cache_service import get_cache
from tradedesk.services.waybill_service import WaybillService


router = APIRouter(tags=["Waybills"])


@router.post("", response_model=WaybillResponse, status_code=status.HTTP_201_CREATED)
async def create_waybill(
    data: WaybillCreate,
    db: DB,
    user_id: CurrentUserId,
):
    """
    Dispatch stock on a waybill.

    Leave waybill_number empty to allocate the next WB number. Each lot draw
    reduces the lot's quantity and is logged.
    """
    service = WaybillService(db)
    waybill = await service.create_waybill(data, user_id)
    await get_cache().invalidate_stock_views()
    return WaybillResponse.model_validate(waybill)


@router.get("/{waybill_id}", response_model=WaybillResponse)
async def get_waybill(
    waybill_id: uuid.UUID,
    db: DB,
):
    service = WaybillService(db)
    waybill = await service.get_waybill(waybill_id)
    if not waybill:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Waybill not found"
        )
    return WaybillResponse.model_validate(waybill)


@router.post("/{waybill_id}/cancel", response_model=WaybillResponse)
async def cancel_waybill(
    waybill_id: uuid.UUID,
    db: DB,
    user_id: CurrentUserId,
):
    """Cancel a waybill and return its stock to the lots it was drawn from."""
    service = WaybillService(db)
    waybill = await service.cancel_waybill(waybill_id, user_id)
    await get_cache().invalidate_stock_views()
    return WaybillResponse.model_validate(waybill)


@router.put("/{waybill_id}", response_model=WaybillResponse)
async def edit_waybill(
    waybill_id: uuid.UUID,
    data: WaybillUpdate,
    db: DB,
    user_id: CurrentUserId,
):
    """
    Replace the lines of a dispatched waybill.

    The previous draws are returned to their lots and the new ones taken in
    one transaction. The waybill keeps its number, type and sale.
    """
    service = WaybillService(db)
    waybill = await service.edit_waybill(waybill_id, data, user_id)
    await get_cache().invalidate_stock_views()
    return WaybillResponse.model_validate(waybill)


@router.post(
    "/{waybill_id}/convert",
    response_model=WaybillResponse,
    status_code=status.HTTP_201_CREATED,
)
async def convert_loan_waybill(
    waybill_id: uuid.UUID,
    data: LoanConversionRequest,
    db: DB,
    user_id: CurrentUserId,
):
    """Book goods out on a loan waybill against a sale. No stock moves."""
    service = WaybillService(db)
    waybill = await service.convert_loan_waybill(waybill_id, data, user_id)
    await get_cache().invalidate_stock_views()
    return WaybillResponse.model_validate(waybill)
