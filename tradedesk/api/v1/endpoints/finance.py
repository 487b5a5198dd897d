"""Receipt and payment API endpoints."""
from fastapi import APIRouter, status

from tradedesk.api.deps import DB, CurrentUserId
from tradedesk.schemas.finance import ReceiptCreate, ReceiptResponse, PaymentCreate, PaymentResponse
from tradedesk.services.finance_service import FinanceService


router = APIRouter(tags=["Finance"])


@router.post("/receipts", response_model=ReceiptResponse, status_code=status.HTTP_201_CREATED)
async def create_receipt(
    data: ReceiptCreate,
    db: DB,
    user_id: CurrentUserId,
):
    service = FinanceService(db)
    receipt = await service.create_receipt(data, user_id)
    return ReceiptResponse.model_validate(receipt)


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: PaymentCreate,
    db: DB,
    user_id: CurrentUserId,
):
    service = FinanceService(db)
    payment = await service.create_payment(data, user_id)
    return PaymentResponse.model_validate(payment)
