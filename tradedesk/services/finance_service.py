"""Receipts and payments received, numbered from the document sequence."""
import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradedesk.core.exceptions import TradeDeskError, NotFoundError, DuplicateDocumentNumberError
from tradedesk.models.customer import Customer
from tradedesk.models.document_sequence import DocumentType
from tradedesk.models.finance import Receipt, PaymentReceived
from tradedesk.models.sale import Sale
from tradedesk.schemas.finance import ReceiptCreate, PaymentCreate
from tradedesk.services.document_sequence_service import DocumentSequenceService

logger = logging.getLogger(__name__)


class FinanceService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _check_references(self, sale_id: Optional[uuid.UUID], customer_id: Optional[uuid.UUID]):
        """Validate optional sale and customer links. Returns the customer id to store."""
        if sale_id:
            sale = await self.db.get(Sale, sale_id)
            if not sale or not sale.is_active:
                raise NotFoundError(f"Sale {sale_id} not found")
            customer_id = customer_id or sale.customer_id
        if customer_id:
            customer = await self.db.get(Customer, customer_id)
            if not customer:
                raise NotFoundError(f"Customer {customer_id} not found")
        return customer_id

    async def create_receipt(self, data: ReceiptCreate, user_id: Optional[uuid.UUID] = None) -> Receipt:
        try:
            customer_id = await self._check_references(data.sale_id, data.customer_id)

            numbering = DocumentSequenceService(self.db, user_id=user_id)
            number = await numbering.assign_number(DocumentType.RECEIPT, data.receipt_number)

            receipt = Receipt(
                receipt_number=number,
                sale_id=data.sale_id,
                customer_id=customer_id,
                amount=data.amount,
                receipt_date=data.receipt_date,
                notes=data.notes,
            )
            self.db.add(receipt)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Receipt rejected: {e}")
            raise DuplicateDocumentNumberError("Receipt number already exists. Please generate a new number.")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Receipt rolled back: {e}")
            raise

        logger.info(f"Receipt {number} issued for {data.amount}")
        return receipt

    async def create_payment(self, data: PaymentCreate, user_id: Optional[uuid.UUID] = None) -> PaymentReceived:
        try:
            customer_id = await self._check_references(data.sale_id, data.customer_id)

            numbering = DocumentSequenceService(self.db, user_id=user_id)
            number = await numbering.assign_number(DocumentType.PAYMENT, data.payment_ref_number)

            payment = PaymentReceived(
                payment_ref_number=number,
                sale_id=data.sale_id,
                customer_id=customer_id,
                amount=data.amount,
                payment_date=data.payment_date,
                payment_method=data.payment_method,
                notes=data.notes,
            )
            self.db.add(payment)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Payment rejected: {e}")
            raise DuplicateDocumentNumberError("Payment reference already exists. Please generate a new number.")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Payment rolled back: {e}")
            raise

        logger.info(f"Payment {number} recorded for {data.amount}")
        return payment
