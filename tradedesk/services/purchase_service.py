"""
Purchase Service.

Purchases and purchase orders take their numbers from the document
sequence. A received purchase books its items into inventory lots in the
same transaction.
"""
import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tradedesk.core.exceptions import TradeDeskError, NotFoundError, DuplicateDocumentNumberError
from tradedesk.models.document_sequence import DocumentType
from tradedesk.models.inventory import InventoryTransactionType
from tradedesk.models.purchase import Purchase, PurchaseItem, PurchaseOrder, PurchaseStatus
from tradedesk.models.store import Store
from tradedesk.schemas.inventory import StockReceiptItem
from tradedesk.schemas.purchase import PurchaseCreate, PurchaseOrderCreate
from tradedesk.services.document_sequence_service import DocumentSequenceService
from tradedesk.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class PurchaseService:
    """Service for purchases and purchase orders."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    async def get_purchase(self, purchase_id: uuid.UUID) -> Optional[Purchase]:
        result = await self.db.execute(
            select(Purchase)
            .options(selectinload(Purchase.items))
            .where(Purchase.id == purchase_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_store(self, store_id: uuid.UUID) -> None:
        store = await self.db.get(Store, store_id)
        if not store or not store.is_active:
            raise NotFoundError(f"Store {store_id} not found")

    async def create_purchase(self, data: PurchaseCreate, user_id: Optional[uuid.UUID]) -> Purchase:
        """
        Record a purchase, optionally receiving its items into stock.

        Raises:
            DuplicateDocumentNumberError: supplied number already used
            ValidationFailureError: supplied number malformed
            NotFoundError: store or product missing
        """
        try:
            await self._ensure_store(data.store_id)

            numbering = DocumentSequenceService(self.db, user_id=user_id)
            purchase_number = await numbering.assign_number(DocumentType.PURCHASE, data.purchase_number)

            purchase = Purchase(
                purchase_number=purchase_number,
                vendor_name=data.vendor_name,
                vendor_invoice_number=data.vendor_invoice_number,
                purchase_date=data.purchase_date,
                store_id=data.store_id,
                status=(PurchaseStatus.RECEIVED if data.received else PurchaseStatus.PENDING).value,
                is_received=data.received,
                notes=data.notes,
            )
            self.db.add(purchase)
            await self.db.flush()

            total_amount = Decimal("0")
            for item in data.items:
                line_total = item.unit_cost * item.quantity
                total_amount += line_total
                self.db.add(PurchaseItem(
                    purchase_id=purchase.id,
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_cost=item.unit_cost,
                    total_cost=line_total,
                    lot_number=item.lot_number,
                    expiry_date=item.expiry_date,
                ))

                if data.received:
                    await self.inventory.add_stock(
                        data.store_id,
                        StockReceiptItem(
                            product_id=item.product_id,
                            lot_number=item.lot_number,
                            quantity=item.quantity,
                            cost_price=item.unit_cost,
                            expiry_date=item.expiry_date,
                        ),
                        user_id,
                        transaction_type=InventoryTransactionType.PURCHASE,
                        reference_id=purchase.id,
                        notes=f"Purchase {purchase_number}",
                    )

            purchase.total_amount = total_amount
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Purchase rejected: {e}")
            raise DuplicateDocumentNumberError("Purchase number already exists. Please generate a new number.")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Purchase rolled back: {e}")
            raise

        logger.info(f"Purchase {purchase_number} recorded, received={data.received}")
        return await self.get_purchase(purchase.id)

    async def create_purchase_order(
        self,
        data: PurchaseOrderCreate,
        user_id: Optional[uuid.UUID] = None
    ) -> PurchaseOrder:
        try:
            if data.store_id:
                await self._ensure_store(data.store_id)

            numbering = DocumentSequenceService(self.db, user_id=user_id)
            number = await numbering.assign_number(DocumentType.PURCHASE_ORDER, data.purchase_order_number)

            order = PurchaseOrder(
                purchase_order_number=number,
                vendor_name=data.vendor_name,
                order_date=data.order_date,
                store_id=data.store_id,
                total_amount=data.total_amount,
                status=PurchaseStatus.DRAFT.value,
                notes=data.notes,
            )
            self.db.add(order)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Purchase order rejected: {e}")
            raise DuplicateDocumentNumberError(
                "Purchase order number already exists. Please generate a new number."
            )
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Purchase order rolled back: {e}")
            raise

        logger.info(f"Purchase order {number} created")
        return order
