"""
Sale Service.

Creating a sale designates stock already on hand at the store to each item,
oldest lot first, and opens a backorder for whatever is short. Designation
writes SaleItemInventory rows only. Lot quantities change at waybill dispatch.

A lot can only be designated up to its quantity minus what earlier sales
still hold on it (designated but not yet drawn by a waybill).
"""
import logging
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tradedesk.core.exceptions import (
    TradeDeskError,
    NotFoundError,
    DuplicateDocumentNumberError,
)
from tradedesk.models.customer import Customer
from tradedesk.models.product import Product
from tradedesk.models.sale import Sale, SaleItem, SaleItemInventory, SaleStatus
from tradedesk.models.store import Store
from tradedesk.schemas.sale import SaleCreate
from tradedesk.services.backorder_service import BackorderService
from tradedesk.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class SaleService:
    """Service for sales and their stock designation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)
        self.backorders = BackorderService(db)

    async def get_sale(self, sale_id: uuid.UUID) -> Optional[Sale]:
        result = await self.db.execute(
            select(Sale)
            .options(selectinload(Sale.items))
            .where(Sale.id == sale_id, Sale.is_active == True)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_invoice_free(self, invoice_number: str) -> None:
        result = await self.db.execute(
            select(Sale.id).where(Sale.invoice_number == invoice_number)
        )
        if result.scalar_one_or_none() is not None:
            raise DuplicateDocumentNumberError(f"Invoice number {invoice_number} already exists")

    async def _designate(self, sale_item: SaleItem) -> int:
        """Designate free on-hand stock to a sale item. Returns the quantity designated."""
        lots = await self.inventory.lock_available_lots(sale_item.product_id, sale_item.store_id)
        held = await self.inventory.reserved_quantities(lot.id for lot in lots)

        remaining = sale_item.quantity
        for lot in lots:
            if remaining <= 0:
                break
            free = lot.quantity - held.get(lot.id, 0)
            if free <= 0:
                continue

            take = min(free, remaining)
            remaining -= take

            self.db.add(SaleItemInventory(
                sale_item_id=sale_item.id,
                inventory_lot_id=lot.id,
                lot_number=lot.lot_number,
                quantity_to_take=take,
            ))

        await self.db.flush()

        return sale_item.quantity - remaining

    async def create_sale(self, data: SaleCreate, user_id: Optional[uuid.UUID]) -> Sale:
        """
        Create a sale with its items.

        Raises:
            DuplicateDocumentNumberError: invoice number already used
            NotFoundError: store, customer or product missing
        """
        invoice_number = data.invoice_number.strip()
        backorder_count = 0

        try:
            await self._ensure_invoice_free(invoice_number)

            store = await self.db.get(Store, data.store_id)
            if not store or not store.is_active:
                raise NotFoundError(f"Store {data.store_id} not found")

            if data.customer_id:
                customer = await self.db.get(Customer, data.customer_id)
                if not customer or not customer.is_active:
                    raise NotFoundError(f"Customer {data.customer_id} not found")

            sale = Sale(
                invoice_number=invoice_number,
                customer_id=data.customer_id,
                store_id=data.store_id,
                status=SaleStatus.PENDING.value,
                notes=data.notes,
            )
            if data.sale_date:
                sale.sale_date = data.sale_date
            self.db.add(sale)
            await self.db.flush()

            total_amount = Decimal("0")

            for item_data in data.items:
                product = await self.db.get(Product, item_data.product_id)
                if not product or not product.is_active:
                    raise NotFoundError(f"Product {item_data.product_id} not found")

                line_total = item_data.unit_price * item_data.quantity
                total_amount += line_total

                sale_item = SaleItem(
                    sale_id=sale.id,
                    product_id=product.id,
                    store_id=data.store_id,
                    quantity=item_data.quantity,
                    unit_price=item_data.unit_price,
                    total_price=line_total,
                    product_name=product.name,
                    product_code=product.product_code,
                )
                self.db.add(sale_item)
                await self.db.flush()

                designated = await self._designate(sale_item)
                shortfall = sale_item.quantity - designated
                if shortfall > 0:
                    sale_item.apply_backorder_change(shortfall)
                    await self.backorders.create_backorder(sale_item, shortfall)
                    backorder_count += 1

            sale.total_amount = total_amount
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Sale {invoice_number} rejected: {e}")
            raise DuplicateDocumentNumberError(f"Invoice number {invoice_number} already exists")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Sale {invoice_number} rolled back: {e}")
            raise

        logger.info(
            f"Sale {invoice_number} created by {user_id} with {len(data.items)} item(s), "
            f"{backorder_count} backordered"
        )
        return await self.get_sale(sale.id)
