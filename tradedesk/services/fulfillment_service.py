"""
Backorder Fulfillment Service.

Fulfilling a backorder designates stock from one lot to the backorder's
sale item. It runs as a single transaction:

1. Lock the backorder and the lot (SELECT FOR UPDATE)
2. Clamp the quantity to min(requested or pending, pending, lot quantity)
3. Reduce the backorder's pending quantity, deactivate it at zero
4. Reduce the sale item's backorder quantity and recompute has_backorder
5. Link the sale item to the lot (SaleItemInventory)
6. Log a backorder_fulfillment transaction with quantity before == after

The lot's on-hand quantity is NOT changed here. Physical stock leaves the
lot when a waybill is dispatched.

A caller that loses a race for the same lot or backorder gets
StockUnavailableError or NothingToFulfillError and may re-read and retry.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradedesk.core.exceptions import (
    TradeDeskError,
    NotFoundError,
    AlreadyFulfilledError,
    StockUnavailableError,
    InconsistentStockReferenceError,
    NothingToFulfillError,
    ValidationFailureError,
)
from tradedesk.models.backorder import Backorder
from tradedesk.models.inventory import InventoryLot, InventoryTransactionType
from tradedesk.models.sale import SaleItem, SaleItemInventory
from tradedesk.schemas.backorder import FulfillmentResult
from tradedesk.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class FulfillmentService:
    """Fulfills backorders from inventory lots."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    async def fulfill_backorder(
        self,
        backorder_id: uuid.UUID,
        inventory_lot_id: uuid.UUID,
        user_id: Optional[uuid.UUID],
        requested_quantity: Optional[int] = None,
    ) -> FulfillmentResult:
        """
        Fulfill a backorder from a lot.

        Args:
            backorder_id: Active backorder with pending quantity
            inventory_lot_id: Active lot of the same product and store
            user_id: Actor written to the transaction log
            requested_quantity: Positive integer. Defaults to the full pending quantity.

        Returns:
            FulfillmentResult with the quantity actually fulfilled and what remains pending

        Raises:
            ValidationFailureError: requested_quantity is not a positive integer
            NotFoundError: backorder does not exist
            AlreadyFulfilledError: backorder is inactive or has nothing pending
            StockUnavailableError: lot missing, inactive or empty
            InconsistentStockReferenceError: lot product or store differs from the backorder
            NothingToFulfillError: clamped quantity is zero
        """
        if requested_quantity is not None and (
            isinstance(requested_quantity, bool)
            or not isinstance(requested_quantity, int)
            or requested_quantity <= 0
        ):
            raise ValidationFailureError(
                f"Requested quantity must be a positive integer, got {requested_quantity!r}"
            )

        try:
            backorder = await self._lock_backorder(backorder_id)
            lot = await self._lock_lot(inventory_lot_id)

            if lot.product_id != backorder.product_id or lot.store_id != backorder.store_id:
                raise InconsistentStockReferenceError(
                    f"Lot {lot.lot_number} does not hold the backordered product at the backorder's store"
                )

            pending_before = backorder.pending_quantity
            wanted = requested_quantity if requested_quantity is not None else pending_before
            actual_quantity = min(wanted, pending_before, lot.quantity)

            if actual_quantity <= 0:
                raise NothingToFulfillError(
                    f"Nothing to fulfill for backorder {backorder_id}: "
                    f"pending {pending_before}, lot {lot.lot_number} holds {lot.quantity}"
                )

            sale_item = await self._lock_sale_item(backorder.sale_item_id)

            backorder.reduce_pending(actual_quantity)
            sale_item.apply_backorder_change(-actual_quantity)

            self.db.add(SaleItemInventory(
                sale_item_id=sale_item.id,
                inventory_lot_id=lot.id,
                lot_number=lot.lot_number,
                quantity_to_take=actual_quantity,
            ))

            self.inventory.record_transaction(
                lot,
                InventoryTransactionType.BACKORDER_FULFILLMENT,
                quantity_before=lot.quantity,
                quantity_after=lot.quantity,
                user_id=user_id,
                reference_id=backorder.id,
                notes=(
                    f"Backorder {backorder.id} provisioned with {actual_quantity} units "
                    f"from lot {lot.lot_number}. Physical stock remains unchanged until delivery."
                ),
            )

            await self.db.commit()
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Fulfillment of backorder {backorder_id} from lot {inventory_lot_id} rolled back: {e}")
            raise

        logger.info(
            f"Backorder {backorder.id} fulfilled {actual_quantity} from lot {lot.lot_number}, "
            f"{backorder.pending_quantity} still pending"
        )

        return FulfillmentResult(
            backorder_id=backorder.id,
            sale_item_id=sale_item.id,
            inventory_lot_id=lot.id,
            fulfilled_quantity=actual_quantity,
            remaining_pending_quantity=backorder.pending_quantity,
            backorder_active=backorder.is_active,
        )

    async def _lock_backorder(self, backorder_id: uuid.UUID) -> Backorder:
        result = await self.db.execute(
            select(Backorder)
            .where(Backorder.id == backorder_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        backorder = result.scalar_one_or_none()

        if backorder is None:
            raise NotFoundError(f"Backorder {backorder_id} not found")
        if not backorder.is_active or backorder.pending_quantity <= 0:
            raise AlreadyFulfilledError(f"Backorder {backorder_id} is already fulfilled")
        return backorder

    async def _lock_lot(self, inventory_lot_id: uuid.UUID) -> InventoryLot:
        lot = await self.inventory.lock_lot(inventory_lot_id)

        if lot is None or not lot.is_active:
            raise StockUnavailableError(f"Inventory lot {inventory_lot_id} not found or inactive")
        if lot.quantity <= 0:
            raise StockUnavailableError(f"Lot {lot.lot_number} has no stock available")
        return lot

    async def _lock_sale_item(self, sale_item_id: uuid.UUID) -> SaleItem:
        result = await self.db.execute(
            select(SaleItem)
            .where(SaleItem.id == sale_item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sale_item = result.scalar_one_or_none()

        if sale_item is None:
            raise NotFoundError(f"Sale item {sale_item_id} of the backorder not found")
        return sale_item
