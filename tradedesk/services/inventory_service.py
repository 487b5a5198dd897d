"""
Inventory service for lot based stock.

Lot quantities only change through this service (stock receipt) and the
waybill service (dispatch, edits and cancellation). Every change writes one
InventoryTransaction row with the quantity before and after.
"""
import logging
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tradedesk.core.exceptions import NotFoundError, TradeDeskError, ValidationFailureError
from tradedesk.models.inventory import InventoryLot, InventoryTransaction, InventoryTransactionType
from tradedesk.models.product import Product
from tradedesk.models.sale import SaleItem, SaleItemInventory
from tradedesk.models.store import Store
from tradedesk.schemas.inventory import (
    StockReceiptItem,
    StockReceiptRequest,
    ProductStock,
    ReorderAlert,
    InventoryTransactionFilters,
)

logger = logging.getLogger(__name__)


class InventoryService:
    """Service for inventory lots and the stock transaction log."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Transaction Log ====================

    def record_transaction(
        self,
        lot: InventoryLot,
        transaction_type: InventoryTransactionType,
        quantity_before: int,
        quantity_after: int,
        user_id: Optional[uuid.UUID],
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> InventoryTransaction:
        """Append a ledger row for a lot. The caller commits."""
        transaction = InventoryTransaction(
            inventory_lot_id=lot.id,
            product_id=lot.product_id,
            store_id=lot.store_id,
            user_id=user_id,
            transaction_type=transaction_type.value,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            reference_id=reference_id,
            notes=notes,
        )
        self.db.add(transaction)
        return transaction

    async def list_transactions(
        self,
        filters: Optional[InventoryTransactionFilters] = None,
        page: int = 1,
        size: int = 50,
    ) -> Tuple[List[InventoryTransaction], int]:
        """Transaction log, newest first."""
        filters = filters or InventoryTransactionFilters()
        conditions = []

        if filters.product_id:
            conditions.append(InventoryTransaction.product_id == filters.product_id)
        if filters.store_id:
            conditions.append(InventoryTransaction.store_id == filters.store_id)
        if filters.inventory_lot_id:
            conditions.append(InventoryTransaction.inventory_lot_id == filters.inventory_lot_id)
        if filters.transaction_type:
            conditions.append(InventoryTransaction.transaction_type == filters.transaction_type)
        if filters.reference_id:
            conditions.append(InventoryTransaction.reference_id == filters.reference_id)
        if filters.date_from:
            conditions.append(InventoryTransaction.transaction_date >= filters.date_from)
        if filters.date_to:
            conditions.append(InventoryTransaction.transaction_date <= filters.date_to)

        query = select(InventoryTransaction)
        if conditions:
            query = query.where(and_(*conditions))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(InventoryTransaction.transaction_date.desc())
        query = query.offset((page - 1) * size).limit(size)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # ==================== Lots ====================

    async def get_lot(self, lot_id: uuid.UUID) -> Optional[InventoryLot]:
        result = await self.db.execute(select(InventoryLot).where(InventoryLot.id == lot_id))
        return result.scalar_one_or_none()

    async def lock_lot(self, lot_id: uuid.UUID) -> Optional[InventoryLot]:
        """Read a lot with SELECT FOR UPDATE."""
        result = await self.db.execute(
            select(InventoryLot)
            .where(InventoryLot.id == lot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def lock_available_lots(
        self,
        product_id: uuid.UUID,
        store_id: uuid.UUID
    ) -> List[InventoryLot]:
        """Active lots with stock for a product at a store, oldest received first, locked."""
        result = await self.db.execute(
            select(InventoryLot)
            .where(
                InventoryLot.product_id == product_id,
                InventoryLot.store_id == store_id,
                InventoryLot.is_active == True,
                InventoryLot.quantity > 0,
            )
            .order_by(InventoryLot.received_date, InventoryLot.created_at)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def reserved_quantities(
        self,
        lot_ids,
        exclude_sale_item_id: Optional[uuid.UUID] = None,
    ) -> Dict[uuid.UUID, int]:
        """
        Units of each lot designated to active sale items and not yet drawn
        by a waybill. Lots with nothing held back are absent from the result.
        """
        lot_ids = list(set(lot_ids))
        if not lot_ids:
            return {}

        outstanding = func.sum(
            SaleItemInventory.quantity_to_take - SaleItemInventory.quantity_delivered
        )
        query = (
            select(SaleItemInventory.inventory_lot_id, outstanding)
            .join(SaleItem, SaleItem.id == SaleItemInventory.sale_item_id)
            .where(
                SaleItemInventory.inventory_lot_id.in_(lot_ids),
                SaleItem.is_active == True,
            )
            .group_by(SaleItemInventory.inventory_lot_id)
        )
        if exclude_sale_item_id:
            query = query.where(SaleItemInventory.sale_item_id != exclude_sale_item_id)

        result = await self.db.execute(query)
        return {lot_id: int(quantity or 0) for lot_id, quantity in result.all() if quantity}

    async def get_lots(
        self,
        product_id: Optional[uuid.UUID] = None,
        store_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        only_available: bool = False,
        page: int = 1,
        size: int = 20,
    ) -> Tuple[List[InventoryLot], int]:
        """Active lots with optional filters."""
        conditions = [InventoryLot.is_active == True]

        if product_id:
            conditions.append(InventoryLot.product_id == product_id)
        if store_id:
            conditions.append(InventoryLot.store_id == store_id)
        if search:
            conditions.append(InventoryLot.lot_number.ilike(f"%{search}%"))
        if only_available:
            conditions.append(InventoryLot.quantity > 0)

        query = select(InventoryLot).where(and_(*conditions))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(InventoryLot.received_date, InventoryLot.created_at)
        query = query.offset((page - 1) * size).limit(size)

        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    # ==================== Stock Receipt ====================

    async def add_stock(
        self,
        store_id: uuid.UUID,
        item: StockReceiptItem,
        user_id: Optional[uuid.UUID],
        transaction_type: InventoryTransactionType = InventoryTransactionType.ADJUSTMENT,
        reference_id: Optional[uuid.UUID] = None,
        received_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> InventoryLot:
        """
        Add quantity to the active lot with the same product, store and lot
        number, or open a new lot. Flushes only; the caller commits.
        """
        if item.quantity <= 0:
            raise ValidationFailureError(
                f"Quantity for lot {item.lot_number} must be a positive integer"
            )

        product = await self.db.get(Product, item.product_id)
        if not product or not product.is_active:
            raise NotFoundError(f"Product {item.product_id} not found")

        result = await self.db.execute(
            select(InventoryLot)
            .where(
                InventoryLot.product_id == item.product_id,
                InventoryLot.store_id == store_id,
                InventoryLot.lot_number == item.lot_number,
                InventoryLot.is_active == True,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        lot = result.scalar_one_or_none()

        if lot:
            quantity_before = lot.quantity
            lot.quantity = lot.quantity + item.quantity
            if item.expiry_date:
                lot.expiry_date = item.expiry_date
        else:
            quantity_before = 0
            lot = InventoryLot(
                product_id=item.product_id,
                store_id=store_id,
                lot_number=item.lot_number,
                quantity=item.quantity,
                cost_price=item.cost_price,
                selling_price=item.selling_price,
                manufacture_date=item.manufacture_date,
                expiry_date=item.expiry_date,
            )
            if received_date:
                lot.received_date = received_date
            self.db.add(lot)
            await self.db.flush()

        self.record_transaction(
            lot,
            transaction_type,
            quantity_before=quantity_before,
            quantity_after=lot.quantity,
            user_id=user_id,
            reference_id=reference_id,
            notes=notes or f"Received {item.quantity} units into lot {item.lot_number}",
        )
        await self.db.flush()
        return lot

    async def receive_stock(
        self,
        data: StockReceiptRequest,
        user_id: Optional[uuid.UUID],
    ) -> List[InventoryLot]:
        """Receive stock into lots as one transaction."""
        try:
            store = await self.db.get(Store, data.store_id)
            if not store or not store.is_active:
                raise NotFoundError(f"Store {data.store_id} not found")

            lots = []
            for item in data.items:
                lot = await self.add_stock(
                    data.store_id,
                    item,
                    user_id,
                    received_date=data.received_date,
                    notes=data.notes,
                )
                lots.append(lot)

            await self.db.commit()
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Stock receipt rolled back: {e}")
            raise

        logger.info(
            f"Received {sum(i.quantity for i in data.items)} units into "
            f"{len(lots)} lot(s) at store {data.store_id}"
        )
        return lots

    # ==================== Stock Projection ====================

    async def get_on_hand(
        self,
        product_id: uuid.UUID,
        store_id: Optional[uuid.UUID] = None
    ) -> Tuple[int, int]:
        """(quantity, lot count) summed over active lots."""
        query = select(
            func.coalesce(func.sum(InventoryLot.quantity), 0),
            func.count(InventoryLot.id),
        ).where(
            InventoryLot.product_id == product_id,
            InventoryLot.is_active == True,
        )
        if store_id:
            query = query.where(InventoryLot.store_id == store_id)

        quantity, lot_count = (await self.db.execute(query)).one()
        return int(quantity or 0), int(lot_count or 0)

    async def get_product_stock(
        self,
        product_id: uuid.UUID,
        store_id: Optional[uuid.UUID] = None
    ) -> ProductStock:
        """Product quantity computed from its lots. Never read from a stored column."""
        product = await self.db.get(Product, product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")

        quantity, lot_count = await self.get_on_hand(product_id, store_id)
        return ProductStock(
            product_id=product_id,
            store_id=store_id,
            quantity=quantity,
            lot_count=lot_count,
            alert_quantity=product.alert_quantity,
            max_alert_quantity=product.max_alert_quantity,
            is_low_stock=quantity <= product.alert_quantity,
            is_over_stock=quantity >= product.max_alert_quantity,
        )

    async def get_reorder_alerts(self, store_id: Optional[uuid.UUID] = None) -> List[ReorderAlert]:
        """Products at or below their alert quantity, or at or above their max alert quantity."""
        join_condition = and_(
            InventoryLot.product_id == Product.id,
            InventoryLot.is_active == True,
        )
        if store_id:
            join_condition = and_(join_condition, InventoryLot.store_id == store_id)

        on_hand = func.coalesce(func.sum(InventoryLot.quantity), 0).label("on_hand")
        result = await self.db.execute(
            select(Product, on_hand)
            .outerjoin(InventoryLot, join_condition)
            .where(Product.is_active == True)
            .group_by(Product.id)
            .order_by(Product.name)
        )

        alerts = []
        for product, quantity in result.all():
            quantity = int(quantity or 0)
            if quantity <= product.alert_quantity:
                alert_type = "low"
            elif quantity >= product.max_alert_quantity:
                alert_type = "over"
            else:
                continue
            alerts.append(ReorderAlert(
                product_id=product.id,
                product_code=product.product_code,
                name=product.name,
                quantity=quantity,
                alert_quantity=product.alert_quantity,
                max_alert_quantity=product.max_alert_quantity,
                alert_type=alert_type,
            ))
        return alerts
