"""
Waybill Service.

Dispatching a waybill is the only place lot quantities go down. A sale
waybill may deliver no more than the stock designated to each sale item
(ordered - fulfilled - backordered); backordered quantity has to be
fulfilled first. Loan waybills are not linked to a sale and may only take
stock no sale is holding.

Every unit a sale waybill draws uses up the sale item's designation, on the
drawn lot first. Cancelling or editing the waybill hands it back.

Editing a waybill returns its previous draws to stock and takes the new
ones in the same transaction. Converting a loan books goods already out on
loan against a sale through a new conversion waybill; no stock moves.

Lock order: backorder, then lot, then sale item.
"""
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from tradedesk.core.exceptions import (
    TradeDeskError,
    NotFoundError,
    StockUnavailableError,
    InconsistentStockReferenceError,
    ValidationFailureError,
    DuplicateDocumentNumberError,
)
from tradedesk.models.backorder import Backorder
from tradedesk.models.document_sequence import DocumentType
from tradedesk.models.inventory import InventoryLot, InventoryTransactionType
from tradedesk.models.sale import Sale, SaleItem, SaleItemInventory, SaleStatus
from tradedesk.models.store import Store
from tradedesk.models.waybill import (
    Waybill,
    WaybillItem,
    WaybillItemInventory,
    WaybillStatus,
    WaybillType,
)
from tradedesk.schemas.waybill import (
    LoanConversionRequest,
    WaybillCreate,
    WaybillItemCreate,
    WaybillUpdate,
)
from tradedesk.services.document_sequence_service import DocumentSequenceService
from tradedesk.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)


class WaybillService:
    """Service for dispatching, editing, converting and cancelling waybills."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    async def get_waybill(self, waybill_id: uuid.UUID) -> Optional[Waybill]:
        result = await self.db.execute(
            select(Waybill)
            .options(selectinload(Waybill.items).selectinload(WaybillItem.inventories))
            .where(Waybill.id == waybill_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _lock_waybill(self, waybill_id: uuid.UUID) -> Waybill:
        """Lock an active, dispatched waybill with its lines and draws."""
        result = await self.db.execute(
            select(Waybill)
            .options(selectinload(Waybill.items).selectinload(WaybillItem.inventories))
            .where(Waybill.id == waybill_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        waybill = result.scalar_one_or_none()

        if waybill is None:
            raise NotFoundError(f"Waybill {waybill_id} not found")
        if not waybill.is_active or waybill.status == WaybillStatus.CANCELLED.value:
            raise NotFoundError(f"Waybill {waybill.waybill_number} is already cancelled")
        return waybill

    @staticmethod
    def _ensure_changeable(waybill: Waybill) -> None:
        if waybill.waybill_type == WaybillType.CONVERSION.value:
            raise ValidationFailureError(
                f"Waybill {waybill.waybill_number} is a loan conversion and cannot be changed"
            )
        if any(item.quantity_converted > 0 for item in waybill.items):
            raise ValidationFailureError(
                f"Loan waybill {waybill.waybill_number} has units converted to a sale"
            )

    async def _lock_lots(self, lot_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, InventoryLot]:
        """Lock lots in a stable order."""
        lots = {}
        for lot_id in sorted(set(lot_ids), key=str):
            lot = await self.inventory.lock_lot(lot_id)
            if lot is None:
                raise StockUnavailableError(f"Inventory lot {lot_id} not found")
            lots[lot_id] = lot
        return lots

    async def _lock_sale_items(self, sale_item_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, SaleItem]:
        items = {}
        for sale_item_id in sorted(set(sale_item_ids), key=str):
            result = await self.db.execute(
                select(SaleItem)
                .where(SaleItem.id == sale_item_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            sale_item = result.scalar_one_or_none()
            if sale_item is None:
                raise NotFoundError(f"Sale item {sale_item_id} not found")
            items[sale_item_id] = sale_item
        return items

    async def _refresh_sale_status(self, sale_id: uuid.UUID) -> str:
        """pending, partial or completed from the sale items' fulfilled quantities."""
        sale = await self.db.get(Sale, sale_id)
        result = await self.db.execute(
            select(SaleItem).where(SaleItem.sale_id == sale_id, SaleItem.is_active == True)
        )
        items = list(result.scalars().all())

        if items and all(i.fulfilled_quantity >= i.quantity for i in items):
            sale.status = SaleStatus.COMPLETED.value
        elif any(i.fulfilled_quantity > 0 for i in items):
            sale.status = SaleStatus.PARTIAL.value
        else:
            sale.status = SaleStatus.PENDING.value
        return sale.status

    @staticmethod
    def _check_loan_items(items: List[WaybillItemCreate]) -> None:
        linked = [i.product_id for i in items if i.sale_item_id]
        if linked:
            raise ValidationFailureError(
                f"Loan waybill items cannot reference a sale item (product {linked[0]})"
            )

    # ==================== Designations ====================

    async def _designations(self, sale_item_id: uuid.UUID, lot_id: Optional[uuid.UUID]) -> List[SaleItemInventory]:
        """A sale item's designations, those on lot_id first, then oldest first."""
        result = await self.db.execute(
            select(SaleItemInventory)
            .where(SaleItemInventory.sale_item_id == sale_item_id)
            .order_by(SaleItemInventory.created_at, SaleItemInventory.id)
        )
        rows = list(result.scalars().all())
        return [r for r in rows if r.inventory_lot_id == lot_id] + [r for r in rows if r.inventory_lot_id != lot_id]

    async def _consume_designations(
        self,
        sale_item_id: uuid.UUID,
        quantity: int,
        lot_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Mark quantity of a sale item's designations as delivered."""
        for row in await self._designations(sale_item_id, lot_id):
            if quantity <= 0:
                break
            take = min(row.quantity_outstanding, quantity)
            row.quantity_delivered += take
            quantity -= take
        await self.db.flush()

    async def _release_designations(self, sale_item_id: uuid.UUID, lot_id: uuid.UUID, quantity: int) -> None:
        """Hand delivered quantity back to a sale item's designations, newest first after lot_id."""
        rows = await self._designations(sale_item_id, lot_id)
        same_lot = [r for r in rows if r.inventory_lot_id == lot_id]
        others = [r for r in rows if r.inventory_lot_id != lot_id]
        for row in same_lot + list(reversed(others)):
            if quantity <= 0:
                break
            give = min(row.quantity_delivered, quantity)
            row.quantity_delivered -= give
            quantity -= give
        await self.db.flush()

    # ==================== Stock movements ====================

    async def _apply_items(
        self,
        waybill: Waybill,
        items: List[WaybillItemCreate],
        lots: Dict[uuid.UUID, InventoryLot],
        sale_items: Dict[uuid.UUID, SaleItem],
        transaction_type: InventoryTransactionType,
        user_id: Optional[uuid.UUID],
    ) -> None:
        """Take the items' draws out of their lots and advance the sale items."""
        is_sale = waybill.waybill_type == WaybillType.SALE.value
        supplied_per_sale_item: Dict[uuid.UUID, int] = defaultdict(int)

        for item_data in items:
            supplied = sum(draw.quantity for draw in item_data.lots)

            if is_sale:
                sale_item = sale_items[item_data.sale_item_id]
                if sale_item.sale_id != waybill.sale_id or sale_item.product_id != item_data.product_id:
                    raise ValidationFailureError(
                        f"Sale item {sale_item.id} does not belong to this sale and product"
                    )
                supplied_per_sale_item[sale_item.id] += supplied
                deliverable = (
                    sale_item.quantity - sale_item.fulfilled_quantity - sale_item.backorder_quantity
                )
                if supplied_per_sale_item[sale_item.id] > deliverable:
                    raise ValidationFailureError(
                        f"Only {max(deliverable, 0)} unit(s) of {sale_item.product_code} can be "
                        f"delivered; fulfill the backorder first"
                    )

            waybill_item = WaybillItem(
                waybill_id=waybill.id,
                sale_item_id=item_data.sale_item_id if is_sale else None,
                product_id=item_data.product_id,
                quantity_requested=item_data.quantity_requested or supplied,
                quantity_supplied=supplied,
                quantity_converted=0,
            )
            self.db.add(waybill_item)
            await self.db.flush()

            for draw in item_data.lots:
                lot = lots[draw.inventory_lot_id]
                if lot.product_id != item_data.product_id or lot.store_id != waybill.store_id:
                    raise InconsistentStockReferenceError(
                        f"Lot {lot.lot_number} does not hold product {item_data.product_id} "
                        f"at store {waybill.store_id}"
                    )

                held = await self.inventory.reserved_quantities(
                    [lot.id], exclude_sale_item_id=item_data.sale_item_id if is_sale else None
                )
                free = lot.quantity - held.get(lot.id, 0)
                if not lot.is_active or free < draw.quantity:
                    raise StockUnavailableError(
                        f"Lot {lot.lot_number} has {max(free, 0)} unit(s) free, {draw.quantity} requested"
                    )

                quantity_before = lot.quantity
                lot.quantity = lot.quantity - draw.quantity

                self.inventory.record_transaction(
                    lot,
                    transaction_type,
                    quantity_before=quantity_before,
                    quantity_after=lot.quantity,
                    user_id=user_id,
                    reference_id=waybill.id,
                    notes=f"Waybill {waybill.waybill_number}",
                )
                self.db.add(WaybillItemInventory(
                    waybill_item_id=waybill_item.id,
                    inventory_lot_id=lot.id,
                    lot_number=lot.lot_number,
                    quantity_taken=draw.quantity,
                ))

                if is_sale:
                    await self._consume_designations(item_data.sale_item_id, draw.quantity, lot.id)

        for sale_item_id, supplied in supplied_per_sale_item.items():
            sale_items[sale_item_id].fulfilled_quantity += supplied

    async def _reverse_items(
        self,
        waybill: Waybill,
        lots: Dict[uuid.UUID, InventoryLot],
        sale_items: Dict[uuid.UUID, SaleItem],
        transaction_type: InventoryTransactionType,
        user_id: Optional[uuid.UUID],
        notes: str,
    ) -> int:
        """Return every draw of the waybill to its lot. Returns the number of draws."""
        is_sale = waybill.waybill_type == WaybillType.SALE.value
        count = 0

        for item in waybill.items:
            for draw in item.inventories:
                lot = lots[draw.inventory_lot_id]
                quantity_before = lot.quantity
                lot.quantity = lot.quantity + draw.quantity_taken
                self.inventory.record_transaction(
                    lot,
                    transaction_type,
                    quantity_before=quantity_before,
                    quantity_after=lot.quantity,
                    user_id=user_id,
                    reference_id=waybill.id,
                    notes=notes,
                )
                if is_sale and item.sale_item_id:
                    await self._release_designations(item.sale_item_id, lot.id, draw.quantity_taken)
                count += 1

            if is_sale and item.sale_item_id:
                sale_item = sale_items[item.sale_item_id]
                sale_item.fulfilled_quantity = max(
                    0, sale_item.fulfilled_quantity - item.quantity_supplied
                )
        return count

    # ==================== Dispatch ====================

    async def create_waybill(self, data: WaybillCreate, user_id: Optional[uuid.UUID]) -> Waybill:
        """
        Dispatch stock from the given lots.

        Raises:
            NotFoundError: store, sale or sale item missing
            ValidationFailureError: item does not match the sale, exceeds designated stock,
                or a loan item references a sale item
            InconsistentStockReferenceError: lot holds another product or sits in another store
            StockUnavailableError: lot missing, inactive or without enough free stock
            DuplicateDocumentNumberError: waybill number already used
        """
        waybill_type = WaybillType.SALE if data.sale_id else WaybillType.LOAN
        transaction_type = (
            InventoryTransactionType.SALE if waybill_type == WaybillType.SALE
            else InventoryTransactionType.LOAN
        )

        try:
            store = await self.db.get(Store, data.store_id)
            if not store or not store.is_active:
                raise NotFoundError(f"Store {data.store_id} not found")

            customer_id = data.customer_id
            if data.sale_id:
                sale = await self.db.get(Sale, data.sale_id)
                if not sale or not sale.is_active:
                    raise NotFoundError(f"Sale {data.sale_id} not found")
                if sale.store_id != data.store_id:
                    raise InconsistentStockReferenceError(
                        f"Sale {sale.invoice_number} belongs to another store"
                    )
                customer_id = customer_id or sale.customer_id
            else:
                self._check_loan_items(data.items)

            numbering = DocumentSequenceService(self.db, user_id=user_id)
            waybill_number = await numbering.assign_number(DocumentType.WAYBILL, data.waybill_number)

            lots = await self._lock_lots(
                draw.inventory_lot_id for item in data.items for draw in item.lots
            )
            sale_items: Dict[uuid.UUID, SaleItem] = {}
            if waybill_type == WaybillType.SALE:
                missing = [i.product_id for i in data.items if not i.sale_item_id]
                if missing:
                    raise ValidationFailureError(
                        f"Sale waybill items need a sale item (product {missing[0]})"
                    )
                sale_items = await self._lock_sale_items(i.sale_item_id for i in data.items)

            waybill = Waybill(
                waybill_number=waybill_number,
                waybill_type=waybill_type.value,
                sale_id=data.sale_id,
                customer_id=customer_id,
                store_id=data.store_id,
                status=WaybillStatus.DISPATCHED.value,
                notes=data.notes,
            )
            if data.waybill_date:
                waybill.waybill_date = data.waybill_date
            self.db.add(waybill)
            await self.db.flush()

            await self._apply_items(waybill, data.items, lots, sale_items, transaction_type, user_id)

            if waybill_type == WaybillType.SALE:
                await self.db.flush()
                await self._refresh_sale_status(data.sale_id)

            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Waybill rejected: {e}")
            raise DuplicateDocumentNumberError("Waybill number already exists. Please generate a new number.")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Waybill dispatch rolled back: {e}")
            raise

        logger.info(
            f"Waybill {waybill_number} ({waybill_type.value}) dispatched by {user_id}, "
            f"{sum(len(i.lots) for i in data.items)} lot draw(s)"
        )
        return await self.get_waybill(waybill.id)

    # ==================== Edit ====================

    async def edit_waybill(
        self,
        waybill_id: uuid.UUID,
        data: WaybillUpdate,
        user_id: Optional[uuid.UUID],
    ) -> Waybill:
        """
        Replace the lines of a dispatched sale or loan waybill.

        Previous draws go back to their lots (waybill_edit_reversal), then the
        new draws are taken (waybill_edit). Either both happen or neither.

        Raises:
            NotFoundError: waybill missing or cancelled
            ValidationFailureError: conversion waybill, loan with converted units,
                or new lines the waybill type does not allow
        """
        try:
            waybill = await self._lock_waybill(waybill_id)
            self._ensure_changeable(waybill)

            is_sale = waybill.waybill_type == WaybillType.SALE.value
            if is_sale:
                missing = [i.product_id for i in data.items if not i.sale_item_id]
                if missing:
                    raise ValidationFailureError(
                        f"Sale waybill items need a sale item (product {missing[0]})"
                    )
            else:
                self._check_loan_items(data.items)

            old_lot_ids = [d.inventory_lot_id for item in waybill.items for d in item.inventories]
            new_lot_ids = [draw.inventory_lot_id for item in data.items for draw in item.lots]
            lots = await self._lock_lots(old_lot_ids + new_lot_ids)

            sale_items: Dict[uuid.UUID, SaleItem] = {}
            if is_sale:
                sale_items = await self._lock_sale_items(
                    [i.sale_item_id for i in waybill.items if i.sale_item_id]
                    + [i.sale_item_id for i in data.items]
                )

            await self._reverse_items(
                waybill,
                lots,
                sale_items,
                InventoryTransactionType.WAYBILL_EDIT_REVERSAL,
                user_id,
                notes=f"Waybill {waybill.waybill_number} edited, previous lines returned",
            )

            old_items = list(waybill.items)
            for item in old_items:
                for draw in item.inventories:
                    await self.db.delete(draw)
            await self.db.flush()
            for item in old_items:
                await self.db.delete(item)
            await self.db.flush()

            if data.customer_id:
                waybill.customer_id = data.customer_id
            if data.waybill_date:
                waybill.waybill_date = data.waybill_date
            if data.notes is not None:
                waybill.notes = data.notes

            await self._apply_items(
                waybill,
                data.items,
                lots,
                sale_items,
                InventoryTransactionType.WAYBILL_EDIT,
                user_id,
            )

            if is_sale:
                await self.db.flush()
                await self._refresh_sale_status(waybill.sale_id)

            await self.db.commit()
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Edit of waybill {waybill_id} rolled back: {e}")
            raise

        logger.info(f"Waybill {waybill.waybill_number} edited by {user_id}, {len(data.items)} line(s)")
        return await self.get_waybill(waybill.id)

    # ==================== Loan conversion ====================

    async def _lock_backorders(self, sale_item_ids: Iterable[uuid.UUID]) -> Dict[uuid.UUID, List[Backorder]]:
        """Active backorders of the sale items, oldest first, locked."""
        result = await self.db.execute(
            select(Backorder)
            .where(
                Backorder.sale_item_id.in_(list(set(sale_item_ids))),
                Backorder.is_active == True,
            )
            .order_by(Backorder.created_at, Backorder.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        backorders: Dict[uuid.UUID, List[Backorder]] = defaultdict(list)
        for backorder in result.scalars().all():
            backorders[backorder.sale_item_id].append(backorder)
        return backorders

    async def convert_loan_waybill(
        self,
        loan_waybill_id: uuid.UUID,
        data: LoanConversionRequest,
        user_id: Optional[uuid.UUID],
    ) -> Waybill:
        """
        Book loaned goods against a sale.

        Creates a conversion waybill. Converted units count as delivered to
        the sale item: its backorder is reduced first, then its designated
        stock. Lot quantities do not change.

        Raises:
            NotFoundError: loan waybill or sale missing
            InconsistentStockReferenceError: sale belongs to another store
            ValidationFailureError: line not on the loan, product mismatch, or more
                than the loan line or the sale item has outstanding
            DuplicateDocumentNumberError: waybill number already used
        """
        try:
            loan = await self._lock_waybill(loan_waybill_id)
            if loan.waybill_type != WaybillType.LOAN.value:
                raise NotFoundError(f"Waybill {loan.waybill_number} is not a loan waybill")

            sale = await self.db.get(Sale, data.sale_id)
            if not sale or not sale.is_active:
                raise NotFoundError(f"Sale {data.sale_id} not found")
            if sale.store_id != loan.store_id:
                raise InconsistentStockReferenceError(
                    f"Sale {sale.invoice_number} belongs to another store"
                )

            numbering = DocumentSequenceService(self.db, user_id=user_id)
            waybill_number = await numbering.assign_number(DocumentType.WAYBILL, data.waybill_number)

            backorders = await self._lock_backorders(i.sale_item_id for i in data.items)
            sale_items = await self._lock_sale_items(i.sale_item_id for i in data.items)
            loan_items = {item.id: item for item in loan.items}

            conversion = Waybill(
                waybill_number=waybill_number,
                waybill_type=WaybillType.CONVERSION.value,
                sale_id=sale.id,
                original_loan_waybill_id=loan.id,
                customer_id=sale.customer_id or loan.customer_id,
                store_id=loan.store_id,
                waybill_date=data.conversion_date or datetime.now(timezone.utc),
                status=WaybillStatus.DISPATCHED.value,
                notes=data.notes,
            )
            self.db.add(conversion)
            await self.db.flush()

            for line in data.items:
                loan_item = loan_items.get(line.waybill_item_id)
                if loan_item is None:
                    raise ValidationFailureError(
                        f"Line {line.waybill_item_id} is not on loan waybill {loan.waybill_number}"
                    )
                sale_item = sale_items[line.sale_item_id]
                if sale_item.sale_id != sale.id or sale_item.product_id != loan_item.product_id:
                    raise ValidationFailureError(
                        f"Sale item {sale_item.id} does not match the loaned product"
                    )
                if loan_item.quantity_converted + line.quantity > loan_item.quantity_supplied:
                    raise ValidationFailureError(
                        f"Only {loan_item.quantity_supplied - loan_item.quantity_converted} loaned "
                        f"unit(s) left to convert"
                    )
                if line.quantity > sale_item.outstanding_quantity:
                    raise ValidationFailureError(
                        f"Sale item {sale_item.product_code} has {sale_item.outstanding_quantity} "
                        f"unit(s) outstanding, {line.quantity} requested"
                    )

                from_backorder = min(line.quantity, sale_item.backorder_quantity)
                if from_backorder > 0:
                    sale_item.apply_backorder_change(-from_backorder)
                    remaining = from_backorder
                    for backorder in backorders.get(sale_item.id, []):
                        if remaining <= 0:
                            break
                        reduction = min(remaining, backorder.pending_quantity)
                        backorder.reduce_pending(reduction)
                        remaining -= reduction

                if line.quantity > from_backorder:
                    await self._consume_designations(sale_item.id, line.quantity - from_backorder)

                sale_item.fulfilled_quantity += line.quantity
                loan_item.quantity_converted += line.quantity

                conversion_item = WaybillItem(
                    waybill_id=conversion.id,
                    sale_item_id=sale_item.id,
                    product_id=loan_item.product_id,
                    quantity_requested=line.quantity,
                    quantity_supplied=line.quantity,
                    quantity_converted=0,
                )
                self.db.add(conversion_item)
                await self.db.flush()

                remaining = line.quantity
                for draw in loan_item.inventories:
                    if remaining <= 0:
                        break
                    taken = min(remaining, draw.quantity_taken)
                    self.db.add(WaybillItemInventory(
                        waybill_item_id=conversion_item.id,
                        inventory_lot_id=draw.inventory_lot_id,
                        lot_number=draw.lot_number,
                        quantity_taken=taken,
                    ))
                    remaining -= taken

            await self.db.flush()
            await self._refresh_sale_status(sale.id)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Loan conversion rejected: {e}")
            raise DuplicateDocumentNumberError("Waybill number already exists. Please generate a new number.")
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Conversion of loan waybill {loan_waybill_id} rolled back: {e}")
            raise

        logger.info(
            f"Loan waybill {loan.waybill_number} converted to {waybill_number} for sale "
            f"{sale.invoice_number} by {user_id}"
        )
        return await self.get_waybill(conversion.id)

    # ==================== Cancellation ====================

    async def cancel_waybill(self, waybill_id: uuid.UUID, user_id: Optional[uuid.UUID]) -> Waybill:
        """
        Cancel a dispatched waybill, returning its stock to the lots it came from.

        Raises:
            NotFoundError: waybill missing or already cancelled
            ValidationFailureError: conversion waybill, or loan with converted units
        """
        try:
            waybill = await self._lock_waybill(waybill_id)
            self._ensure_changeable(waybill)

            is_sale = waybill.waybill_type == WaybillType.SALE.value
            lots = await self._lock_lots(
                d.inventory_lot_id for item in waybill.items for d in item.inventories
            )
            sale_items: Dict[uuid.UUID, SaleItem] = {}
            if is_sale:
                sale_items = await self._lock_sale_items(
                    item.sale_item_id for item in waybill.items if item.sale_item_id
                )

            draws = await self._reverse_items(
                waybill,
                lots,
                sale_items,
                InventoryTransactionType.WAYBILL_DELETION_RESTORE,
                user_id,
                notes=f"Waybill {waybill.waybill_number} cancelled",
            )

            waybill.status = WaybillStatus.CANCELLED.value
            waybill.is_active = False

            if is_sale:
                await self.db.flush()
                await self._refresh_sale_status(waybill.sale_id)

            await self.db.commit()
        except (TradeDeskError, SQLAlchemyError) as e:
            await self.db.rollback()
            logger.warning(f"Cancellation of waybill {waybill_id} rolled back: {e}")
            raise

        logger.info(f"Waybill {waybill.waybill_number} cancelled by {user_id}, {draws} lot draw(s) restored")
        return await self.get_waybill(waybill.id)
