"""Sale designation, waybill dispatch, edits, loan conversion and cancellation."""
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import select

from tradedesk.core.exceptions import (
    DuplicateDocumentNumberError,
    InconsistentStockReferenceError,
    NotFoundError,
    StockUnavailableError,
    ValidationFailureError,
)
from tradedesk.models.backorder import Backorder
from tradedesk.models.inventory import InventoryLot, InventoryTransaction
from tradedesk.models.sale import Sale, SaleItem, SaleItemInventory
from tradedesk.models.waybill import Waybill, WaybillItem
from tradedesk.schemas.sale import SaleCreate, SaleItemCreate
from tradedesk.schemas.waybill import (
    LoanConversionItem,
    LoanConversionRequest,
    WaybillCreate,
    WaybillItemCreate,
    WaybillLotDraw,
    WaybillUpdate,
)
from tradedesk.services.document_sequence_service import DocumentSequenceService
from tradedesk.services.fulfillment_service import FulfillmentService
from tradedesk.services.sale_service import SaleService
from tradedesk.services.waybill_service import WaybillService
from tests.factories import make_customer, make_lot, make_product, make_store


@pytest.fixture
async def stock(db):
    store = await make_store(db)
    product = await make_product(db)
    customer = await make_customer(db)
    old_lot = await make_lot(db, product, store, 4, lot_number="LOT-OLD", days_old=30)
    new_lot = await make_lot(db, product, store, 2, lot_number="LOT-NEW", days_old=5)
    return {"store": store, "product": product, "customer": customer, "old_lot": old_lot, "new_lot": new_lot}


def sale_payload(stock, quantity, invoice_number="INV-2001"):
    return SaleCreate(
        invoice_number=invoice_number,
        store_id=stock["store"].id,
        customer_id=stock["customer"].id,
        items=[SaleItemCreate(product_id=stock["product"].id, quantity=quantity, unit_price="15.00")],
    )


def waybill_payload(sale, sale_item, draws, number=None):
    return WaybillCreate(
        waybill_number=number,
        store_id=sale.store_id,
        sale_id=sale.id,
        items=[WaybillItemCreate(
            product_id=sale_item.product_id,
            sale_item_id=sale_item.id,
            lots=[WaybillLotDraw(inventory_lot_id=lot.id, quantity=qty) for lot, qty in draws],
        )],
    )


def loan_payload(stock, draws, sale_item_id=None):
    return WaybillCreate(
        store_id=stock["store"].id,
        customer_id=stock["customer"].id,
        items=[WaybillItemCreate(
            product_id=stock["product"].id,
            sale_item_id=sale_item_id,
            lots=[WaybillLotDraw(inventory_lot_id=lot.id, quantity=qty) for lot, qty in draws],
        )],
    )


async def lot_quantity(db, lot):
    refreshed = await db.get(InventoryLot, lot.id)
    await db.refresh(refreshed)
    return refreshed.quantity


async def reload_sale_item(db, item):
    sale_item = await db.get(SaleItem, item.id)
    await db.refresh(sale_item)
    return sale_item


# ==================== Sales ====================

async def test_sale_within_stock_designates_oldest_lot_first(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 5), user_id)

    item = sale.items[0]
    assert item.backorder_quantity == 0
    assert item.has_backorder is False
    assert item.product_code == "WID-001"
    assert sale.status == "pending"
    assert sale.total_amount == Decimal("75")

    designations = (await db.execute(
        select(SaleItemInventory).where(SaleItemInventory.sale_item_id == item.id)
    )).scalars().all()
    assert sorted((d.lot_number, d.quantity_to_take) for d in designations) == [("LOT-NEW", 1), ("LOT-OLD", 4)]

    # designation alone does not move stock
    assert await lot_quantity(db, stock["old_lot"]) == 4


async def test_sale_shortfall_opens_backorder(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 10), user_id)

    item = sale.items[0]
    assert item.backorder_quantity == 4
    assert item.has_backorder is True

    backorders = (await db.execute(
        select(Backorder).where(Backorder.sale_item_id == item.id)
    )).scalars().all()
    assert len(backorders) == 1
    assert backorders[0].pending_quantity == 4
    assert backorders[0].original_pending_quantity == 4
    assert backorders[0].is_active is True


async def test_duplicate_invoice_number(db, user_id, stock):
    service = SaleService(db)
    await service.create_sale(sale_payload(stock, 1), user_id)

    with pytest.raises(DuplicateDocumentNumberError):
        await service.create_sale(sale_payload(stock, 1), user_id)

    count = len((await db.execute(select(Sale))).scalars().all())
    assert count == 1


async def test_sale_with_unknown_product_writes_nothing(db, user_id, stock):
    payload = SaleCreate(
        invoice_number="INV-2999",
        store_id=stock["store"].id,
        items=[SaleItemCreate(product_id=uuid.uuid4(), quantity=1)],
    )
    with pytest.raises(NotFoundError):
        await SaleService(db).create_sale(payload, user_id)

    assert (await db.execute(select(Sale))).scalars().all() == []


# ==================== Dispatch ====================

async def test_dispatch_decrements_lots_with_one_log_row_per_draw(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 5), user_id)
    item = sale.items[0]

    waybill = await WaybillService(db).create_waybill(
        waybill_payload(sale, item, [(stock["old_lot"], 4), (stock["new_lot"], 1)]), user_id
    )

    assert waybill.waybill_type == "sale"
    assert waybill.status == "dispatched"
    assert waybill.waybill_number.startswith("WB")
    assert waybill.customer_id == stock["customer"].id
    assert waybill.items[0].quantity_supplied == 5
    assert len(waybill.items[0].inventories) == 2

    assert await lot_quantity(db, stock["old_lot"]) == 0
    assert await lot_quantity(db, stock["new_lot"]) == 1

    rows = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.reference_id == waybill.id)
    )).scalars().all()
    assert len(rows) == 2
    assert {r.transaction_type for r in rows} == {"sale"}
    assert sorted((r.quantity_before, r.quantity_after) for r in rows) == [(2, 1), (4, 0)]
    assert all(r.user_id == user_id for r in rows)

    sale_item = await db.get(SaleItem, item.id)
    await db.refresh(sale_item)
    assert sale_item.fulfilled_quantity == 5

    refreshed_sale = await db.get(Sale, sale.id)
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "completed"


async def test_dispatch_beyond_designated_stock_is_rejected(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 10), user_id)
    item = sale.items[0]

    # 6 designated, 4 backordered
    with pytest.raises(ValidationFailureError):
        await WaybillService(db).create_waybill(
            waybill_payload(sale, item, [(stock["old_lot"], 4), (stock["new_lot"], 2), (stock["new_lot"], 1)]),
            user_id,
        )

    assert await lot_quantity(db, stock["old_lot"]) == 4
    assert (await db.execute(select(Waybill))).scalars().all() == []


async def test_backorder_then_waybill_completes_the_sale(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 10), user_id)
    item = sale.items[0]
    waybills = WaybillService(db)

    first = await waybills.create_waybill(
        waybill_payload(sale, item, [(stock["old_lot"], 4), (stock["new_lot"], 2)]), user_id
    )
    refreshed_sale = await db.get(Sale, sale.id)
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "partial"

    restock = await make_lot(db, stock["product"], stock["store"], 4, lot_number="LOT-RESTOCK", days_old=1)
    backorder = (await db.execute(
        select(Backorder).where(Backorder.sale_item_id == item.id)
    )).scalar_one()
    result = await FulfillmentService(db).fulfill_backorder(backorder.id, restock.id, user_id)
    assert result.fulfilled_quantity == 4
    assert result.backorder_active is False

    second = await waybills.create_waybill(waybill_payload(sale, item, [(restock, 4)]), user_id)

    assert first.waybill_number != second.waybill_number
    assert await lot_quantity(db, restock) == 0
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "completed"


async def test_short_lot_is_rejected(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 6), user_id)
    item = sale.items[0]

    # 6 designated, but LOT-NEW only holds 2
    with pytest.raises(StockUnavailableError):
        await WaybillService(db).create_waybill(
            waybill_payload(sale, item, [(stock["new_lot"], 2), (stock["new_lot"], 1)]),
            user_id,
        )
    assert await lot_quantity(db, stock["new_lot"]) == 2


async def test_lot_of_another_product_is_rejected(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 1), user_id)
    item = sale.items[0]
    other = await make_product(db, code="BLT-010", name="Hex Bolt")
    bolt_lot = await make_lot(db, other, stock["store"], 5, lot_number="LOT-BOLT")

    with pytest.raises(InconsistentStockReferenceError):
        await WaybillService(db).create_waybill(waybill_payload(sale, item, [(bolt_lot, 1)]), user_id)
    assert await lot_quantity(db, bolt_lot) == 5


async def test_loan_waybill_logs_loan_transactions(db, user_id, stock):
    payload = WaybillCreate(
        store_id=stock["store"].id,
        customer_id=stock["customer"].id,
        items=[WaybillItemCreate(
            product_id=stock["product"].id,
            lots=[WaybillLotDraw(inventory_lot_id=stock["old_lot"].id, quantity=3)],
        )],
    )
    waybill = await WaybillService(db).create_waybill(payload, user_id)

    assert waybill.waybill_type == "loan"
    assert waybill.sale_id is None
    assert await lot_quantity(db, stock["old_lot"]) == 1

    rows = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.reference_id == waybill.id)
    )).scalars().all()
    assert [r.transaction_type for r in rows] == ["loan"]


# ==================== Cancellation ====================

async def test_cancel_restores_stock_and_sale(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 5), user_id)
    item = sale.items[0]
    service = WaybillService(db)
    waybill = await service.create_waybill(
        waybill_payload(sale, item, [(stock["old_lot"], 4), (stock["new_lot"], 1)]), user_id
    )

    cancelled = await service.cancel_waybill(waybill.id, user_id)

    assert cancelled.status == "cancelled"
    assert cancelled.is_active is False
    assert await lot_quantity(db, stock["old_lot"]) == 4
    assert await lot_quantity(db, stock["new_lot"]) == 2

    restores = (await db.execute(
        select(InventoryTransaction).where(
            InventoryTransaction.reference_id == waybill.id,
            InventoryTransaction.transaction_type == "waybill_deletion_restore",
        )
    )).scalars().all()
    assert len(restores) == 2

    sale_item = await db.get(SaleItem, item.id)
    await db.refresh(sale_item)
    assert sale_item.fulfilled_quantity == 0
    refreshed_sale = await db.get(Sale, sale.id)
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "pending"


async def test_cancel_twice_is_rejected(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 1), user_id)
    service = WaybillService(db)
    waybill = await service.create_waybill(
        waybill_payload(sale, sale.items[0], [(stock["old_lot"], 1)]), user_id
    )
    await service.cancel_waybill(waybill.id, user_id)

    with pytest.raises(NotFoundError):
        await service.cancel_waybill(waybill.id, user_id)
    assert await lot_quantity(db, stock["old_lot"]) == 4


async def test_cancel_unknown_waybill(db, user_id):
    with pytest.raises(NotFoundError):
        await WaybillService(db).cancel_waybill(uuid.uuid4(), user_id)


async def test_cancel_of_conversion_waybill_is_rejected(db, user_id, stock):
    loan = await WaybillService(db).create_waybill(loan_payload(stock, [(stock["old_lot"], 2)]), user_id)
    sale = await SaleService(db).create_sale(sale_payload(stock, 2), user_id)
    service = WaybillService(db)
    conversion = await service.convert_loan_waybill(
        loan.id, conversion_payload(sale, [(loan.items[0], sale.items[0], 2)]), user_id
    )

    with pytest.raises(ValidationFailureError):
        await service.cancel_waybill(conversion.id, user_id)
    with pytest.raises(ValidationFailureError):
        await service.cancel_waybill(loan.id, user_id)
    assert await lot_quantity(db, stock["old_lot"]) == 2


# ==================== Held stock ====================

async def test_second_sale_does_not_reuse_designated_stock(db, user_id, stock):
    service = SaleService(db)
    first = await service.create_sale(sale_payload(stock, 6, "INV-3001"), user_id)
    second = await service.create_sale(sale_payload(stock, 6, "INV-3002"), user_id)

    assert first.items[0].backorder_quantity == 0
    assert second.items[0].backorder_quantity == 6
    assert second.items[0].has_backorder is True

    designated = (await db.execute(
        select(SaleItemInventory).where(SaleItemInventory.sale_item_id == second.items[0].id)
    )).scalars().all()
    assert designated == []

    backorder = (await db.execute(
        select(Backorder).where(Backorder.sale_item_id == second.items[0].id)
    )).scalar_one()
    assert backorder.pending_quantity == 6

    waybill = await WaybillService(db).create_waybill(
        waybill_payload(first, first.items[0], [(stock["old_lot"], 4), (stock["new_lot"], 2)]), user_id
    )
    assert waybill.items[0].quantity_supplied == 6


async def test_delivered_designations_free_the_lot_for_later_sales(db, user_id, stock):
    service = SaleService(db)
    first = await service.create_sale(sale_payload(stock, 3, "INV-3001"), user_id)
    await WaybillService(db).create_waybill(
        waybill_payload(first, first.items[0], [(stock["old_lot"], 3)]), user_id
    )

    second = await service.create_sale(sale_payload(stock, 3, "INV-3002"), user_id)
    assert second.items[0].backorder_quantity == 0


async def test_sale_waybill_cannot_take_stock_held_for_another_sale(db, user_id, stock):
    service = SaleService(db)
    await service.create_sale(sale_payload(stock, 4, "INV-3001"), user_id)
    second = await service.create_sale(sale_payload(stock, 2, "INV-3002"), user_id)

    # LOT-OLD is fully held by the first sale
    with pytest.raises(StockUnavailableError):
        await WaybillService(db).create_waybill(
            waybill_payload(second, second.items[0], [(stock["old_lot"], 2)]), user_id
        )
    assert await lot_quantity(db, stock["old_lot"]) == 4


async def test_loan_cannot_take_stock_held_for_a_sale(db, user_id, stock):
    await SaleService(db).create_sale(sale_payload(stock, 5), user_id)
    service = WaybillService(db)

    # 4 held on LOT-OLD, 1 on LOT-NEW
    with pytest.raises(StockUnavailableError):
        await service.create_waybill(loan_payload(stock, [(stock["new_lot"], 2)]), user_id)

    loan = await service.create_waybill(loan_payload(stock, [(stock["new_lot"], 1)]), user_id)
    assert loan.items[0].quantity_supplied == 1
    assert await lot_quantity(db, stock["new_lot"]) == 1


async def test_cancel_hands_designations_back(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 4), user_id)
    item = sale.items[0]
    service = WaybillService(db)
    waybill = await service.create_waybill(waybill_payload(sale, item, [(stock["old_lot"], 4)]), user_id)
    await service.cancel_waybill(waybill.id, user_id)

    designations = (await db.execute(
        select(SaleItemInventory).where(SaleItemInventory.sale_item_id == item.id)
    )).scalars().all()
    for designation in designations:
        await db.refresh(designation)
    assert sum(d.quantity_delivered for d in designations) == 0

    with pytest.raises(StockUnavailableError):
        await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 1)]), user_id)


# ==================== Loans ====================

async def test_loan_item_with_sale_item_is_rejected(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 3), user_id)

    with pytest.raises(ValidationFailureError):
        await WaybillService(db).create_waybill(
            loan_payload(stock, [(stock["new_lot"], 2)], sale_item_id=sale.items[0].id), user_id
        )
    assert await lot_quantity(db, stock["new_lot"]) == 2
    assert (await db.execute(select(Waybill))).scalars().all() == []


async def test_cancelling_a_loan_leaves_sale_fulfilment_alone(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 3), user_id)
    item = sale.items[0]
    service = WaybillService(db)
    await service.create_waybill(waybill_payload(sale, item, [(stock["old_lot"], 3)]), user_id)

    loan = await service.create_waybill(loan_payload(stock, [(stock["new_lot"], 2)]), user_id)
    assert loan.items[0].sale_item_id is None
    await service.cancel_waybill(loan.id, user_id)

    assert (await reload_sale_item(db, item)).fulfilled_quantity == 3
    assert await lot_quantity(db, stock["new_lot"]) == 2
    refreshed_sale = await db.get(Sale, sale.id)
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "completed"


# ==================== Duplicate numbers ====================

async def test_reused_waybill_number_is_rejected(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 2), user_id)
    service = WaybillService(db)
    first = await service.create_waybill(
        waybill_payload(sale, sale.items[0], [(stock["old_lot"], 1)]), user_id
    )

    with pytest.raises(DuplicateDocumentNumberError):
        await service.create_waybill(
            waybill_payload(sale, sale.items[0], [(stock["old_lot"], 1)], number=first.waybill_number),
            user_id,
        )
    assert await lot_quantity(db, stock["old_lot"]) == 3


async def test_number_taken_at_insert_maps_to_duplicate_error(db, user_id, stock, monkeypatch):
    service = WaybillService(db)
    first = await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 1)]), user_id)

    # another transaction saved the number after it was handed out
    async def taken_number(self, document_type, document_number=None, now=None):
        return first.waybill_number

    monkeypatch.setattr(DocumentSequenceService, "assign_number", taken_number)

    with pytest.raises(DuplicateDocumentNumberError):
        await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 1)]), user_id)
    assert await lot_quantity(db, stock["old_lot"]) == 3
    assert len((await db.execute(select(Waybill))).scalars().all()) == 1


# ==================== Edit ====================

async def test_edit_returns_old_draws_and_takes_new_ones(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 5), user_id)
    item = sale.items[0]
    service = WaybillService(db)
    waybill = await service.create_waybill(
        waybill_payload(sale, item, [(stock["old_lot"], 4), (stock["new_lot"], 1)]), user_id
    )

    edited = await service.edit_waybill(
        waybill.id,
        WaybillUpdate(
            notes="Customer took three",
            items=waybill_payload(sale, item, [(stock["old_lot"], 3)]).items,
        ),
        user_id,
    )

    assert edited.id == waybill.id
    assert edited.waybill_number == waybill.waybill_number
    assert edited.notes == "Customer took three"
    assert len(edited.items) == 1
    assert edited.items[0].quantity_supplied == 3

    assert await lot_quantity(db, stock["old_lot"]) == 1
    assert await lot_quantity(db, stock["new_lot"]) == 2

    rows = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.reference_id == waybill.id)
    )).scalars().all()
    kinds = [r.transaction_type for r in rows]
    assert kinds.count("sale") == 2
    assert kinds.count("waybill_edit_reversal") == 2
    assert kinds.count("waybill_edit") == 1

    assert (await reload_sale_item(db, item)).fulfilled_quantity == 3
    refreshed_sale = await db.get(Sale, sale.id)
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "partial"

    remaining_lines = (await db.execute(
        select(WaybillItem).where(WaybillItem.waybill_id == waybill.id)
    )).scalars().all()
    assert len(remaining_lines) == 1


async def test_failed_edit_changes_nothing(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 5), user_id)
    item = sale.items[0]
    service = WaybillService(db)
    waybill = await service.create_waybill(
        waybill_payload(sale, item, [(stock["old_lot"], 4), (stock["new_lot"], 1)]), user_id
    )

    # LOT-NEW holds 2 once the old draw is returned
    with pytest.raises(StockUnavailableError):
        await service.edit_waybill(
            waybill.id,
            WaybillUpdate(items=waybill_payload(sale, item, [(stock["new_lot"], 3)]).items),
            user_id,
        )

    assert await lot_quantity(db, stock["old_lot"]) == 0
    assert await lot_quantity(db, stock["new_lot"]) == 1
    assert (await reload_sale_item(db, item)).fulfilled_quantity == 5
    unchanged = await service.get_waybill(waybill.id)
    assert sum(i.quantity_supplied for i in unchanged.items) == 5


async def test_edit_of_cancelled_waybill_is_rejected(db, user_id, stock):
    service = WaybillService(db)
    loan = await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 1)]), user_id)
    await service.cancel_waybill(loan.id, user_id)

    with pytest.raises(NotFoundError):
        await service.edit_waybill(
            loan.id,
            WaybillUpdate(items=loan_payload(stock, [(stock["old_lot"], 2)]).items),
            user_id,
        )
    assert await lot_quantity(db, stock["old_lot"]) == 4


# ==================== Loan conversion ====================

def conversion_payload(sale, lines, number=None):
    return LoanConversionRequest(
        waybill_number=number,
        sale_id=sale.id,
        items=[
            LoanConversionItem(waybill_item_id=loan_item.id, sale_item_id=sale_item.id, quantity=qty)
            for loan_item, sale_item, qty in lines
        ],
    )


async def test_conversion_books_loaned_goods_against_the_sale(db, user_id, stock):
    service = WaybillService(db)
    loan = await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 3)]), user_id)

    # LOT-OLD 1 and LOT-NEW 2 designated, 2 backordered
    sale = await SaleService(db).create_sale(sale_payload(stock, 5), user_id)
    item = sale.items[0]
    assert item.backorder_quantity == 2

    conversion = await service.convert_loan_waybill(
        loan.id, conversion_payload(sale, [(loan.items[0], item, 3)]), user_id
    )

    assert conversion.waybill_type == "conversion"
    assert conversion.original_loan_waybill_id == loan.id
    assert conversion.sale_id == sale.id
    assert conversion.waybill_number != loan.waybill_number
    assert conversion.items[0].quantity_supplied == 3
    assert [(d.lot_number, d.quantity_taken) for d in conversion.items[0].inventories] == [("LOT-OLD", 3)]

    # no stock moves
    assert await lot_quantity(db, stock["old_lot"]) == 1
    assert await lot_quantity(db, stock["new_lot"]) == 2
    rows = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.reference_id == conversion.id)
    )).scalars().all()
    assert rows == []

    sale_item = await reload_sale_item(db, item)
    assert sale_item.fulfilled_quantity == 3
    assert sale_item.backorder_quantity == 0
    assert sale_item.has_backorder is False

    backorder = (await db.execute(
        select(Backorder).where(Backorder.sale_item_id == item.id)
    )).scalar_one()
    await db.refresh(backorder)
    assert backorder.pending_quantity == 0
    assert backorder.is_active is False

    designations = (await db.execute(
        select(SaleItemInventory).where(SaleItemInventory.sale_item_id == item.id)
    )).scalars().all()
    for designation in designations:
        await db.refresh(designation)
    assert sum(d.quantity_delivered for d in designations) == 1

    loan_line = await db.get(WaybillItem, loan.items[0].id)
    await db.refresh(loan_line)
    assert loan_line.quantity_converted == 3

    refreshed_sale = await db.get(Sale, sale.id)
    await db.refresh(refreshed_sale)
    assert refreshed_sale.status == "partial"


async def test_conversion_beyond_loaned_quantity_is_rejected(db, user_id, stock):
    service = WaybillService(db)
    loan = await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 2)]), user_id)
    sale = await SaleService(db).create_sale(sale_payload(stock, 4), user_id)
    item = sale.items[0]

    await service.convert_loan_waybill(loan.id, conversion_payload(sale, [(loan.items[0], item, 2)]), user_id)

    with pytest.raises(ValidationFailureError):
        await service.convert_loan_waybill(
            loan.id, conversion_payload(sale, [(loan.items[0], item, 1)]), user_id
        )
    assert (await reload_sale_item(db, item)).fulfilled_quantity == 2


async def test_conversion_beyond_outstanding_sale_quantity_is_rejected(db, user_id, stock):
    service = WaybillService(db)
    loan = await service.create_waybill(loan_payload(stock, [(stock["old_lot"], 3)]), user_id)
    sale = await SaleService(db).create_sale(sale_payload(stock, 2), user_id)
    loan_line_id = loan.items[0].id

    with pytest.raises(ValidationFailureError):
        await service.convert_loan_waybill(
            loan.id, conversion_payload(sale, [(loan.items[0], sale.items[0], 3)]), user_id
        )

    loan_line = await db.get(WaybillItem, loan_line_id)
    await db.refresh(loan_line)
    assert loan_line.quantity_converted == 0
    assert len((await db.execute(select(Waybill))).scalars().all()) == 1


async def test_only_loan_waybills_can_be_converted(db, user_id, stock):
    sale = await SaleService(db).create_sale(sale_payload(stock, 2), user_id)
    service = WaybillService(db)
    waybill = await service.create_waybill(
        waybill_payload(sale, sale.items[0], [(stock["old_lot"], 1)]), user_id
    )

    with pytest.raises(NotFoundError):
        await service.convert_loan_waybill(
            waybill.id, conversion_payload(sale, [(waybill.items[0], sale.items[0], 1)]), user_id
        )
