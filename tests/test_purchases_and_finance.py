"""Purchases, purchase orders, receipts and payments."""
import uuid
from datetime import date

import pytest
from sqlalchemy import select

from tradedesk.core.exceptions import DuplicateDocumentNumberError, NotFoundError
from tradedesk.models.inventory import InventoryLot, InventoryTransaction
from tradedesk.models.purchase import Purchase
from tradedesk.schemas.finance import PaymentCreate, ReceiptCreate
from tradedesk.schemas.purchase import PurchaseCreate, PurchaseItemCreate, PurchaseOrderCreate
from tradedesk.services.finance_service import FinanceService
from tradedesk.services.purchase_service import PurchaseService
from tests.factories import make_backordered_sale, make_customer, make_product, make_store


def purchase(store, product, received, **overrides):
    values = dict(
        vendor_name="Global Supplies Ltd",
        purchase_date=date(2026, 3, 5),
        store_id=store.id,
        received=received,
        items=[PurchaseItemCreate(product_id=product.id, quantity=6, unit_cost="2.50", lot_number="PL-7")],
    )
    values.update(overrides)
    return PurchaseCreate(**values)


async def test_received_purchase_books_stock(db, user_id):
    store = await make_store(db)
    product = await make_product(db)

    result = await PurchaseService(db).create_purchase(purchase(store, product, received=True), user_id)

    assert result.status == "received"
    assert result.is_received is True
    assert result.purchase_number.startswith("P-")
    assert len(result.items) == 1
    assert float(result.total_amount) == 15.0

    lot = (await db.execute(
        select(InventoryLot).where(InventoryLot.lot_number == "PL-7")
    )).scalar_one()
    assert lot.quantity == 6

    log = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.reference_id == result.id)
    )).scalar_one()
    assert log.transaction_type == "purchase"
    assert (log.quantity_before, log.quantity_after) == (0, 6)


async def test_pending_purchase_leaves_stock_alone(db, user_id):
    store = await make_store(db)
    product = await make_product(db)

    result = await PurchaseService(db).create_purchase(purchase(store, product, received=False), user_id)

    assert result.status == "pending"
    assert (await db.execute(select(InventoryLot))).scalars().all() == []


async def test_purchase_with_unknown_product_writes_nothing(db, user_id):
    store = await make_store(db)
    product = await make_product(db)
    data = purchase(
        store,
        product,
        received=True,
        items=[PurchaseItemCreate(product_id=uuid.uuid4(), quantity=1, lot_number="PL-X")],
    )

    with pytest.raises(NotFoundError):
        await PurchaseService(db).create_purchase(data, user_id)

    assert (await db.execute(select(Purchase))).scalars().all() == []


async def test_purchase_order_is_numbered_as_draft(db, user_id):
    order = await PurchaseService(db).create_purchase_order(
        PurchaseOrderCreate(vendor_name="Global Supplies Ltd", order_date=date(2026, 3, 5)),
        user_id,
    )

    assert order.status == "draft"
    assert order.purchase_order_number.startswith("PO-")


async def test_receipt_takes_customer_from_sale(db, user_id):
    store = await make_store(db)
    product = await make_product(db)
    customer = await make_customer(db)
    sale, _, _ = await make_backordered_sale(db, product, store, customer)

    receipt = await FinanceService(db).create_receipt(
        ReceiptCreate(sale_id=sale.id, amount="150.00", receipt_date=date(2026, 3, 6)),
        user_id,
    )

    assert receipt.receipt_number.startswith("NBSINV:")
    assert receipt.customer_id == customer.id


async def test_receipt_for_unknown_sale(db, user_id):
    with pytest.raises(NotFoundError):
        await FinanceService(db).create_receipt(
            ReceiptCreate(sale_id=uuid.uuid4(), amount="1", receipt_date=date(2026, 3, 6)),
            user_id,
        )


async def test_payment_numbers_are_unique(db, user_id):
    customer = await make_customer(db)
    service = FinanceService(db)

    first = await service.create_payment(
        PaymentCreate(customer_id=customer.id, amount="20", payment_date=date(2026, 3, 6)),
        user_id,
    )
    assert first.payment_ref_number.startswith("PAY-")

    with pytest.raises(DuplicateDocumentNumberError):
        await service.create_payment(
            PaymentCreate(
                payment_ref_number=first.payment_ref_number,
                customer_id=customer.id,
                amount="20",
                payment_date=date(2026, 3, 6),
            ),
            user_id,
        )
