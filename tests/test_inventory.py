"""Stock receipt, on-hand projection and the transaction log."""
import uuid
from datetime import datetime, timezone

import pytest

from tradedesk.core.exceptions import NotFoundError, ValidationFailureError
from tradedesk.models.inventory import InventoryTransactionType
from tradedesk.schemas.inventory import (
    InventoryTransactionFilters,
    StockReceiptItem,
    StockReceiptRequest,
)
from tradedesk.services.inventory_service import InventoryService
from tests.factories import make_lot, make_product, make_store


def receipt(store, *items):
    return StockReceiptRequest(
        store_id=store.id,
        received_date=datetime(2026, 2, 1, tzinfo=timezone.utc),
        items=[
            StockReceiptItem(product_id=product.id, lot_number=lot_number, quantity=quantity)
            for product, lot_number, quantity in items
        ],
    )


async def test_receipt_opens_new_lot(db, user_id):
    store = await make_store(db)
    product = await make_product(db)

    lots = await InventoryService(db).receive_stock(receipt(store, (product, "LOT-A", 12)), user_id)

    assert len(lots) == 1
    assert lots[0].lot_number == "LOT-A"
    assert lots[0].quantity == 12

    transactions, total = await InventoryService(db).list_transactions()
    assert total == 1
    assert transactions[0].transaction_type == InventoryTransactionType.ADJUSTMENT.value
    assert (transactions[0].quantity_before, transactions[0].quantity_after) == (0, 12)
    assert transactions[0].user_id == user_id


async def test_receipt_tops_up_matching_lot(db, user_id):
    store = await make_store(db)
    product = await make_product(db)
    lot = await make_lot(db, product, store, 5, lot_number="LOT-A")

    lots = await InventoryService(db).receive_stock(receipt(store, (product, "LOT-A", 3)), user_id)

    assert lots[0].id == lot.id
    assert lots[0].quantity == 8

    transactions, _ = await InventoryService(db).list_transactions(
        InventoryTransactionFilters(inventory_lot_id=lot.id)
    )
    assert [(t.quantity_before, t.quantity_after) for t in transactions] == [(5, 8)]


async def test_receipt_is_all_or_nothing(db, user_id):
    store = await make_store(db)
    product = await make_product(db)
    request = StockReceiptRequest(
        store_id=store.id,
        items=[
            StockReceiptItem(product_id=product.id, lot_number="LOT-A", quantity=4),
            StockReceiptItem(product_id=uuid.uuid4(), lot_number="LOT-B", quantity=4),
        ],
    )

    with pytest.raises(NotFoundError):
        await InventoryService(db).receive_stock(request, user_id)

    _, total = await InventoryService(db).get_lots()
    assert total == 0


async def test_receipt_rejects_non_positive_quantity(db, user_id):
    store = await make_store(db)
    product = await make_product(db)

    with pytest.raises(ValidationFailureError):
        await InventoryService(db).receive_stock(receipt(store, (product, "LOT-A", 0)), user_id)


async def test_receipt_into_unknown_store(db, user_id):
    product = await make_product(db)
    request = StockReceiptRequest(
        store_id=uuid.uuid4(),
        items=[StockReceiptItem(product_id=product.id, lot_number="LOT-A", quantity=1)],
    )
    with pytest.raises(NotFoundError):
        await InventoryService(db).receive_stock(request, user_id)


async def test_on_hand_is_summed_from_active_lots(db):
    main = await make_store(db, "Main Store")
    annex = await make_store(db, "Annex")
    product = await make_product(db, alert_quantity=2, max_alert_quantity=20)
    await make_lot(db, product, main, 4, lot_number="LOT-A")
    await make_lot(db, product, main, 3, lot_number="LOT-B")
    await make_lot(db, product, annex, 6, lot_number="LOT-C")
    await make_lot(db, product, main, 50, lot_number="LOT-OLD", is_active=False)

    service = InventoryService(db)
    everywhere = await service.get_product_stock(product.id)
    assert (everywhere.quantity, everywhere.lot_count) == (13, 3)
    assert everywhere.is_low_stock is False
    assert everywhere.is_over_stock is False

    at_main = await service.get_product_stock(product.id, main.id)
    assert (at_main.quantity, at_main.lot_count) == (7, 2)


async def test_stock_of_unknown_product(db):
    with pytest.raises(NotFoundError):
        await InventoryService(db).get_product_stock(uuid.uuid4())


async def test_reorder_alerts(db):
    store = await make_store(db)
    scarce = await make_product(db, code="SCR-1", name="Scarce Part", alert_quantity=5, max_alert_quantity=50)
    plenty = await make_product(db, code="PLN-1", name="Plentiful Part", alert_quantity=1, max_alert_quantity=10)
    normal = await make_product(db, code="NRM-1", name="Normal Part", alert_quantity=1, max_alert_quantity=10)
    await make_lot(db, scarce, store, 3, lot_number="LOT-S")
    await make_lot(db, plenty, store, 12, lot_number="LOT-P")
    await make_lot(db, normal, store, 5, lot_number="LOT-N")
    await make_product(db, code="NONE-1", name="Never Stocked")

    alerts = await InventoryService(db).get_reorder_alerts()

    assert [(a.product_code, a.alert_type, a.quantity) for a in alerts] == [
        ("NONE-1", "low", 0),
        ("PLN-1", "over", 12),
        ("SCR-1", "low", 3),
    ]


async def test_lot_listing_filters(db):
    store = await make_store(db)
    product = await make_product(db)
    await make_lot(db, product, store, 0, lot_number="LOT-EMPTY", days_old=20)
    await make_lot(db, product, store, 5, lot_number="LOT-FULL", days_old=2)
    await make_lot(db, product, store, 5, lot_number="LOT-GONE", is_active=False)

    service = InventoryService(db)
    lots, total = await service.get_lots(product_id=product.id)
    assert total == 2
    assert [lot.lot_number for lot in lots] == ["LOT-EMPTY", "LOT-FULL"]

    lots, total = await service.get_lots(only_available=True)
    assert [lot.lot_number for lot in lots] == ["LOT-FULL"]

    lots, total = await service.get_lots(search="empty")
    assert [lot.lot_number for lot in lots] == ["LOT-EMPTY"]
