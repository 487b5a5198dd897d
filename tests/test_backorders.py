"""Backorder registry listing, detail and cancellation."""
from datetime import timedelta

import pytest

from tradedesk.core.exceptions import AlreadyFulfilledError, NotFoundError
from tradedesk.models.backorder import Backorder
from tradedesk.models.sale import SaleItem
from tradedesk.schemas.backorder import BackorderFilters
from tradedesk.services.backorder_service import BackorderService
from tests.factories import (
    BASE_TIME,
    make_backordered_sale,
    make_customer,
    make_product,
    make_store,
)


@pytest.fixture
async def registry(db):
    """Three backorders created a day apart, across two products and customers."""
    store = await make_store(db)
    widget = await make_product(db, code="WID-001", name="Steel Widget", description="Zinc plated")
    bolt = await make_product(db, code="BLT-010", name="Hex Bolt")
    acme = await make_customer(db, "Acme Traders")
    zenith = await make_customer(db, "Zenith Hardware")

    first = await make_backordered_sale(
        db, widget, store, acme, invoice_number="INV-1001", ordered=8, backordered=5,
        created_at=BASE_TIME + timedelta(days=1),
    )
    second = await make_backordered_sale(
        db, bolt, store, zenith, invoice_number="INV-1002", ordered=20, backordered=20,
        created_at=BASE_TIME + timedelta(days=2),
    )
    third = await make_backordered_sale(
        db, widget, store, None, invoice_number="INV-1003", ordered=3, backordered=2,
        created_at=BASE_TIME + timedelta(days=3),
    )
    return {
        "store": store,
        "widget": widget,
        "bolt": bolt,
        "acme": acme,
        "zenith": zenith,
        "backorders": [first[2], second[2], third[2]],
        "sales": [first[0], second[0], third[0]],
    }


def invoice_numbers(items):
    return [d.sale_item.sale.invoice_number for d in items]


async def test_oldest_backorders_come_first(db, registry):
    items, total = await BackorderService(db).list_backorders()

    assert total == 3
    assert invoice_numbers(items) == ["INV-1001", "INV-1002", "INV-1003"]


async def test_inactive_backorders_are_hidden(db, registry):
    await BackorderService(db).soft_delete_backorder(registry["backorders"][1].id)

    items, total = await BackorderService(db).list_backorders()
    assert total == 2
    assert invoice_numbers(items) == ["INV-1001", "INV-1003"]


@pytest.mark.parametrize(
    "term, expected",
    [
        ("widget", ["INV-1001", "INV-1003"]),
        ("BLT", ["INV-1002"]),
        ("zinc", ["INV-1001", "INV-1003"]),
        ("inv-1003", ["INV-1003"]),
        ("zenith", ["INV-1002"]),
        ("no such thing", []),
    ],
)
async def test_search_covers_product_sale_and_customer(db, registry, term, expected):
    items, total = await BackorderService(db).list_backorders(BackorderFilters(search=term))

    assert total == len(expected)
    assert invoice_numbers(items) == expected


async def test_filter_by_ids(db, registry):
    service = BackorderService(db)

    items, _ = await service.list_backorders(BackorderFilters(product_id=registry["widget"].id))
    assert invoice_numbers(items) == ["INV-1001", "INV-1003"]

    items, _ = await service.list_backorders(BackorderFilters(sale_id=registry["sales"][1].id))
    assert invoice_numbers(items) == ["INV-1002"]

    items, _ = await service.list_backorders(BackorderFilters(customer_id=registry["acme"].id))
    assert invoice_numbers(items) == ["INV-1001"]


async def test_filter_by_pending_quantity_range(db, registry):
    items, total = await BackorderService(db).list_backorders(
        BackorderFilters(pending_quantity_min=2, pending_quantity_max=5)
    )

    assert total == 2
    assert [d.backorder.pending_quantity for d in items] == [5, 2]


async def test_filter_by_created_range(db, registry):
    items, total = await BackorderService(db).list_backorders(
        BackorderFilters(
            created_at_start=BASE_TIME + timedelta(days=2),
            created_at_end=BASE_TIME + timedelta(days=2, hours=12),
        )
    )

    assert total == 1
    assert invoice_numbers(items) == ["INV-1002"]


async def test_paging_and_get_all(db, registry):
    service = BackorderService(db)

    page_two, total = await service.list_backorders(page=2, size=2)
    assert total == 3
    assert invoice_numbers(page_two) == ["INV-1003"]

    everything, total = await service.list_backorders(page=2, size=1, get_all=True)
    assert total == 3
    assert len(everything) == 3


async def test_detail_carries_sale_and_customer(db, registry):
    detail = await BackorderService(db).get_backorder(registry["backorders"][0].id)

    assert detail.product.product_code == "WID-001"
    assert detail.sale_item.backorder_quantity == 5
    assert detail.sale_item.sale.invoice_number == "INV-1001"
    assert detail.sale_item.sale.customer.name == "Acme Traders"


async def test_detail_without_customer_is_explicit_none(db, registry):
    detail = await BackorderService(db).get_backorder(registry["backorders"][2].id)

    assert detail.sale_item.sale.customer is None
    dumped = detail.model_dump()
    assert "customer" in dumped["sale_item"]["sale"]
    assert dumped["sale_item"]["sale"]["customer"] is None


async def test_missing_detail_is_none(db, registry):
    import uuid
    assert await BackorderService(db).get_backorder(uuid.uuid4()) is None


async def test_soft_delete_reconciles_sale_item(db, registry):
    backorder = registry["backorders"][0]
    backorder_id, sale_item_id = backorder.id, backorder.sale_item_id

    result = await BackorderService(db).soft_delete_backorder(backorder_id)

    assert result.is_active is False
    assert result.pending_quantity == 0
    assert result.original_pending_quantity == 5

    sale_item = await db.get(SaleItem, sale_item_id)
    await db.refresh(sale_item)
    assert sale_item.backorder_quantity == 0
    assert sale_item.has_backorder is False


async def test_soft_delete_twice_is_rejected(db, registry):
    backorder_id = registry["backorders"][0].id
    service = BackorderService(db)
    await service.soft_delete_backorder(backorder_id)

    with pytest.raises(AlreadyFulfilledError):
        await service.soft_delete_backorder(backorder_id)


async def test_soft_delete_unknown_backorder(db):
    import uuid
    with pytest.raises(NotFoundError):
        await BackorderService(db).soft_delete_backorder(uuid.uuid4())


async def test_soft_delete_leaves_other_backorders(db, registry):
    await BackorderService(db).soft_delete_backorder(registry["backorders"][0].id)

    other = await db.get(Backorder, registry["backorders"][2].id)
    await db.refresh(other)
    assert other.is_active is True
    assert other.pending_quantity == 2
