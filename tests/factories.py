"""Helpers that insert rows directly, bypassing the services."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from tradedesk.models.backorder import Backorder
from tradedesk.models.customer import Customer
from tradedesk.models.inventory import InventoryLot
from tradedesk.models.product import Product
from tradedesk.models.sale import Sale, SaleItem
from tradedesk.models.store import Store

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


async def make_store(db, name="Main Store"):
    store = Store(name=name, location="Lagos")
    db.add(store)
    await db.commit()
    return store


async def make_customer(db, name="Acme Traders"):
    customer = Customer(name=name, email=f"{name.split()[0].lower()}@example.com")
    db.add(customer)
    await db.commit()
    return customer


async def make_product(db, code="WID-001", name="Steel Widget", description=None, **kwargs):
    product = Product(
        product_code=code,
        name=name,
        description=description,
        cost_price=Decimal("10.00"),
        selling_price=Decimal("15.00"),
        **kwargs,
    )
    db.add(product)
    await db.commit()
    return product


async def make_lot(db, product, store, quantity, lot_number="LOT-001", days_old=10, is_active=True):
    lot = InventoryLot(
        product_id=product.id,
        store_id=store.id,
        lot_number=lot_number,
        quantity=quantity,
        cost_price=Decimal("10.00"),
        selling_price=Decimal("15.00"),
        received_date=BASE_TIME - timedelta(days=days_old),
        is_active=is_active,
    )
    db.add(lot)
    await db.commit()
    return lot


async def make_backordered_sale(
    db,
    product,
    store,
    customer: Optional[Customer] = None,
    invoice_number="INV-0001",
    ordered=10,
    backordered=10,
    created_at: Optional[datetime] = None,
):
    """A sale with one item whose backordered part has an active backorder."""
    sale = Sale(
        invoice_number=invoice_number,
        customer_id=customer.id if customer else None,
        store_id=store.id,
        total_amount=Decimal("15.00") * ordered,
    )
    db.add(sale)
    await db.flush()

    sale_item = SaleItem(
        sale_id=sale.id,
        product_id=product.id,
        store_id=store.id,
        quantity=ordered,
        unit_price=Decimal("15.00"),
        total_price=Decimal("15.00") * ordered,
        fulfilled_quantity=0,
        backorder_quantity=backordered,
        has_backorder=backordered > 0,
        product_name=product.name,
        product_code=product.product_code,
    )
    db.add(sale_item)
    await db.flush()

    backorder = Backorder(
        product_id=product.id,
        store_id=store.id,
        sale_item_id=sale_item.id,
        pending_quantity=backordered,
        original_pending_quantity=backordered,
    )
    if created_at:
        backorder.created_at = created_at
    db.add(backorder)
    await db.commit()
    return sale, sale_item, backorder
