"""ORM models. Importing this package registers every table on Base.metadata."""
from tradedesk.models.store import Store
from tradedesk.models.customer import Customer
from tradedesk.models.product import Product
from tradedesk.models.inventory import InventoryLot, InventoryTransaction, InventoryTransactionType
from tradedesk.models.sale import Sale, SaleItem, SaleItemInventory, SaleStatus
from tradedesk.models.backorder import Backorder
from tradedesk.models.document_sequence import DocumentSequence, DocumentSequenceAudit, DocumentType
from tradedesk.models.purchase import Purchase, PurchaseItem, PurchaseOrder, PurchaseStatus
from tradedesk.models.waybill import Waybill, WaybillItem, WaybillItemInventory, WaybillType, WaybillStatus
from tradedesk.models.shipment import Shipment, Parcel, ParcelItem, ShippingMode, PackageType
from tradedesk.models.finance import Receipt, PaymentReceived

__all__ = [
    "Store",
    "Customer",
    "Product",
    "InventoryLot",
    "InventoryTransaction",
    "InventoryTransactionType",
    "Sale",
    "SaleItem",
    "SaleItemInventory",
    "SaleStatus",
    "Backorder",
    "DocumentSequence",
    "DocumentSequenceAudit",
    "DocumentType",
    "Purchase",
    "PurchaseItem",
    "PurchaseOrder",
    "PurchaseStatus",
    "Waybill",
    "WaybillItem",
    "WaybillItemInventory",
    "WaybillType",
    "WaybillStatus",
    "Shipment",
    "Parcel",
    "ParcelItem",
    "ShippingMode",
    "PackageType",
    "Receipt",
    "PaymentReceived",
]
