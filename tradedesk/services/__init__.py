# Services module
from tradedesk.services.document_sequence_service import DocumentSequenceService
from tradedesk.services.inventory_service import InventoryService
from tradedesk.services.backorder_service import BackorderService
from tradedesk.services.fulfillment_service import FulfillmentService
from tradedesk.services.sale_service import SaleService
from tradedesk.services.waybill_service import WaybillService

# Purchasing, logistics and finance
from tradedesk.services.purchase_service import PurchaseService
from tradedesk.services.shipment_service import ShipmentService
from tradedesk.services.finance_service import FinanceService

__all__ = [
    "DocumentSequenceService",
    "InventoryService",
    "BackorderService",
    "FulfillmentService",
    "SaleService",
    "WaybillService",
    # Purchasing, logistics and finance
    "PurchaseService",
    "ShipmentService",
    "FinanceService",
]
