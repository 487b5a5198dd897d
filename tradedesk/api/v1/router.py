from fastapi import APIRouter

from tradedesk.api.v1.endpoints import (
    # Backorders
    backorders,
    # Inventory
    inventory,
    # Sales & Dispatch
    sales,
    waybills,
    # Purchasing
    purchases,
    # Logistics
    shipments,
    # Finance
    finance,
    # Document Numbering
    documents,
)


api_router = APIRouter(prefix="/api/v1")


# ==================== BACKORDERS ====================
api_router.include_router(backorders.router, prefix="/backorders", tags=["Backorders"])

# ==================== INVENTORY ====================
api_router.include_router(inventory.router, prefix="/inventory", tags=["Inventory"])

# ==================== SALES & DISPATCH ====================
api_router.include_router(sales.router, prefix="/sales", tags=["Sales"])
api_router.include_router(waybills.router, prefix="/waybills", tags=["Waybills"])

# ==================== PURCHASING ====================
api_router.include_router(purchases.router, tags=["Purchasing"])

# ==================== LOGISTICS ====================
api_router.include_router(shipments.router, prefix="/shipments", tags=["Shipments"])

# ==================== FINANCE ====================
api_router.include_router(finance.router, tags=["Finance"])

# ==================== DOCUMENT NUMBERING ====================
api_router.include_router(documents.router, prefix="/documents", tags=["Document Numbering"])
