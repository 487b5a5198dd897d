"""TradeDesk inventory, sales and fulfillment backend."""
