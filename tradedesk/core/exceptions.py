"""
Domain errors raised by the service layer.

Every error carries a human readable message and the HTTP status the API
layer answers with.
"""


class TradeDeskError(ValueError):
    """Base class for business rule failures."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TradeDeskError):
    """Referenced entity does not exist or is inactive."""
    status_code = 404


class AlreadyFulfilledError(NotFoundError):
    """Backorder has nothing pending any more."""
    status_code = 409


class StockUnavailableError(TradeDeskError):
    """Lot is missing, inactive, or holds less than requested."""
    status_code = 409


class InconsistentStockReferenceError(TradeDeskError):
    """Lot product or store does not match the backorder."""
    status_code = 422


class NothingToFulfillError(TradeDeskError):
    """Clamped fulfillable quantity is zero."""
    status_code = 409


class DuplicateDocumentNumberError(TradeDeskError):
    """Document number already used by another document."""
    status_code = 409


class ValidationFailureError(TradeDeskError):
    """Caller supplied malformed quantities or identifiers."""
    status_code = 422
