# stock_entry/services/exceptions.py

"""
STOCK ENTRY ERRORS

Session / grid failures plus the commit-loop failure value.
Same shape as products.services.exceptions: stable `code` + HTTP hint.
"""

from django.core.exceptions import ValidationError as DjangoValidationError

from products.services.exceptions import InventoryError


class StockEntryError(InventoryError):
    """Base exception for stock entry sessions."""

    code = "stock_entry_error"
    status_code = 400


class StockEntrySessionNotFound(StockEntryError):
    """Stock entry session does not exist or has expired."""

    code = "not_found"
    status_code = 404


class GridRowNotFound(StockEntryError):
    """Row is not part of this stock entry grid."""

    code = "not_found"
    status_code = 404


class PartialBatchFailure(StockEntryError):
    """
    A commit stopped at its first failing row.

    Rows before it stay applied (no rollback); the failing row and every
    row after it are left in the grid for retry.
    """

    code = "partial_failure"

    def __init__(self, message: str = "Failed to save some items. Please check and try again.", *, cause=None, row_id=None, applied=0):
        super().__init__(message, row_id=row_id, applied=applied)
        self.cause = cause
        self.row_id = row_id
        self.applied = applied
        # surface the status of what actually failed (503 transient, 400 invalid, ...)
        if isinstance(cause, DjangoValidationError):
            self.status_code = 400
        else:
            self.status_code = getattr(cause, "status_code", 503)

    @property
    def reason(self) -> str:
        return str(self.cause) if self.cause is not None else ""


class StockEntrySessionBusy(StockEntryError):
    """Another request is writing the same session."""

    code = "session_busy"
    status_code = 409
