# products/services/exceptions.py

"""
INVENTORY SERVICE ERRORS

Centralized domain errors for the catalog / batch ledger / stock mutation
services. Each error carries a stable `code` and an HTTP `status_code`
hint so views can translate them without guessing.
"""

import logging
from contextlib import contextmanager

from django.db import DatabaseError

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base exception for all inventory service failures."""

    code = "inventory_error"
    status_code = 400

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.context = context

    @property
    def detail(self) -> str:
        return str(self)


class ProductNotFound(InventoryError):
    """Referenced product does not exist."""

    code = "not_found"
    status_code = 404


class BatchNotFound(InventoryError):
    """Referenced batch does not exist for this product."""

    code = "not_found"
    status_code = 404


class InvalidQuantity(InventoryError):
    """Quantity is outside the range the operation accepts."""

    code = "invalid_quantity"
    status_code = 400


class NegativeStockAttempt(InventoryError):
    """Mutation would take a batch below zero (reject underflow policy)."""

    code = "negative_stock"
    status_code = 409


class TransientStockError(InventoryError):
    """Persistence call failed; safe to retry."""

    code = "transient"
    status_code = 503


class DuplicateGtin(InventoryError):
    """Another product already uses this GTIN."""

    code = "duplicate_gtin"
    status_code = 409


class DuplicateBatchNumber(InventoryError):
    """Another batch of this product already uses this batch number."""

    code = "duplicate_batch_number"
    status_code = 409


class WorkflowStateError(InventoryError):
    """Operation is not allowed in the workflow's current state."""

    code = "invalid_state"
    status_code = 409


class DuplicateSku(InventoryError):
    """Another product already uses this SKU."""

    code = "duplicate_sku"
    status_code = 409


# -------------------------------------------------
# PERSISTENCE TRANSLATION
# -------------------------------------------------


@contextmanager
def persistence_errors(operation: str):
    """
    Re-raise any DatabaseError (timeouts, lost connections, integrity
    races) as a retryable TransientStockError.
    """
    try:
        yield
    except DatabaseError as exc:
        logger.exception("inventory %s failed at the database layer", operation)
        raise TransientStockError(
            f"Inventory {operation} could not be saved. Please retry.",
            operation=operation,
        ) from exc
