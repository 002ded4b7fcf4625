from .ledger import DEFAULT_BATCH_NUMBER, apply_delta, find_batch, lock_product
from .stock_mutations import (
    consume_stock,
    receive_stock,
    return_or_write_off,
    set_batch_quantity,
    update_batch_details,
)

__all__ = [
    "DEFAULT_BATCH_NUMBER",
    "apply_delta",
    "find_batch",
    "lock_product",
    "receive_stock",
    "consume_stock",
    "return_or_write_off",
    "set_batch_quantity",
    "update_batch_details",
]
