from .expiry import ExpiryCalendarQuerySerializer, ExpiryQuerySerializer, VendorReturnSerializer
from .product import ProductSerializer
from .stock_batch import (
    StockBatchPatchSerializer,
    StockBatchSerializer,
    StockBatchSummarySerializer,
    StockConsumeSerializer,
    StockMovementSerializer,
    StockReceiveSerializer,
    StockWriteOffSerializer,
)

__all__ = [
    "ProductSerializer",
    "StockBatchSerializer",
    "StockBatchSummarySerializer",
    "StockBatchPatchSerializer",
    "StockConsumeSerializer",
    "StockMovementSerializer",
    "StockReceiveSerializer",
    "StockWriteOffSerializer",
    "ExpiryQuerySerializer",
    "ExpiryCalendarQuerySerializer",
    "VendorReturnSerializer",
]
