from .sessions import StockEntrySessionViewSet

__all__ = ["StockEntrySessionViewSet"]
