from .grid import ScanEventSerializer, ScanRowCreateSerializer, ScanRowPatchSerializer

__all__ = [
    "ScanEventSerializer",
    "ScanRowCreateSerializer",
    "ScanRowPatchSerializer",
]
