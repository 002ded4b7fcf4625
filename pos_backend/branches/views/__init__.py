from .branch import BranchViewSet

__all__ = ["BranchViewSet"]
