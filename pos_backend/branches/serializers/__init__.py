from .branch import BranchSerializer

__all__ = ["BranchSerializer"]
