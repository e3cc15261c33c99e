"""Utility modules for bundleswap."""

from bundleswap.utils.locks import OperationGuard

__all__ = ["OperationGuard"]
