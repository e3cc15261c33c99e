"""bundleswap - escrow engine for atomic multi-asset swaps."""

__version__ = "0.1.0"
