"""
basketlever - leveraged-position accounting for basket tokens.

Public API for levering, delevering and reconciling a basket token's
collateral and debt positions against a lending market.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("basketlever")
except PackageNotFoundError:
    __version__ = "0.0.0.dev"  # not installed


__all__ = [
    "__version__",
]
