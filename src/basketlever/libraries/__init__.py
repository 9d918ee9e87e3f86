"""Pure arithmetic and registry helpers shared by all services."""

from basketlever.libraries.precise_math import PRECISE_UNIT, MathOverflowError
from basketlever.libraries.shares_math import VIRTUAL_ASSETS, VIRTUAL_SHARES, assets_to_shares, shares_to_assets

__all__ = [
    "PRECISE_UNIT",
    "MathOverflowError",
    "VIRTUAL_ASSETS",
    "VIRTUAL_SHARES",
    "assets_to_shares",
    "shares_to_assets",
]
