"""
Share/asset conversion for pooled lending markets.

A market tracks supply and borrow as shares of a pool. Converting between
shares and assets uses virtual offsets so an empty market still has a
well-defined exchange rate that cannot be manipulated by the first
depositor.

Rounding direction is part of the contract:
- debt owed by an account: round up (conservative for the market)
- collateral or supply claimable by an account: round down
"""

from basketlever.libraries.precise_math import check_uint256

VIRTUAL_SHARES = 10**6
VIRTUAL_ASSETS = 1


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value < 0:
            raise ValueError(f"{name} must be non-negative, got {value}")


def to_assets_down(shares: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative(shares=shares, total_assets=total_assets, total_shares=total_shares)
    return check_uint256(shares * (total_assets + VIRTUAL_ASSETS) // (total_shares + VIRTUAL_SHARES))


def to_assets_up(shares: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative(shares=shares, total_assets=total_assets, total_shares=total_shares)
    denominator = total_shares + VIRTUAL_SHARES
    return check_uint256((shares * (total_assets + VIRTUAL_ASSETS) + denominator - 1) // denominator)


def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative(assets=assets, total_assets=total_assets, total_shares=total_shares)
    return check_uint256(assets * (total_shares + VIRTUAL_SHARES) // (total_assets + VIRTUAL_ASSETS))


def to_shares_up(assets: int, total_assets: int, total_shares: int) -> int:
    _require_non_negative(assets=assets, total_assets=total_assets, total_shares=total_shares)
    denominator = total_assets + VIRTUAL_ASSETS
    return check_uint256((assets * (total_shares + VIRTUAL_SHARES) + denominator - 1) // denominator)


def shares_to_assets(shares: int, total_assets: int, total_shares: int, round_up: bool) -> int:
    """
    Convert shares to assets.

    Args:
        shares: Share amount to convert
        total_assets: Market's total assets on this side (supply or borrow)
        total_shares: Market's total shares on this side
        round_up: True for debt, False for claimable balances

    Returns:
        Asset amount

    Raises:
        ValueError: If any input is negative
        MathOverflowError: If the result exceeds uint256

    Example:
        >>> shares_to_assets(10**6, 0, 0, round_up=False)
        1
    """
    if round_up:
        return to_assets_up(shares, total_assets, total_shares)
    return to_assets_down(shares, total_assets, total_shares)


def assets_to_shares(assets: int, total_assets: int, total_shares: int, round_up: bool) -> int:
    """
    Convert assets to shares. Inverse of shares_to_assets.

    Args:
        assets: Asset amount to convert
        total_assets: Market's total assets on this side
        total_shares: Market's total shares on this side
        round_up: Rounding direction

    Returns:
        Share amount
    """
    if round_up:
        return to_shares_up(assets, total_assets, total_shares)
    return to_shares_down(assets, total_assets, total_shares)
