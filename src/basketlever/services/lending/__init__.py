"""Lending market interface, models and in-memory simulator."""

from basketlever.services.lending.interface import ILendingMarket
from basketlever.services.lending.market import ORACLE_PRICE_SCALE, LendingMarketError, SimulatedLendingMarket
from basketlever.services.lending.models import WAD, LendingPosition, MarketParams, MarketState

__all__ = [
    "ILendingMarket",
    "LendingMarketError",
    "LendingPosition",
    "MarketParams",
    "MarketState",
    "ORACLE_PRICE_SCALE",
    "SimulatedLendingMarket",
    "WAD",
]
