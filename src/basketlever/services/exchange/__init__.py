"""Exchange adapters: interface, resolver and in-memory venue."""

from basketlever.services.exchange.interface import IExchangeAdapter
from basketlever.services.exchange.resolver import ExchangeAdapterResolver
from basketlever.services.exchange.simulated import ExchangeError, SimulatedExchangeAdapter, SimulatedVenue

__all__ = [
    "ExchangeAdapterResolver",
    "ExchangeError",
    "IExchangeAdapter",
    "SimulatedExchangeAdapter",
    "SimulatedVenue",
]
