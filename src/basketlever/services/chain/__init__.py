"""In-memory token bank, call router and transaction journal."""

from basketlever.services.chain.bank import (
    InsufficientAllowanceError,
    InsufficientBalanceError,
    TokenBank,
    TokenError,
    UnknownAssetError,
)
from basketlever.services.chain.journal import TransactionJournal
from basketlever.services.chain.models import CallPayload, TradeCall
from basketlever.services.chain.router import CallError, CallRouter

__all__ = [
    "CallError",
    "CallPayload",
    "CallRouter",
    "InsufficientAllowanceError",
    "InsufficientBalanceError",
    "TokenBank",
    "TokenError",
    "TradeCall",
    "TransactionJournal",
    "UnknownAssetError",
]
