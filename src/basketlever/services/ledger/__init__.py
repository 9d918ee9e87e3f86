"""Basket-token position ledger and its module-side adapter."""

from basketlever.services.ledger.adapter import PositionLedgerAdapter, get_notional_from_unit, get_unit_from_notional
from basketlever.services.ledger.basket_token import BasketToken, BasketTokenError
from basketlever.services.ledger.interface import IBasketToken
from basketlever.services.ledger.models import ModuleState, Position, PositionKind

__all__ = [
    "BasketToken",
    "BasketTokenError",
    "IBasketToken",
    "ModuleState",
    "Position",
    "PositionKind",
    "PositionLedgerAdapter",
    "get_notional_from_unit",
    "get_unit_from_notional",
]
