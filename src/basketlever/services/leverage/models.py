"""Leverage module state and result models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from basketlever.services.exchange.interface import IExchangeAdapter
from basketlever.services.issuance.interface import IDebtIssuanceModule
from basketlever.services.lending.models import MarketParams
from basketlever.services.ledger.interface import IBasketToken


class LeverageState(str, Enum):
    """Lifecycle of one (basket token, market) pair.

    UNINITIALIZED -> INITIALIZED -> COLLATERALIZED -> LEVERED
    A fully delevered basket stays COLLATERALIZED.
    """

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    COLLATERALIZED = "collateralized"
    LEVERED = "levered"


@dataclass
class ModuleSettings:
    """Per-basket settings latched at initialize.

    Attributes:
        basket: The basket token
        market_params: Lending market used for this basket (immutable once set)
        allow_list_version: Allow-list version read at initialize
        issuance_modules: Debt-issuance orchestrators this module registered on, by address
    """

    basket: IBasketToken
    market_params: MarketParams
    allow_list_version: int
    issuance_modules: dict[str, IDebtIssuanceModule] = field(default_factory=dict)

    @property
    def market_id(self) -> str:
        return self.market_params.market_id

    @property
    def collateral_asset(self) -> str:
        return self.market_params.collateral_asset

    @property
    def loan_asset(self) -> str:
        return self.market_params.loan_asset


@dataclass
class ActionInfo:
    """Transient inputs of one lever or delever."""

    basket: IBasketToken
    total_supply: int
    notional_send_quantity: int
    min_notional_receive_quantity: int
    pre_trade_receive_token_balance: int
    adapter_name: str
    adapter: IExchangeAdapter
    trade_data: Any = None


class LeverResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_borrow: int
    total_received: int
    protocol_fee: int
    collateral_supplied: int
    collateral_unit: int
    borrow_unit: int


class DeleverResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_redeem: int
    total_received: int
    protocol_fee: int
    total_repay: int
    collateral_unit: int
    borrow_unit: int
    fully_delevered: bool


class SyncResult(BaseModel):
    """Units and notionals written by a sync."""

    model_config = ConfigDict(frozen=True)

    total_supply: int
    collateral_unit: int
    collateral_notional: int
    borrow_unit: int
    borrow_notional: int
