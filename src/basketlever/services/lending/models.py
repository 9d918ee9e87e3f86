"""Lending market models."""

import hashlib

from pydantic import BaseModel, ConfigDict, field_validator

WAD = 10**18


class MarketParams(BaseModel):
    """
    Identifies one isolated lending market.

    Attributes:
        collateral_asset: Asset posted as collateral
        loan_asset: Asset borrowed against the collateral
        oracle: Price source (collateral priced in loan asset, 1e36 scale)
        interest_rate_model: Borrow rate source
        liquidation_threshold: Liquidation loan-to-value, 1e18 scale (0.86e18 = 86%)
    """

    model_config = ConfigDict(frozen=True)

    collateral_asset: str
    loan_asset: str
    oracle: str
    interest_rate_model: str
    liquidation_threshold: int

    @field_validator("liquidation_threshold")
    @classmethod
    def validate_lltv(cls, v: int) -> int:
        if v <= 0 or v >= WAD:
            raise ValueError(f"liquidation_threshold must be within (0, 1e18), got {v}")
        return v

    @property
    def market_id(self) -> str:
        """Deterministic hex id derived from all five fields."""
        encoded = "|".join(
            [
                self.loan_asset,
                self.collateral_asset,
                self.oracle,
                self.interest_rate_model,
                str(self.liquidation_threshold),
            ]
        )
        return "0x" + hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class LendingPosition(BaseModel):
    """One account's position in one market (shares for supply/borrow, assets for collateral)."""

    model_config = ConfigDict(frozen=True)

    supply_shares: int = 0
    borrow_shares: int = 0
    collateral: int = 0


class MarketState(BaseModel):
    """Pool totals of one market. last_update == 0 means the market does not exist."""

    model_config = ConfigDict(frozen=True)

    total_supply_assets: int = 0
    total_supply_shares: int = 0
    total_borrow_assets: int = 0
    total_borrow_shares: int = 0
    last_update: int = 0
    fee: int = 0
