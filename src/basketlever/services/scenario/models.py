"""Scenario file models.

A scenario describes one simulated world (assets, prices, market, basket)
and an ordered list of steps run against it. Human-readable amounts
("1000", "0.1") are converted to token wei with the asset's decimals.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from fractions import Fraction
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Amount = Union[int, str]

StepAction = Literal[
    "enter_collateral",
    "lever",
    "delever",
    "delever_to_zero",
    "sync",
    "advance_time",
    "set_oracle_price",
    "set_swap_price",
    "liquidate",
    "issue",
    "redeem",
]


def to_wei(value: Amount, decimals: int) -> int:
    """
    Convert a human amount to integer wei, truncating extra precision.

    Example:
        >>> to_wei("1000", 6)
        1000000000
        >>> to_wei("0.1", 18)
        100000000000000000
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {value!r}") from None
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {value!r}")
    return int((amount * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


def to_fraction(value: Amount) -> Fraction:
    try:
        fraction = Fraction(str(value))
    except ValueError:
        raise ValueError(f"Invalid price: {value!r}") from None
    if fraction <= 0:
        raise ValueError(f"Price must be positive: {value!r}")
    return fraction


class AssetSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    symbol: str
    decimals: int = Field(ge=0, le=36)


class WorldSpec(BaseModel):
    """
    Simulated world parameters.

    Attributes:
        collateral / loan: The two market assets
        price: Loan asset per whole collateral token, used for the oracle
        swap_price: Venue price (defaults to price)
        liquidation_threshold: LLTV as a decimal fraction ("0.86")
        borrow_rate_per_second: Per-second borrow rate, 1e18 scale
        lender_liquidity: Loan asset supplied by a third-party lender
        basket_supply: Basket tokens issued at setup
        collateral_unit: Collateral per basket token at setup
    """

    model_config = ConfigDict(extra="forbid")

    collateral: AssetSpec = AssetSpec(address="0xwsteth", symbol="wstETH", decimals=18)
    loan: AssetSpec = AssetSpec(address="0xusdc", symbol="USDC", decimals=6)
    price: Amount = "3000"
    swap_price: Optional[Amount] = None
    liquidation_threshold: Amount = "0.86"
    borrow_rate_per_second: int = Field(default=0, ge=0)
    venue_fee_bps: int = Field(default=0, ge=0, lt=10_000)
    adapter_name: str = "UNISWAP"
    lender_liquidity: Amount = "1000000"
    venue_liquidity_collateral: Amount = "1000"
    venue_liquidity_loan: Amount = "3000000"
    basket_supply: Amount = "1"
    collateral_unit: Amount = "1"

    @field_validator("price", "liquidation_threshold")
    @classmethod
    def validate_positive(cls, v: Amount) -> Amount:
        to_fraction(v)
        return v


class ScenarioStep(BaseModel):
    """
    One scenario step.

    ``expect_error`` names the error class the step must raise; the run
    continues after an expected failure.
    """

    model_config = ConfigDict(extra="forbid")

    action: StepAction
    params: dict[str, Any] = Field(default_factory=dict)
    expect_error: Optional[str] = None


class ScenarioConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    description: str = ""
    world: WorldSpec = Field(default_factory=WorldSpec)
    steps: list[ScenarioStep] = Field(default_factory=list)
