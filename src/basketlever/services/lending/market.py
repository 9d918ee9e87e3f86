"""Simulated isolated-market lending pool.

Supply and borrow are tracked as pool shares converted with virtual
offsets (see libraries.shares_math); collateral is a plain asset balance.
Interest accrues per second from a fixed per-market rate, and unhealthy
positions can be liquidated by any account, so a borrower's debt and
collateral drift without the borrower doing anything.
"""

from copy import deepcopy
from dataclasses import dataclass
from typing import Any, Callable

from basketlever.libraries.shares_math import to_assets_down, to_assets_up, to_shares_down, to_shares_up
from basketlever.services.chain.bank import TokenBank
from basketlever.services.lending.models import WAD, LendingPosition, MarketParams, MarketState
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()

ORACLE_PRICE_SCALE = 10**36
MAX_FEE = WAD // 4
MAX_LIQUIDATION_INCENTIVE_FACTOR = 115 * WAD // 100
LIQUIDATION_CURSOR = 3 * WAD // 10


class LendingMarketError(Exception):
    """Raised when the lending market rejects a call."""


def w_mul_down(x: int, y: int) -> int:
    return x * y // WAD


def w_div_down(x: int, y: int) -> int:
    return x * WAD // y


def w_div_up(x: int, y: int) -> int:
    return (x * WAD + y - 1) // y


def mul_div_down(x: int, y: int, d: int) -> int:
    return x * y // d


def mul_div_up(x: int, y: int, d: int) -> int:
    return (x * y + d - 1) // d


def w_taylor_compounded(x: int, n: int) -> int:
    """e^(x*n) - 1 to third order, WAD scale."""
    first = x * n
    second = mul_div_down(first, first, 2 * WAD)
    third = mul_div_down(second, first, 3 * WAD)
    return first + second + third


@dataclass
class _Market:
    total_supply_assets: int = 0
    total_supply_shares: int = 0
    total_borrow_assets: int = 0
    total_borrow_shares: int = 0
    last_update: int = 0
    fee: int = 0

    def freeze(self) -> MarketState:
        return MarketState(**vars(self))


@dataclass
class _Position:
    supply_shares: int = 0
    borrow_shares: int = 0
    collateral: int = 0

    def freeze(self) -> LendingPosition:
        return LendingPosition(**vars(self))


class SimulatedLendingMarket:
    """
    In-memory lending market.

    Oracle prices and borrow rates are set directly on the simulator:
    ``set_oracle_price(oracle, price)`` prices one collateral wei in loan
    wei, scaled by 1e36; ``set_borrow_rate(irm, rate)`` sets a per-second
    WAD rate. ``advance_time(seconds)`` moves the clock used for accrual.

    Example:
        >>> market = SimulatedLendingMarket("0xmorpho", bank)
        >>> market.set_oracle_price("0xoracle", 3000 * 10**6 * 10**36 // 10**18)
        >>> market.create_market(params)
        >>> market.supply(params, 10**12, 0, "0xlp", caller="0xlp")
    """

    EXTERNAL_METHODS = frozenset(
        {
            "supply",
            "withdraw",
            "supply_collateral",
            "withdraw_collateral",
            "borrow",
            "repay",
            "liquidate",
            "set_authorization",
        }
    )

    def __init__(self, address: str, bank: TokenBank, clock: Callable[[], int] | None = None, start_time: int = 1):
        self.address = address
        self._bank = bank
        self._clock = clock
        self._time = start_time
        self._markets: dict[str, _Market] = {}
        self._params: dict[str, MarketParams] = {}
        self._positions: dict[str, dict[str, _Position]] = {}
        self._authorizations: set[tuple[str, str]] = set()
        self._prices: dict[str, int] = {}
        self._rates: dict[str, int] = {}
        self._fee_recipient: str | None = None

    # ------------------------------------------------------------------
    # Simulation controls
    # ------------------------------------------------------------------

    @property
    def now(self) -> int:
        return self._clock() if self._clock is not None else self._time

    def advance_time(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("Cannot move time backwards")
        self._time += seconds

    def set_oracle_price(self, oracle: str, price: int) -> None:
        if price < 0:
            raise ValueError(f"Oracle price cannot be negative, got {price}")
        self._prices[oracle] = price

    def set_borrow_rate(self, interest_rate_model: str, rate_per_second: int) -> None:
        if rate_per_second < 0:
            raise ValueError(f"Borrow rate cannot be negative, got {rate_per_second}")
        self._rates[interest_rate_model] = rate_per_second

    def set_fee(self, params: MarketParams, fee: int, fee_recipient: str) -> None:
        if fee > MAX_FEE:
            raise LendingMarketError("max fee exceeded")
        market = self._require_market(params)
        self.accrue_interest(params)
        market.fee = fee
        self._fee_recipient = fee_recipient

    def create_market(self, params: MarketParams) -> str:
        market_id = params.market_id
        if market_id in self._markets:
            raise LendingMarketError("market already created")
        self._markets[market_id] = _Market(last_update=self.now)
        self._params[market_id] = params
        self._positions[market_id] = {}
        logger.debug("lending.market.created", market_id=market_id, loan=params.loan_asset, collateral=params.collateral_asset)
        return market_id

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def position(self, market_id: str, account: str) -> LendingPosition:
        return self._positions.get(market_id, {}).get(account, _Position()).freeze()

    def market(self, market_id: str) -> MarketState:
        return self._markets.get(market_id, _Market()).freeze()

    def id_to_market_params(self, market_id: str) -> MarketParams:
        try:
            return self._params[market_id]
        except KeyError:
            raise LendingMarketError("market not created") from None

    def is_healthy(self, params: MarketParams, borrower: str) -> bool:
        market = self._require_market(params)
        return self._is_healthy(params, market, self._position(params.market_id, borrower))

    def expected_borrow_assets(self, params: MarketParams, borrower: str) -> int:
        """Debt of borrower after accrual, rounded up."""
        self.accrue_interest(params)
        market = self._markets[params.market_id]
        shares = self._position(params.market_id, borrower).borrow_shares
        return to_assets_up(shares, market.total_borrow_assets, market.total_borrow_shares)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_market(self, params: MarketParams) -> _Market:
        market = self._markets.get(params.market_id)
        if market is None:
            raise LendingMarketError("market not created")
        return market

    def _position(self, market_id: str, account: str) -> _Position:
        return self._positions[market_id].setdefault(account, _Position())

    def _require_authorized(self, on_behalf: str, caller: str) -> None:
        if caller != on_behalf and (on_behalf, caller) not in self._authorizations:
            raise LendingMarketError("unauthorized")

    @staticmethod
    def _exactly_one_zero(assets: int, shares: int) -> None:
        if assets < 0 or shares < 0:
            raise LendingMarketError("negative input")
        if (assets == 0) == (shares == 0):
            raise LendingMarketError("inconsistent input")

    def _is_healthy(self, params: MarketParams, market: _Market, position: _Position) -> bool:
        if position.borrow_shares == 0:
            return True
        price = self._prices.get(params.oracle)
        if price is None:
            raise LendingMarketError(f"no oracle price for {params.oracle}")
        borrowed = to_assets_up(position.borrow_shares, market.total_borrow_assets, market.total_borrow_shares)
        max_borrow = w_mul_down(mul_div_down(position.collateral, price, ORACLE_PRICE_SCALE), params.liquidation_threshold)
        return max_borrow >= borrowed

    def accrue_interest(self, params: MarketParams) -> None:
        market = self._require_market(params)
        elapsed = self.now - market.last_update
        if elapsed <= 0:
            return

        rate = self._rates.get(params.interest_rate_model, 0)
        if rate > 0 and market.total_borrow_assets > 0:
            interest = w_mul_down(market.total_borrow_assets, w_taylor_compounded(rate, elapsed))
            market.total_borrow_assets += interest
            market.total_supply_assets += interest

            if market.fee > 0 and self._fee_recipient is not None:
                fee_amount = w_mul_down(interest, market.fee)
                fee_shares = to_shares_down(
                    fee_amount, market.total_supply_assets - fee_amount, market.total_supply_shares
                )
                self._position(params.market_id, self._fee_recipient).supply_shares += fee_shares
                market.total_supply_shares += fee_shares

            logger.debug("lending.interest.accrued", market_id=params.market_id, elapsed=elapsed, interest=interest)

        market.last_update = self.now

    # ------------------------------------------------------------------
    # Supply side
    # ------------------------------------------------------------------

    def supply(self, params: MarketParams, assets: int, shares: int, on_behalf: str, *, caller: str) -> tuple[int, int]:
        market = self._require_market(params)
        self._exactly_one_zero(assets, shares)
        self.accrue_interest(params)

        if assets > 0:
            shares = to_shares_down(assets, market.total_supply_assets, market.total_supply_shares)
        else:
            assets = to_assets_up(shares, market.total_supply_assets, market.total_supply_shares)

        self._bank.transfer_from(params.loan_asset, self.address, caller, self.address, assets)
        self._position(params.market_id, on_behalf).supply_shares += shares
        market.total_supply_shares += shares
        market.total_supply_assets += assets
        logger.debug("lending.supply", market_id=params.market_id, on_behalf=on_behalf, assets=assets, shares=shares)
        return assets, shares

    def withdraw(
        self, params: MarketParams, assets: int, shares: int, on_behalf: str, receiver: str, *, caller: str
    ) -> tuple[int, int]:
        market = self._require_market(params)
        self._exactly_one_zero(assets, shares)
        self._require_authorized(on_behalf, caller)
        self.accrue_interest(params)

        if assets > 0:
            shares = to_shares_up(assets, market.total_supply_assets, market.total_supply_shares)
        else:
            assets = to_assets_down(shares, market.total_supply_assets, market.total_supply_shares)

        position = self._position(params.market_id, on_behalf)
        if position.supply_shares < shares:
            raise LendingMarketError("insufficient supply")
        if market.total_supply_assets - assets < market.total_borrow_assets:
            raise LendingMarketError("insufficient liquidity")

        position.supply_shares -= shares
        market.total_supply_shares -= shares
        market.total_supply_assets -= assets
        self._bank.transfer(params.loan_asset, self.address, receiver, assets)
        logger.debug("lending.withdraw", market_id=params.market_id, on_behalf=on_behalf, assets=assets, shares=shares)
        return assets, shares

    # ------------------------------------------------------------------
    # Collateral
    # ------------------------------------------------------------------

    def supply_collateral(self, params: MarketParams, assets: int, on_behalf: str, *, caller: str) -> None:
        self._require_market(params)
        if assets <= 0:
            raise LendingMarketError("zero assets")

        self._bank.transfer_from(params.collateral_asset, self.address, caller, self.address, assets)
        self._position(params.market_id, on_behalf).collateral += assets
        logger.debug("lending.collateral.supplied", market_id=params.market_id, on_behalf=on_behalf, assets=assets)

    def withdraw_collateral(
        self, params: MarketParams, assets: int, on_behalf: str, receiver: str, *, caller: str
    ) -> None:
        market = self._require_market(params)
        if assets <= 0:
            raise LendingMarketError("zero assets")
        self._require_authorized(on_behalf, caller)
        self.accrue_interest(params)

        position = self._position(params.market_id, on_behalf)
        if position.collateral < assets:
            raise LendingMarketError("insufficient collateral balance")
        position.collateral -= assets
        if not self._is_healthy(params, market, position):
            position.collateral += assets
            raise LendingMarketError("insufficient collateral")

        self._bank.transfer(params.collateral_asset, self.address, receiver, assets)
        logger.debug("lending.collateral.withdrawn", market_id=params.market_id, on_behalf=on_behalf, assets=assets)

    # ------------------------------------------------------------------
    # Borrow side
    # ------------------------------------------------------------------

    def borrow(
        self, params: MarketParams, assets: int, shares: int, on_behalf: str, receiver: str, *, caller: str
    ) -> tuple[int, int]:
        market = self._require_market(params)
        self._exactly_one_zero(assets, shares)
        self._require_authorized(on_behalf, caller)
        self.accrue_interest(params)

        if assets > 0:
            shares = to_shares_up(assets, market.total_borrow_assets, market.total_borrow_shares)
        else:
            assets = to_assets_down(shares, market.total_borrow_assets, market.total_borrow_shares)

        position = self._position(params.market_id, on_behalf)
        position.borrow_shares += shares
        market.total_borrow_shares += shares
        market.total_borrow_assets += assets

        if not self._is_healthy(params, market, position):
            position.borrow_shares -= shares
            market.total_borrow_shares -= shares
            market.total_borrow_assets -= assets
            raise LendingMarketError("insufficient collateral")
        if market.total_borrow_assets > market.total_supply_assets:
            position.borrow_shares -= shares
            market.total_borrow_shares -= shares
            market.total_borrow_assets -= assets
            raise LendingMarketError("insufficient liquidity")

        self._bank.transfer(params.loan_asset, self.address, receiver, assets)
        logger.debug("lending.borrow", market_id=params.market_id, on_behalf=on_behalf, assets=assets, shares=shares)
        return assets, shares

    def repay(self, params: MarketParams, assets: int, shares: int, on_behalf: str, *, caller: str) -> tuple[int, int]:
        market = self._require_market(params)
        self._exactly_one_zero(assets, shares)
        self.accrue_interest(params)

        if assets > 0:
            shares = to_shares_down(assets, market.total_borrow_assets, market.total_borrow_shares)
        else:
            assets = to_assets_up(shares, market.total_borrow_assets, market.total_borrow_shares)

        position = self._position(params.market_id, on_behalf)
        if position.borrow_shares < shares:
            raise LendingMarketError("repay exceeds borrow shares")

        self._bank.transfer_from(params.loan_asset, self.address, caller, self.address, assets)
        position.borrow_shares -= shares
        market.total_borrow_shares -= shares
        market.total_borrow_assets = max(market.total_borrow_assets - assets, 0)
        logger.debug("lending.repay", market_id=params.market_id, on_behalf=on_behalf, assets=assets, shares=shares)
        return assets, shares

    def liquidate(
        self, params: MarketParams, borrower: str, seized_assets: int, repaid_shares: int, *, caller: str
    ) -> tuple[int, int]:
        """
        Repay part of an unhealthy borrower's debt in exchange for collateral.

        Returns:
            (seized collateral assets, repaid loan assets)
        """
        market = self._require_market(params)
        self._exactly_one_zero(seized_assets, repaid_shares)
        self.accrue_interest(params)

        position = self._position(params.market_id, borrower)
        if self._is_healthy(params, market, position):
            raise LendingMarketError("position is healthy")

        price = self._prices[params.oracle]
        incentive = min(
            MAX_LIQUIDATION_INCENTIVE_FACTOR,
            w_div_down(WAD, WAD - w_mul_down(LIQUIDATION_CURSOR, WAD - params.liquidation_threshold)),
        )

        if seized_assets > 0:
            seized_quoted = mul_div_up(seized_assets, price, ORACLE_PRICE_SCALE)
            repaid_shares = to_shares_up(
                w_div_up(seized_quoted, incentive), market.total_borrow_assets, market.total_borrow_shares
            )
        else:
            seized_assets = mul_div_down(
                w_mul_down(
                    to_assets_down(repaid_shares, market.total_borrow_assets, market.total_borrow_shares), incentive
                ),
                ORACLE_PRICE_SCALE,
                price,
            )

        if position.borrow_shares < repaid_shares:
            raise LendingMarketError("repay exceeds borrow shares")
        if position.collateral < seized_assets:
            raise LendingMarketError("seize exceeds collateral")

        repaid_assets = to_assets_up(repaid_shares, market.total_borrow_assets, market.total_borrow_shares)
        position.borrow_shares -= repaid_shares
        market.total_borrow_shares -= repaid_shares
        market.total_borrow_assets = max(market.total_borrow_assets - repaid_assets, 0)
        position.collateral -= seized_assets

        if position.collateral == 0 and position.borrow_shares > 0:
            bad_debt_shares = position.borrow_shares
            bad_debt = min(
                market.total_borrow_assets,
                to_assets_up(bad_debt_shares, market.total_borrow_assets, market.total_borrow_shares),
            )
            market.total_borrow_assets -= bad_debt
            market.total_supply_assets -= bad_debt
            market.total_borrow_shares -= bad_debt_shares
            position.borrow_shares = 0

        self._bank.transfer(params.collateral_asset, self.address, caller, seized_assets)
        self._bank.transfer_from(params.loan_asset, self.address, caller, self.address, repaid_assets)
        logger.debug(
            "lending.liquidation",
            market_id=params.market_id,
            borrower=borrower,
            seized=seized_assets,
            repaid=repaid_assets,
        )
        return seized_assets, repaid_assets

    def set_authorization(self, authorized: str, status: bool, *, caller: str) -> None:
        if status:
            self._authorizations.add((caller, authorized))
        else:
            self._authorizations.discard((caller, authorized))

    # ------------------------------------------------------------------
    # Journal participation
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "markets": deepcopy(self._markets),
            "params": dict(self._params),
            "positions": deepcopy(self._positions),
            "authorizations": set(self._authorizations),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._markets = deepcopy(state["markets"])
        self._params = dict(state["params"])
        self._positions = deepcopy(state["positions"])
        self._authorizations = set(state["authorizations"])
