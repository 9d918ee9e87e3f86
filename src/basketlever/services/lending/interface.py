"""Lending market interface (Protocol)."""

from typing import Protocol

from basketlever.services.lending.models import LendingPosition, MarketParams, MarketState


class ILendingMarket(Protocol):
    """Isolated-market lending pool.

    Every state-changing method takes a keyword-only ``caller`` (the account
    executing the call). Borrow and repay take exactly one of assets or
    shares as non-zero and return the (assets, shares) actually moved.
    """

    address: str

    def accrue_interest(self, params: MarketParams) -> None: ...

    def supply_collateral(self, params: MarketParams, assets: int, on_behalf: str, *, caller: str) -> None: ...

    def withdraw_collateral(
        self, params: MarketParams, assets: int, on_behalf: str, receiver: str, *, caller: str
    ) -> None: ...

    def borrow(
        self, params: MarketParams, assets: int, shares: int, on_behalf: str, receiver: str, *, caller: str
    ) -> tuple[int, int]: ...

    def repay(
        self, params: MarketParams, assets: int, shares: int, on_behalf: str, *, caller: str
    ) -> tuple[int, int]: ...

    def position(self, market_id: str, account: str) -> LendingPosition: ...

    def market(self, market_id: str) -> MarketState: ...

    def id_to_market_params(self, market_id: str) -> MarketParams: ...
