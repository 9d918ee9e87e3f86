"""Simulated trading venue and its exchange adapter."""

from typing import Any, Callable, Optional

from basketlever.services.chain.bank import TokenBank
from basketlever.services.chain.models import CallPayload, TradeCall
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


class ExchangeError(Exception):
    """Raised when a venue rejects a trade."""


class SimulatedVenue:
    """
    Fixed-rate swap venue funded from its own token balances.

    A rate is stored per direction as (numerator, denominator):
    ``out = amount_in * numerator // denominator``. An optional
    ``fee_bps`` is deducted from the output.

    An ``on_swap`` callback, when set, runs after the venue pulls the input
    and before it pays out. Tests use it to model venues that call back into
    the caller mid-trade.

    Example:
        >>> venue = SimulatedVenue("0xvenue", bank)
        >>> venue.set_rate("0xusdc", "0xwsteth", 10**18, 3000 * 10**6)  # 3000 USDC per wstETH
    """

    EXTERNAL_METHODS = frozenset({"swap"})

    def __init__(self, address: str, bank: TokenBank, fee_bps: int = 0) -> None:
        if fee_bps < 0 or fee_bps >= 10_000:
            raise ValueError(f"fee_bps must be within [0, 10000), got {fee_bps}")
        self.address = address
        self.fee_bps = fee_bps
        self._bank = bank
        self._rates: dict[tuple[str, str], tuple[int, int]] = {}
        self.on_swap: Optional[Callable[[dict[str, Any]], None]] = None
        self.last_route: Any = None

    def set_rate(self, src_token: str, dst_token: str, numerator: int, denominator: int) -> None:
        if numerator < 0 or denominator <= 0:
            raise ValueError("Rate requires numerator >= 0 and denominator > 0")
        self._rates[(src_token, dst_token)] = (numerator, denominator)

    def quote(self, src_token: str, dst_token: str, amount_in: int) -> int:
        try:
            numerator, denominator = self._rates[(src_token, dst_token)]
        except KeyError:
            raise ExchangeError(f"No route from {src_token} to {dst_token}") from None
        gross = amount_in * numerator // denominator
        return gross - gross * self.fee_bps // 10_000

    def swap(
        self,
        src_token: str,
        dst_token: str,
        amount_in: int,
        min_amount_out: int,
        recipient: str,
        route: Any = None,
        *,
        caller: str,
    ) -> int:
        if amount_in <= 0:
            raise ExchangeError("Zero input amount")
        amount_out = self.quote(src_token, dst_token, amount_in)
        if amount_out < min_amount_out:
            logger.debug(
                "exchange.trade.rejected",
                venue=self.address,
                amount_out=amount_out,
                min_amount_out=min_amount_out,
            )
            raise ExchangeError(f"Insufficient output amount: {amount_out} < {min_amount_out}")

        self._bank.transfer_from(src_token, self.address, caller, self.address, amount_in)
        self.last_route = route
        if self.on_swap is not None:
            self.on_swap(
                {"caller": caller, "src_token": src_token, "dst_token": dst_token, "amount_in": amount_in}
            )
        self._bank.transfer(dst_token, self.address, recipient, amount_out)

        logger.debug(
            "exchange.trade.executed",
            venue=self.address,
            src_token=src_token,
            dst_token=dst_token,
            amount_in=amount_in,
            amount_out=amount_out,
        )
        return amount_out


class SimulatedExchangeAdapter:
    """Adapter that encodes swaps for a SimulatedVenue.

    ``route_data`` is passed through to the venue untouched.
    """

    def __init__(self, venue: SimulatedVenue) -> None:
        self.venue = venue

    def get_spender(self) -> str:
        return self.venue.address

    def get_trade_calldata(
        self,
        src_token: str,
        dst_token: str,
        recipient: str,
        src_quantity: int,
        min_dst_quantity: int,
        route_data: Any,
    ) -> TradeCall:
        return TradeCall(
            target=self.venue.address,
            value=0,
            payload=CallPayload(
                method="swap",
                kwargs={
                    "src_token": src_token,
                    "dst_token": dst_token,
                    "amount_in": src_quantity,
                    "min_amount_out": min_dst_quantity,
                    "recipient": recipient,
                    "route": route_data,
                },
            ),
        )
