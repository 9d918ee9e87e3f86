"""Exchange adapter interface (Protocol)."""

from typing import Any, Protocol

from basketlever.services.chain.models import TradeCall


class IExchangeAdapter(Protocol):
    """Encodes a swap for one trading venue.

    The adapter never moves tokens itself: it names the spender that must be
    approved and returns the call the basket token executes.
    """

    def get_spender(self) -> str:
        """Address that must be approved to pull the source token."""
        ...

    def get_trade_calldata(
        self,
        src_token: str,
        dst_token: str,
        recipient: str,
        src_quantity: int,
        min_dst_quantity: int,
        route_data: Any,
    ) -> TradeCall:
        """Call that swaps src_quantity of src_token for at least min_dst_quantity of dst_token."""
        ...
