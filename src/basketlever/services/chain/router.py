"""Dispatches external calls to in-memory contracts by address."""

from typing import Any, Protocol

from basketlever.services.chain.models import CallPayload, TradeCall
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


class CallError(Exception):
    """Raised when a call cannot be dispatched."""


class ICallable(Protocol):
    """A contract reachable through the router.

    EXTERNAL_METHODS lists the method names callers may invoke. Each such
    method accepts a keyword-only ``caller`` argument carrying the sender.
    """

    address: str
    EXTERNAL_METHODS: frozenset[str]


class CallRouter:
    """Address book plus call dispatch.

    Example:
        >>> router = CallRouter()
        >>> router.register(venue)
        >>> router.call("0xbasket", TradeCall(target=venue.address, payload=CallPayload(method="swap", kwargs={...})))
    """

    def __init__(self) -> None:
        self._contracts: dict[str, Any] = {}

    def register(self, contract: Any) -> None:
        address = getattr(contract, "address", None)
        if not address:
            raise CallError(f"{type(contract).__name__} has no address")
        if address in self._contracts and self._contracts[address] is not contract:
            raise CallError(f"Address already registered: {address}")
        self._contracts[address] = contract

    def resolve(self, address: str) -> Any:
        try:
            return self._contracts[address]
        except KeyError:
            raise CallError(f"No contract at address {address}") from None

    def is_contract(self, address: str) -> bool:
        return address in self._contracts

    def call(self, sender: str, call: TradeCall) -> Any:
        """
        Execute call on behalf of sender.

        Args:
            sender: Address the target sees as caller
            call: Target, value and payload

        Returns:
            Whatever the target method returns

        Raises:
            CallError: Unknown target, non-zero value, or method not exposed
        """
        if call.value != 0:
            raise CallError(f"Native value transfers are not supported (value={call.value})")

        contract = self.resolve(call.target)
        payload: CallPayload = call.payload
        exposed = getattr(contract, "EXTERNAL_METHODS", frozenset())
        if payload.method not in exposed:
            raise CallError(f"{type(contract).__name__} does not expose '{payload.method}'")

        logger.debug(
            "chain.call",
            sender=sender,
            target=call.target,
            method=payload.method,
        )
        return getattr(contract, payload.method)(**payload.kwargs, caller=sender)
