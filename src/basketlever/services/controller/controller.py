"""In-memory controller."""

from copy import deepcopy
from typing import Any

from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()

PROTOCOL_TRADE_FEE_INDEX = 0
MAX_FEE_BPS = 10_000


class ControllerError(Exception):
    pass


class Controller:
    """Owner-administered list of modules, basket tokens and fees.

    Attributes:
        address: Controller address
        owner: Address allowed to mutate controller state
    """

    def __init__(self, address: str, owner: str, fee_recipient: str) -> None:
        self.address = address
        self.owner = owner
        self._fee_recipient = fee_recipient
        self._modules: set[str] = set()
        self._sets: set[str] = set()
        self._module_fees: dict[tuple[str, int], int] = {}

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise ControllerError("Only owner")

    def add_module(self, module: str, *, caller: str) -> None:
        self._only_owner(caller)
        if module in self._modules:
            raise ControllerError("Module already exists")
        self._modules.add(module)
        logger.debug("controller.module.added", module=module)

    def remove_module(self, module: str, *, caller: str) -> None:
        self._only_owner(caller)
        if module not in self._modules:
            raise ControllerError("Module does not exist")
        self._modules.discard(module)
        logger.debug("controller.module.removed", module=module)

    def add_set(self, basket: str, *, caller: str) -> None:
        self._only_owner(caller)
        if basket in self._sets:
            raise ControllerError("Set already exists")
        self._sets.add(basket)
        logger.debug("controller.set.added", basket=basket)

    def remove_set(self, basket: str, *, caller: str) -> None:
        self._only_owner(caller)
        if basket not in self._sets:
            raise ControllerError("Set does not exist")
        self._sets.discard(basket)
        logger.debug("controller.set.removed", basket=basket)

    def edit_fee(self, module: str, fee_type: int, fee_bps: int, *, caller: str) -> None:
        self._only_owner(caller)
        if fee_bps < 0 or fee_bps > MAX_FEE_BPS:
            raise ControllerError(f"Fee must be within [0, {MAX_FEE_BPS}] bps, got {fee_bps}")
        self._module_fees[(module, fee_type)] = fee_bps

    def edit_fee_recipient(self, recipient: str, *, caller: str) -> None:
        self._only_owner(caller)
        self._fee_recipient = recipient

    def is_module(self, module: str) -> bool:
        return module in self._modules

    def is_set(self, basket: str) -> bool:
        return basket in self._sets

    def fee_recipient(self) -> str:
        return self._fee_recipient

    def get_module_fee(self, module: str, fee_type: int) -> int:
        return self._module_fees.get((module, fee_type), 0)

    def snapshot(self) -> dict[str, Any]:
        return {
            "modules": set(self._modules),
            "sets": set(self._sets),
            "fees": dict(self._module_fees),
            "fee_recipient": self._fee_recipient,
        }

    def restore(self, state: dict[str, Any]) -> None:
        state = deepcopy(state)
        self._modules = state["modules"]
        self._sets = state["sets"]
        self._module_fees = state["fees"]
        self._fee_recipient = state["fee_recipient"]
