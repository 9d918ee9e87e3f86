"""Basket token interface (Protocol)."""

from typing import Any, Protocol

from basketlever.services.chain.models import CallPayload
from basketlever.services.ledger.models import Position


class IBasketToken(Protocol):
    """Per-unit position ledger with module-gated writes and invoke.

    Core responsibilities:
    - Track total supply and per-unit Default / External positions
    - Track module lifecycle (pending, initialized)
    - Execute external calls on behalf of initialized modules

    NOT responsible for:
    - Deciding position values (modules do this)
    - Issuance/redemption flow (the issuance orchestrator does this)
    """

    address: str
    manager: str

    def total_supply(self) -> int: ...

    def get_positions(self) -> list[Position]: ...

    def get_components(self) -> list[str]: ...

    def is_component(self, component: str) -> bool: ...

    def get_default_position_real_unit(self, component: str) -> int: ...

    def get_external_position_real_unit(self, component: str, module: str) -> int: ...

    def get_external_position_modules(self, component: str) -> list[str]: ...

    def is_external_position_module(self, component: str, module: str) -> bool: ...

    def add_component(self, component: str, *, caller: str) -> None: ...

    def remove_component(self, component: str, *, caller: str) -> None: ...

    def edit_default_position_unit(self, component: str, unit: int, *, caller: str) -> None: ...

    def add_external_position_module(self, component: str, module: str, *, caller: str) -> None: ...

    def remove_external_position_module(self, component: str, module: str, *, caller: str) -> None: ...

    def edit_external_position_unit(self, component: str, module: str, unit: int, *, caller: str) -> None: ...

    def is_initialized_module(self, module: str) -> bool: ...

    def is_pending_module(self, module: str) -> bool: ...

    def initialize_module(self, *, caller: str) -> None: ...

    def invoke(self, target: str, value: int, payload: CallPayload, *, caller: str) -> Any: ...

    def invoke_approve(self, asset: str, spender: str, amount: int, *, caller: str) -> None: ...

    def invoke_transfer(self, asset: str, to: str, amount: int, *, caller: str) -> None: ...

    def balance_of(self, asset: str) -> int: ...
