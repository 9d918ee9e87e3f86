"""In-memory basket token.

Holds the per-unit position ledger, module lifecycle and total supply of one
basket token. Balances live in the shared TokenBank, with the basket's own
address registered there as an 18-decimal asset.
"""

from copy import deepcopy
from typing import Any

from basketlever.services.chain.bank import TokenBank
from basketlever.services.chain.models import CallPayload, TradeCall
from basketlever.services.chain.router import CallRouter
from basketlever.services.controller.interface import IController
from basketlever.services.ledger.models import ModuleState, Position, PositionKind
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()

BASKET_DECIMALS = 18


class BasketTokenError(Exception):
    """Raised for rejected basket-token operations."""


class BasketToken:
    """
    Basket token with module-gated position storage.

    Components keep insertion order; get_positions() lists, per component,
    the Default entry (if non-zero) followed by External entries in module
    registration order.

    Example:
        >>> basket = BasketToken("0xbasket", "0xmanager", bank, router, controller,
        ...                      components=["0xwsteth"], units=[10**18])
        >>> basket.add_module(module.address, caller="0xmanager")
    """

    def __init__(
        self,
        address: str,
        manager: str,
        bank: TokenBank,
        router: CallRouter,
        controller: IController,
        components: list[str] | None = None,
        units: list[int] | None = None,
        name: str = "Basket",
    ) -> None:
        components = components or []
        units = units or []
        if len(components) != len(units):
            raise BasketTokenError("Components and units must be equal length")
        if len(set(components)) != len(components):
            raise BasketTokenError("Duplicate components")

        self.address = address
        self.manager = manager
        self.name = name
        self._bank = bank
        self._router = router
        self._controller = controller

        self._components: list[str] = []
        self._default_units: dict[str, int] = {}
        self._external_units: dict[str, dict[str, int]] = {}
        self._module_states: dict[str, ModuleState] = {}

        for component, unit in zip(components, units):
            if unit <= 0:
                raise BasketTokenError(f"Initial unit must be positive for {component}")
            self._components.append(component)
            self._default_units[component] = unit

        bank.register_asset(address, BASKET_DECIMALS, symbol=name)
        router.register(self)

    # ------------------------------------------------------------------
    # Access control
    # ------------------------------------------------------------------

    def _only_manager(self, caller: str) -> None:
        if caller != self.manager:
            raise BasketTokenError("Only manager can call")

    def _only_module(self, caller: str) -> None:
        if self._module_states.get(caller) != ModuleState.INITIALIZED:
            raise BasketTokenError("Only the module can call")
        if not self._controller.is_module(caller):
            raise BasketTokenError("Module must be enabled on controller")

    # ------------------------------------------------------------------
    # Module lifecycle
    # ------------------------------------------------------------------

    def add_module(self, module: str, *, caller: str) -> None:
        self._only_manager(caller)
        if self._module_states.get(module, ModuleState.NONE) != ModuleState.NONE:
            raise BasketTokenError("Module must not be added")
        if not self._controller.is_module(module):
            raise BasketTokenError("Must be enabled module")
        self._module_states[module] = ModuleState.PENDING
        logger.debug("basket.module.added", basket=self.address, module=module)

    def remove_pending_module(self, module: str, *, caller: str) -> None:
        self._only_manager(caller)
        if self._module_states.get(module) != ModuleState.PENDING:
            raise BasketTokenError("Module must be pending")
        del self._module_states[module]

    def initialize_module(self, *, caller: str) -> None:
        if self._module_states.get(caller) != ModuleState.PENDING:
            raise BasketTokenError("Module must be pending")
        self._module_states[caller] = ModuleState.INITIALIZED
        logger.debug("basket.module.initialized", basket=self.address, module=caller)

    def remove_module(self, module: str, *, caller: str) -> None:
        """Detach an initialized module; the module's own remove_module() runs first and may veto."""
        self._only_manager(caller)
        if self._module_states.get(module) != ModuleState.INITIALIZED:
            raise BasketTokenError("Module must be added")
        self._router.resolve(module).remove_module(caller=self.address)
        del self._module_states[module]
        logger.debug("basket.module.removed", basket=self.address, module=module)

    def is_initialized_module(self, module: str) -> bool:
        return self._module_states.get(module) == ModuleState.INITIALIZED

    def is_pending_module(self, module: str) -> bool:
        return self._module_states.get(module) == ModuleState.PENDING

    def get_modules(self) -> list[str]:
        return [m for m, s in self._module_states.items() if s == ModuleState.INITIALIZED]

    def set_manager(self, manager: str, *, caller: str) -> None:
        self._only_manager(caller)
        self.manager = manager

    # ------------------------------------------------------------------
    # Supply
    # ------------------------------------------------------------------

    def total_supply(self) -> int:
        return self._bank.total_supply(self.address)

    def mint(self, to: str, quantity: int, *, caller: str) -> None:
        self._only_module(caller)
        self._bank.mint(self.address, to, quantity)

    def burn(self, holder: str, quantity: int, *, caller: str) -> None:
        self._only_module(caller)
        self._bank.burn(self.address, holder, quantity)

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def get_components(self) -> list[str]:
        return list(self._components)

    def is_component(self, component: str) -> bool:
        return component in self._components

    def get_default_position_real_unit(self, component: str) -> int:
        return self._default_units.get(component, 0)

    def get_external_position_real_unit(self, component: str, module: str) -> int:
        return self._external_units.get(component, {}).get(module, 0)

    def get_external_position_modules(self, component: str) -> list[str]:
        return list(self._external_units.get(component, {}))

    def is_external_position_module(self, component: str, module: str) -> bool:
        return module in self._external_units.get(component, {})

    def get_positions(self) -> list[Position]:
        positions: list[Position] = []
        for component in self._components:
            default_unit = self._default_units.get(component, 0)
            if default_unit > 0:
                positions.append(Position(component=component, kind=PositionKind.DEFAULT, unit=default_unit))
            for module, unit in self._external_units.get(component, {}).items():
                positions.append(Position(component=component, kind=PositionKind.EXTERNAL, module=module, unit=unit))
        return positions

    def add_component(self, component: str, *, caller: str) -> None:
        self._only_module(caller)
        if component in self._components:
            raise BasketTokenError("Must not be component")
        self._components.append(component)

    def remove_component(self, component: str, *, caller: str) -> None:
        self._only_module(caller)
        if component not in self._components:
            raise BasketTokenError("Must be component")
        self._components.remove(component)

    def edit_default_position_unit(self, component: str, unit: int, *, caller: str) -> None:
        self._only_module(caller)
        if unit < 0:
            raise BasketTokenError(f"Default unit cannot be negative, got {unit}")
        if unit == 0:
            self._default_units.pop(component, None)
        else:
            self._default_units[component] = unit

    def add_external_position_module(self, component: str, module: str, *, caller: str) -> None:
        self._only_module(caller)
        modules = self._external_units.setdefault(component, {})
        if module in modules:
            raise BasketTokenError("Module already added")
        modules[module] = 0

    def remove_external_position_module(self, component: str, module: str, *, caller: str) -> None:
        self._only_module(caller)
        modules = self._external_units.get(component, {})
        if module not in modules:
            raise BasketTokenError("Module not an external position module")
        del modules[module]
        if not modules:
            self._external_units.pop(component, None)

    def edit_external_position_unit(self, component: str, module: str, unit: int, *, caller: str) -> None:
        self._only_module(caller)
        modules = self._external_units.get(component)
        if modules is None or module not in modules:
            raise BasketTokenError("Module not an external position module")
        modules[module] = unit

    # ------------------------------------------------------------------
    # Invoke
    # ------------------------------------------------------------------

    def invoke(self, target: str, value: int, payload: CallPayload, *, caller: str) -> Any:
        self._only_module(caller)
        return self._router.call(self.address, TradeCall(target=target, value=value, payload=payload))

    def invoke_approve(self, asset: str, spender: str, amount: int, *, caller: str) -> None:
        self._only_module(caller)
        self._bank.approve(asset, self.address, spender, amount)

    def invoke_transfer(self, asset: str, to: str, amount: int, *, caller: str) -> None:
        self._only_module(caller)
        if amount == 0:
            return
        self._bank.transfer(asset, self.address, to, amount)

    def balance_of(self, asset: str) -> int:
        return self._bank.balance_of(asset, self.address)

    # ------------------------------------------------------------------
    # Journal participation
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "components": list(self._components),
            "default_units": dict(self._default_units),
            "external_units": deepcopy(self._external_units),
            "module_states": dict(self._module_states),
            "manager": self.manager,
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._components = list(state["components"])
        self._default_units = dict(state["default_units"])
        self._external_units = deepcopy(state["external_units"])
        self._module_states = dict(state["module_states"])
        self.manager = state["manager"]
