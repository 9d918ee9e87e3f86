"""Debt-aware issuance orchestrator.

Issuance pulls equity (positive units) from the issuer and hands debt
(negative External units) to the recipient; redemption does the reverse.
Modules owning External positions are called back first so they can borrow
or repay around the mint or burn, and once more after it completes.
"""

from dataclasses import dataclass, field
from typing import Any

from basketlever.libraries.precise_math import precise_mul, precise_mul_ceil
from basketlever.services.chain.bank import TokenBank
from basketlever.services.chain.router import CallRouter
from basketlever.services.controller.interface import IController
from basketlever.services.ledger.interface import IBasketToken
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


class IssuanceError(Exception):
    """Raised for rejected issuance or redemption calls."""


@dataclass
class RequiredUnits:
    """Notional amounts of each component for one issue or redeem."""

    components: list[str] = field(default_factory=list)
    equity: list[int] = field(default_factory=list)
    debt: list[int] = field(default_factory=list)


class DebtIssuanceModule:
    """
    Issues and redeems basket tokens with External debt positions.

    Example:
        >>> issuance = DebtIssuanceModule("0xdim", controller, bank, router)
        >>> issuance.initialize(basket, caller=basket.manager)
        >>> issuance.issue(basket, 10**17, "0xalice", caller="0xalice")
    """

    def __init__(self, address: str, controller: IController, bank: TokenBank, router: CallRouter) -> None:
        self.address = address
        self._controller = controller
        self._bank = bank
        self._router = router
        self._hooks: dict[str, list[str]] = {}
        router.register(self)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _valid_and_initialized(self, basket: IBasketToken) -> None:
        if not self._controller.is_set(basket.address) or not basket.is_initialized_module(self.address):
            raise IssuanceError("Must be a valid and initialized SetToken")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, basket: IBasketToken, *, caller: str) -> None:
        if caller != basket.manager:
            raise IssuanceError("Must be the SetToken manager")
        if not self._controller.is_set(basket.address):
            raise IssuanceError("Must be controller-enabled SetToken")
        if not basket.is_pending_module(self.address):
            raise IssuanceError("Must be pending initialization")
        basket.initialize_module(caller=self.address)
        self._hooks[basket.address] = []
        logger.debug("issuance.initialized", basket=basket.address)

    def remove_module(self, *, caller: str) -> None:
        if self._hooks.get(caller):
            raise IssuanceError("Registered modules must be removed.")
        self._hooks.pop(caller, None)

    def register_to_issuance_module(self, basket: IBasketToken, *, caller: str) -> None:
        if not basket.is_initialized_module(caller):
            raise IssuanceError("Only the module can call")
        self._valid_and_initialized(basket)
        hooks = self._hooks.setdefault(basket.address, [])
        if caller in hooks:
            raise IssuanceError("Module already registered.")
        hooks.append(caller)
        logger.debug("issuance.hook.registered", basket=basket.address, module=caller)

    def unregister_from_issuance_module(self, basket: IBasketToken, *, caller: str) -> None:
        hooks = self._hooks.get(basket.address, [])
        if caller not in hooks:
            raise IssuanceError("Module not registered.")
        hooks.remove(caller)
        logger.debug("issuance.hook.unregistered", basket=basket.address, module=caller)

    def is_registered(self, basket: IBasketToken, module: str) -> bool:
        return module in self._hooks.get(basket.address, [])

    def get_module_issuance_hooks(self, basket: IBasketToken) -> list[str]:
        return list(self._hooks.get(basket.address, []))

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def get_required_component_issuance_units(self, basket: IBasketToken, quantity: int) -> RequiredUnits:
        """Equity rounded up and debt rounded down, in the basket's favour."""
        return self._required_units(basket, quantity, is_issue=True)

    def get_required_component_redemption_units(self, basket: IBasketToken, quantity: int) -> RequiredUnits:
        """Equity rounded down and debt rounded up, in the basket's favour."""
        return self._required_units(basket, quantity, is_issue=False)

    def _required_units(self, basket: IBasketToken, quantity: int, is_issue: bool) -> RequiredUnits:
        required = RequiredUnits()
        for component in basket.get_components():
            equity_unit = basket.get_default_position_real_unit(component)
            debt_unit = 0
            for module in basket.get_external_position_modules(component):
                unit = basket.get_external_position_real_unit(component, module)
                if unit > 0:
                    equity_unit += unit
                else:
                    debt_unit += -unit

            if is_issue:
                equity = precise_mul_ceil(equity_unit, quantity)
                debt = precise_mul(debt_unit, quantity)
            else:
                equity = precise_mul(equity_unit, quantity)
                debt = precise_mul_ceil(debt_unit, quantity)

            required.components.append(component)
            required.equity.append(equity)
            required.debt.append(debt)
        return required

    # ------------------------------------------------------------------
    # Issue / redeem
    # ------------------------------------------------------------------

    def issue(self, basket: IBasketToken, quantity: int, to: str, *, caller: str) -> RequiredUnits:
        """
        Mint quantity basket units to `to`.

        The issuer (caller) must have approved this module for every equity
        amount; debt amounts are paid out to `to`.
        """
        if quantity <= 0:
            raise IssuanceError("Issue quantity must be > 0")
        self._valid_and_initialized(basket)

        for module in self.get_module_issuance_hooks(basket):
            self._router.resolve(module).module_issue_hook(basket, quantity, caller=self.address)

        required = self.get_required_component_issuance_units(basket, quantity)

        for component, equity in zip(required.components, required.equity):
            if equity > 0:
                self._bank.transfer_from(component, self.address, caller, basket.address, equity)
                self._execute_external_position_hooks(basket, quantity, component, is_issue=True, is_equity=True)

        for component, debt in zip(required.components, required.debt):
            if debt > 0:
                self._execute_external_position_hooks(basket, quantity, component, is_issue=True, is_equity=False)
                basket.invoke_transfer(component, to, debt, caller=self.address)

        basket.mint(to, quantity, caller=self.address)
        for module in self.get_module_issuance_hooks(basket):
            self._router.resolve(module).module_post_issue_hook(basket, quantity, caller=self.address)

        logger.info("issuance.issued", basket=basket.address, quantity=quantity, to=to)
        return required

    def redeem(self, basket: IBasketToken, quantity: int, to: str, *, caller: str) -> RequiredUnits:
        """
        Burn quantity basket units held by caller and send equity to `to`.

        The redeemer must have approved this module for every debt amount.
        """
        if quantity <= 0:
            raise IssuanceError("Redeem quantity must be > 0")
        self._valid_and_initialized(basket)

        for module in self.get_module_issuance_hooks(basket):
            self._router.resolve(module).module_redeem_hook(basket, quantity, caller=self.address)

        required = self.get_required_component_redemption_units(basket, quantity)
        basket.burn(caller, quantity, caller=self.address)

        for component, debt in zip(required.components, required.debt):
            if debt > 0:
                self._bank.transfer_from(component, self.address, caller, basket.address, debt)
                self._execute_external_position_hooks(basket, quantity, component, is_issue=False, is_equity=False)

        for component, equity in zip(required.components, required.equity):
            if equity > 0:
                self._execute_external_position_hooks(basket, quantity, component, is_issue=False, is_equity=True)
                basket.invoke_transfer(component, to, equity, caller=self.address)

        for module in self.get_module_issuance_hooks(basket):
            self._router.resolve(module).module_post_redeem_hook(basket, quantity, caller=self.address)

        logger.info("issuance.redeemed", basket=basket.address, quantity=quantity, to=to)
        return required

    def _execute_external_position_hooks(
        self, basket: IBasketToken, quantity: int, component: str, is_issue: bool, is_equity: bool
    ) -> None:
        for module in basket.get_external_position_modules(component):
            hook: Any = self._router.resolve(module)
            if is_issue:
                hook.component_issue_hook(basket, quantity, component, is_equity, caller=self.address)
            else:
                hook.component_redeem_hook(basket, quantity, component, is_equity, caller=self.address)

    # ------------------------------------------------------------------
    # Journal participation
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._hooks.items()}

    def restore(self, state: dict[str, list[str]]) -> None:
        self._hooks = {k: list(v) for k, v in state.items()}
