"""Module governance: allow-listing, orchestrator registration and removal."""

from typing import TYPE_CHECKING, Any, Iterable

from basketlever.events.events import (
    AllowListUpdatedEvent,
    AnySetAllowedUpdatedEvent,
    IssuanceModuleRegisteredEvent,
    ModuleRemovedEvent,
)
from basketlever.services.issuance.interface import IDebtIssuanceModule
from basketlever.services.ledger.adapter import PositionLedgerAdapter, get_unit_from_notional
from basketlever.services.ledger.interface import IBasketToken
from basketlever.services.ledger.models import PositionKind
from basketlever.services.leverage.errors import AuthorizationError, StatePreconditionError
from basketlever.system import LoggerFactory

if TYPE_CHECKING:  # pragma: no cover - only for type checkers
    from basketlever.services.leverage.engine import LeverageModule

logger = LoggerFactory.get_logger()


class AllowList:
    """
    Baskets permitted to initialize the module.

    One table (basket address -> bool) plus an override flag. Every mutation
    bumps ``version``; the module records the version it read at initialize
    and never re-checks the list afterwards.
    """

    def __init__(self, allowed: Iterable[str] = (), any_set_allowed: bool = False) -> None:
        self._allowed: dict[str, bool] = {address: True for address in allowed}
        self.any_set_allowed = any_set_allowed
        self.version = 0

    def is_allowed(self, basket_address: str) -> bool:
        return self.any_set_allowed or self._allowed.get(basket_address, False)

    def is_listed(self, basket_address: str) -> bool:
        """Whether the table itself allows basket_address (ignores the override)."""
        return self._allowed.get(basket_address, False)

    def set_allowed(self, basket_address: str, status: bool) -> int:
        self._allowed[basket_address] = status
        self.version += 1
        return self.version

    def set_any_set_allowed(self, any_set_allowed: bool) -> int:
        self.any_set_allowed = any_set_allowed
        self.version += 1
        return self.version

    def snapshot(self) -> dict[str, Any]:
        return {"allowed": dict(self._allowed), "any": self.any_set_allowed, "version": self.version}

    def restore(self, state: dict[str, Any]) -> None:
        self._allowed = dict(state["allowed"])
        self.any_set_allowed = state["any"]
        self.version = state["version"]


class GovernanceMixin:
    """Owner and manager administration of a LeverageModule."""

    def _only_owner(self: "LeverageModule", caller: str, operation: str) -> None:
        if caller != self.owner:
            raise self._reject(AuthorizationError, "Only owner", operation, None, caller=caller)

    def update_allowed_set_token(self: "LeverageModule", basket_address: str, status: bool, *, caller: str) -> int:
        """
        Allow or disallow a basket from initializing the module.

        Only baskets that are controller-enabled or already on the list can
        be updated. Baskets already initialized are unaffected.

        Returns:
            New allow-list version
        """
        operation = "update_allowed_set_token"
        self._only_owner(caller, operation)
        if not (self._controller.is_set(basket_address) or self._allow_list.is_listed(basket_address)):
            raise self._reject(StatePreconditionError, "Invalid SetToken", operation, basket_address)

        version = self._allow_list.set_allowed(basket_address, status)
        logger.info("leverage.allow_list.updated", basket=basket_address, allowed=status, version=version)
        self._publish(AllowListUpdatedEvent(basket_token=basket_address, allowed=status, version=version))
        return version

    def update_any_set_allowed(self: "LeverageModule", any_set_allowed: bool, *, caller: str) -> int:
        """Toggle the override that lets any basket initialize. Returns the new version."""
        self._only_owner(caller, "update_any_set_allowed")
        version = self._allow_list.set_any_set_allowed(any_set_allowed)
        logger.info("leverage.allow_list.any_set_allowed", any_set_allowed=any_set_allowed, version=version)
        self._publish(AnySetAllowedUpdatedEvent(any_set_allowed=any_set_allowed, version=version))
        return version

    def register_to_module(
        self: "LeverageModule", basket: IBasketToken, debt_issuance_module: IDebtIssuanceModule, *, caller: str
    ) -> None:
        """Register this module's hooks on an additional debt-issuance orchestrator."""
        operation = "register_to_module"
        settings = self._validate_manager_call(basket, caller, operation)
        if not basket.is_initialized_module(debt_issuance_module.address):
            raise self._reject(StatePreconditionError, "Issuance not initialized", operation, basket.address)

        with self._atomic():
            debt_issuance_module.register_to_issuance_module(basket, caller=self.address)
            settings.issuance_modules[debt_issuance_module.address] = debt_issuance_module

        logger.info("leverage.issuance_module.registered", basket=basket.address, issuance_module=debt_issuance_module.address)
        self._publish(
            IssuanceModuleRegisteredEvent(basket_token=basket.address, issuance_module=debt_issuance_module.address)
        )

    def remove_module(self: "LeverageModule", *, caller: str) -> None:
        """
        Detach the module from the calling basket token.

        Fails while any borrow is outstanding. On success the collateral is
        withdrawn from the lending market back to the basket as a Default
        position, hooks are unregistered from every orchestrator and the
        basket's settings are deleted.
        """
        operation = "remove_module"
        settings = self._settings.get(caller)
        if settings is None:
            raise self._reject(StatePreconditionError, "Must be a valid and initialized SetToken", operation, caller)
        basket = settings.basket
        params = settings.market_params

        position = self._lending.position(settings.market_id, basket.address)
        if position.borrow_shares > 0:
            raise self._reject(
                StatePreconditionError,
                "Borrow balance must be 0",
                operation,
                basket.address,
                borrow_shares=position.borrow_shares,
            )

        with self._atomic():
            self._lending.accrue_interest(params)
            if position.collateral > 0:
                self._withdraw_collateral(basket, settings, position.collateral)

            ledger = PositionLedgerAdapter(basket, self.address)
            ledger.write_position(settings.loan_asset, PositionKind.EXTERNAL, self.address, 0)
            total_supply = basket.total_supply()
            if total_supply > 0:
                balance = basket.balance_of(settings.collateral_asset)
                ledger.write_position(
                    settings.collateral_asset,
                    PositionKind.DEFAULT,
                    None,
                    get_unit_from_notional(balance, total_supply),
                )
            ledger.write_position(settings.collateral_asset, PositionKind.EXTERNAL, self.address, 0)

            for issuance_module in settings.issuance_modules.values():
                issuance_module.unregister_from_issuance_module(basket, caller=self.address)
            del self._settings[basket.address]

        logger.info("leverage.module.removed", basket=basket.address, market_id=settings.market_id)
        self._publish(ModuleRemovedEvent(basket_token=basket.address, market_id=settings.market_id))
