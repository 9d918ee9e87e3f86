"""Issuance and redemption callbacks for the leverage module.

The debt-issuance orchestrator calls these around mint and burn. Component
hooks move debt in proportion to the quantity being issued or redeemed but
leave position units untouched; the module hooks sync first so the units
the orchestrator reads are fresh. The post hooks run after mint or burn and
resync only when sync_after_component_hooks is set, since that is the first
point where balances and total supply agree again.
"""

from typing import TYPE_CHECKING

from basketlever.libraries.precise_math import precise_mul, precise_mul_ceil
from basketlever.services.ledger.adapter import PositionLedgerAdapter
from basketlever.services.ledger.interface import IBasketToken
from basketlever.services.leverage.errors import AuthorizationError, InvariantViolationError
from basketlever.services.leverage.models import ModuleSettings
from basketlever.system import LoggerFactory

if TYPE_CHECKING:  # pragma: no cover - only for type checkers
    from basketlever.services.leverage.engine import LeverageModule

logger = LoggerFactory.get_logger()


class IssuanceHooksMixin:
    """Hook surface the orchestrator resolves through the call router."""

    def _only_module(self: "LeverageModule", basket: IBasketToken, caller: str, operation: str) -> None:
        if not basket.is_initialized_module(caller):
            raise self._reject(AuthorizationError, "Only the module can call", operation, basket.address, caller=caller)
        if not self._controller.is_module(caller):
            raise self._reject(
                AuthorizationError, "Module must be enabled on controller", operation, basket.address, caller=caller
            )

    def _debt_unit(
        self: "LeverageModule", basket: IBasketToken, settings: ModuleSettings, component: str, operation: str
    ) -> int:
        if component != settings.loan_asset:
            raise self._reject(
                InvariantViolationError, "Debt component mismatch", operation, basket.address, component=component
            )
        unit = PositionLedgerAdapter(basket, self.address).external_unit(component)
        if unit >= 0:
            raise self._reject(InvariantViolationError, "Component must be negative", operation, basket.address, unit=unit)
        return unit

    def module_issue_hook(self: "LeverageModule", basket: IBasketToken, quantity: int, *, caller: str) -> None:
        self._only_module(basket, caller, "module_issue_hook")
        self.sync(basket)

    def module_redeem_hook(self: "LeverageModule", basket: IBasketToken, quantity: int, *, caller: str) -> None:
        self._only_module(basket, caller, "module_redeem_hook")
        self.sync(basket)

    def module_post_issue_hook(self: "LeverageModule", basket: IBasketToken, quantity: int, *, caller: str) -> None:
        """Called once the basket is minted; resyncs when sync_after_component_hooks is set."""
        self._only_module(basket, caller, "module_post_issue_hook")
        if self.config.sync_after_component_hooks:
            self.sync(basket)

    def module_post_redeem_hook(self: "LeverageModule", basket: IBasketToken, quantity: int, *, caller: str) -> None:
        """Called once the basket is burned and equity paid out; resyncs when configured."""
        self._only_module(basket, caller, "module_post_redeem_hook")
        if self.config.sync_after_component_hooks:
            self.sync(basket)

    def component_issue_hook(
        self: "LeverageModule",
        basket: IBasketToken,
        issue_quantity: int,
        component: str,
        is_equity: bool,
        *,
        caller: str,
    ) -> int:
        """
        Borrow the debt share of issue_quantity into the basket.

        The orchestrator then hands the borrowed loan asset to the recipient.
        Equity components are ignored.

        Returns:
            Loan asset borrowed (0 for equity)
        """
        operation = "component_issue_hook"
        self._only_module(basket, caller, operation)
        if is_equity:
            return 0

        settings = self._validate_initialized(basket, operation)
        unit = self._debt_unit(basket, settings, component, operation)
        notional = precise_mul(-unit, issue_quantity)

        with self._atomic():
            if notional > 0:
                self._borrow(basket, settings, notional)

        logger.debug("leverage.hook.issue", basket=basket.address, quantity=issue_quantity, borrowed=notional)
        return notional

    def component_redeem_hook(
        self: "LeverageModule",
        basket: IBasketToken,
        redeem_quantity: int,
        component: str,
        is_equity: bool,
        *,
        caller: str,
    ) -> int:
        """
        Repay the debt share of redeem_quantity from the basket's loan balance.

        Rounds up so the remaining supply never carries extra debt. Capped
        at the outstanding debt.

        Returns:
            Loan asset repaid (0 for equity)
        """
        operation = "component_redeem_hook"
        self._only_module(basket, caller, operation)
        if is_equity:
            return 0

        settings = self._validate_initialized(basket, operation)
        unit = self._debt_unit(basket, settings, component, operation)
        notional = precise_mul_ceil(-unit, redeem_quantity)

        with self._atomic():
            repaid = self._repay_debt(basket, settings, notional)

        logger.debug("leverage.hook.redeem", basket=basket.address, quantity=redeem_quantity, repaid=repaid)
        return repaid
