"""Position Ledger Adapter.

Read/write facade over a basket token's position storage on behalf of one
module. Translates between notional token amounts and per-unit position
values (1e18 scale) using the basket's total supply, and keeps the
component list consistent: a component is listed while it has a non-zero
Default unit or any External entry, and a zero External unit is never
stored.
"""

from basketlever.libraries.precise_math import (
    check_int256,
    check_uint256,
    precise_div,
    precise_div_ceil,
    precise_mul,
    precise_mul_signed,
)
from basketlever.services.ledger.interface import IBasketToken
from basketlever.services.ledger.models import PositionKind
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


def get_notional_from_unit(unit: int, total_supply: int) -> int:
    """unit * total_supply / 1e18, truncated toward zero."""
    return precise_mul_signed(unit, total_supply)


def get_unit_from_notional(notional: int, total_supply: int, round_up: bool = False) -> int:
    """
    notional * 1e18 / total_supply.

    Args:
        notional: Non-negative token amount
        total_supply: Basket total supply (must be > 0)
        round_up: Ceil instead of floor

    Raises:
        ZeroDivisionError: If total_supply is 0
        MathOverflowError: If notional is negative or the result overflows
    """
    if total_supply == 0:
        raise ZeroDivisionError("Cannot derive a unit with zero total supply")
    if round_up:
        return check_int256(precise_div_ceil(notional, total_supply))
    return check_int256(precise_div(notional, total_supply))


class PositionLedgerAdapter:
    """
    Position reads and writes for one (basket token, module) pair.

    Attributes:
        basket: The basket token being edited
        module: Address of the module performing the writes

    Example:
        >>> ledger = PositionLedgerAdapter(basket, module.address)
        >>> ledger.write_position(loan_asset, PositionKind.EXTERNAL, module.address, -1000 * 10**6)
        >>> ledger.external_unit(loan_asset, module.address)
        -1000000000
    """

    def __init__(self, basket: IBasketToken, module: str) -> None:
        self.basket = basket
        self.module = module

    get_notional_from_unit = staticmethod(get_notional_from_unit)
    get_unit_from_notional = staticmethod(get_unit_from_notional)

    def default_unit(self, component: str) -> int:
        return self.basket.get_default_position_real_unit(component)

    def external_unit(self, component: str, module: str | None = None) -> int:
        return self.basket.get_external_position_real_unit(component, module or self.module)

    def write_position(self, component: str, kind: PositionKind, module: str | None, unit: int) -> None:
        """
        Set one position entry; idempotent.

        DEFAULT: unit must be non-negative; zero removes the default unit.
        EXTERNAL: zero removes the (component, module) entry entirely.
        """
        check_int256(unit)
        if kind == PositionKind.DEFAULT:
            self._edit_default(component, unit)
        else:
            if not module:
                raise ValueError("External positions require a module")
            self._edit_external(component, module, unit)

    def _edit_default(self, component: str, unit: int) -> None:
        check_uint256(unit)
        basket = self.basket
        has_default = basket.get_default_position_real_unit(component) > 0
        has_external = bool(basket.get_external_position_modules(component))

        if not has_default and unit > 0:
            if not basket.is_component(component):
                basket.add_component(component, caller=self.module)
        elif has_default and unit == 0:
            if not has_external:
                basket.remove_component(component, caller=self.module)

        basket.edit_default_position_unit(component, unit, caller=self.module)

    def _edit_external(self, component: str, module: str, unit: int) -> None:
        basket = self.basket
        if unit != 0:
            if not basket.is_component(component):
                basket.add_component(component, caller=self.module)
            if not basket.is_external_position_module(component, module):
                basket.add_external_position_module(component, module, caller=self.module)
            basket.edit_external_position_unit(component, module, unit, caller=self.module)
            return

        if not basket.is_external_position_module(component, module):
            return
        modules = basket.get_external_position_modules(component)
        if len(modules) == 1 and basket.get_default_position_real_unit(component) == 0:
            basket.remove_component(component, caller=self.module)
        basket.remove_external_position_module(component, module, caller=self.module)

    def calculate_and_edit_default_position(
        self, component: str, total_supply: int, pre_total_notional: int
    ) -> tuple[int, int]:
        """
        Re-derive the Default unit after the basket's balance of component changed.

        Whatever the basket held beyond its recorded Default position before the
        change (airdrops, dust) is excluded from the new unit.

        Args:
            component: Asset whose balance changed
            total_supply: Basket total supply used for the previous unit
            pre_total_notional: Basket balance of component before the change

        Returns:
            (previous unit, new unit)
        """
        current_balance = self.basket.balance_of(component)
        previous_unit = self.default_unit(component)

        if current_balance > 0:
            airdropped = pre_total_notional - precise_mul(previous_unit, total_supply)
            new_unit = get_unit_from_notional(max(current_balance - airdropped, 0), total_supply)
        else:
            new_unit = 0

        self.write_position(component, PositionKind.DEFAULT, None, new_unit)
        logger.debug(
            "ledger.default_position.recalculated",
            basket=self.basket.address,
            component=component,
            previous_unit=previous_unit,
            new_unit=new_unit,
        )
        return previous_unit, new_unit
