"""Leverage module error taxonomy.

All errors are raised before any state change survives the call; none are
retried inside the module.
"""


class LeverageModuleError(Exception):
    """Base exception for leverage module errors.

    Attributes:
        operation: Module operation that rejected the call
        basket: Basket token address, when known
    """

    def __init__(self, message: str, operation: str | None = None, basket: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.basket = basket


class AuthorizationError(LeverageModuleError):
    """Caller is not the manager, owner or an enabled module."""


class StatePreconditionError(LeverageModuleError):
    """External state does not allow the call (uninitialized basket, allow-list, zero quantity...)."""


class SlippageError(LeverageModuleError):
    """Trade returned less than the minimum; safe to retry with new parameters."""


class InvariantViolationError(LeverageModuleError):
    """Call contradicts recorded positions (wrong debt component, nothing to repay)."""


class ReentrancyError(LeverageModuleError):
    """Nested call into the module for a basket already mid-operation."""
