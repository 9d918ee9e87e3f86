"""Issuance orchestrator and hook interfaces (Protocols)."""

from typing import Protocol

from basketlever.services.ledger.interface import IBasketToken


class IDebtIssuanceModule(Protocol):
    """Issues and redeems basket tokens whose positions include debt.

    Modules that own External positions register here to be called back
    around mint and burn.
    """

    address: str

    def register_to_issuance_module(self, basket: IBasketToken, *, caller: str) -> None: ...

    def unregister_from_issuance_module(self, basket: IBasketToken, *, caller: str) -> None: ...


class IModuleIssuanceHook(Protocol):
    """Callbacks a registered module receives around issuance and redemption."""

    def module_issue_hook(self, basket: IBasketToken, quantity: int, *, caller: str) -> None: ...

    def module_redeem_hook(self, basket: IBasketToken, quantity: int, *, caller: str) -> None: ...

    def module_post_issue_hook(self, basket: IBasketToken, quantity: int, *, caller: str) -> None: ...

    def module_post_redeem_hook(self, basket: IBasketToken, quantity: int, *, caller: str) -> None: ...

    def component_issue_hook(
        self, basket: IBasketToken, issue_quantity: int, component: str, is_equity: bool, *, caller: str
    ) -> int: ...

    def component_redeem_hook(
        self, basket: IBasketToken, redeem_quantity: int, component: str, is_equity: bool, *, caller: str
    ) -> int: ...
