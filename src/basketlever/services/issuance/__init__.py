"""Debt-aware issuance orchestrator."""

from basketlever.services.issuance.debt_issuance import DebtIssuanceModule, IssuanceError, RequiredUnits
from basketlever.services.issuance.interface import IDebtIssuanceModule, IModuleIssuanceHook

__all__ = [
    "DebtIssuanceModule",
    "IDebtIssuanceModule",
    "IModuleIssuanceHook",
    "IssuanceError",
    "RequiredUnits",
]
