"""
Leverage module: engine, issuance hooks and governance.

Exports:
    - LeverageModule: lever/delever/sync engine for basket tokens
    - AllowList: versioned table of baskets allowed to initialize
    - Error taxonomy and result models
"""

from basketlever.services.leverage.engine import LeverageModule
from basketlever.services.leverage.errors import (
    AuthorizationError,
    InvariantViolationError,
    LeverageModuleError,
    ReentrancyError,
    SlippageError,
    StatePreconditionError,
)
from basketlever.services.leverage.governance import AllowList
from basketlever.services.leverage.models import (
    ActionInfo,
    DeleverResult,
    LeverageState,
    LeverResult,
    ModuleSettings,
    SyncResult,
)

__all__ = [
    "ActionInfo",
    "AllowList",
    "AuthorizationError",
    "DeleverResult",
    "InvariantViolationError",
    "LeverResult",
    "LeverageModule",
    "LeverageModuleError",
    "LeverageState",
    "ModuleSettings",
    "ReentrancyError",
    "SlippageError",
    "StatePreconditionError",
    "SyncResult",
]
