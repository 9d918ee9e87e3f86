"""Position ledger models."""

from enum import Enum, IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class PositionKind(IntEnum):
    """Where a component's balance lives.

    DEFAULT: held directly by the basket token
    EXTERNAL: accounted for by a module (may be negative for debt)
    """

    DEFAULT = 0
    EXTERNAL = 1


class ModuleState(str, Enum):
    NONE = "none"
    PENDING = "pending"
    INITIALIZED = "initialized"


class Position(BaseModel):
    """One per-unit position entry of a basket token.

    Attributes:
        component: Asset address
        kind: DEFAULT or EXTERNAL
        module: Owning module for EXTERNAL entries, None for DEFAULT
        unit: Amount of component per 1e18 basket units (signed)
    """

    model_config = ConfigDict(frozen=True)

    component: str
    kind: PositionKind
    module: Optional[str] = None
    unit: int

    @model_validator(mode="after")
    def _validate_module(self) -> "Position":
        if self.kind == PositionKind.DEFAULT:
            if self.module is not None:
                raise ValueError("Default positions have no module")
            if self.unit < 0:
                raise ValueError(f"Default position unit cannot be negative, got {self.unit}")
        elif not self.module:
            raise ValueError("External positions require a module")
        return self
