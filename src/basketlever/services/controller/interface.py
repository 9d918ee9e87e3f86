"""Controller interface (Protocol)."""

from typing import Protocol


class IController(Protocol):
    """System-wide registry of enabled modules and basket tokens.

    Core responsibilities:
    - Track which modules are enabled system-wide
    - Track which basket tokens are valid
    - Hold protocol fee configuration and fee recipient
    """

    def is_module(self, module: str) -> bool:
        """Whether module address is enabled system-wide."""
        ...

    def is_set(self, basket: str) -> bool:
        """Whether basket address is a controller-enabled basket token."""
        ...

    def fee_recipient(self) -> str:
        """Address that receives protocol fees."""
        ...

    def get_module_fee(self, module: str, fee_type: int) -> int:
        """Protocol fee for module and fee type, in basis points."""
        ...
