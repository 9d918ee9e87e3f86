"""Integration registry: named adapters per module."""

from typing import Any, Protocol

from basketlever.libraries.registry import BaseRegistry, ComponentNotFoundError, RegistryError
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()


class IIntegrationRegistry(Protocol):
    def get_integration_adapter(self, module: str, name: str) -> Any | None:
        """Adapter registered for module under name, or None."""
        ...

    def is_valid_integration(self, module: str, name: str) -> bool: ...


class IntegrationRegistry:
    """
    Owner-administered map of (module, integration name) to adapter.

    Each module gets its own BaseRegistry, so the same name may point to
    different adapters for different modules.

    Example:
        >>> registry = IntegrationRegistry(owner="0xowner")
        >>> registry.add_integration(module.address, "UNISWAP", adapter, caller="0xowner")
        >>> registry.get_integration_adapter(module.address, "UNISWAP") is adapter
        True
    """

    def __init__(self, owner: str) -> None:
        self.owner = owner
        self._by_module: dict[str, BaseRegistry[Any]] = {}

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise RegistryError("Only owner")

    def _registry_for(self, module: str) -> BaseRegistry[Any]:
        if module not in self._by_module:
            self._by_module[module] = BaseRegistry(component_type=f"integration for {module}")
        return self._by_module[module]

    def add_integration(self, module: str, name: str, adapter: Any, *, caller: str) -> None:
        self._only_owner(caller)
        self._registry_for(module).register(name, adapter, metadata={"adapter_type": type(adapter).__name__})
        logger.debug("integration.added", module=module, name=name, adapter=type(adapter).__name__)

    def edit_integration(self, module: str, name: str, adapter: Any, *, caller: str) -> None:
        self._only_owner(caller)
        registry = self._registry_for(module)
        if not registry.contains(name):
            raise ComponentNotFoundError(f"Integration '{name}' does not exist for {module}")
        registry.register(name, adapter, allow_override=True)
        logger.debug("integration.edited", module=module, name=name)

    def remove_integration(self, module: str, name: str, *, caller: str) -> None:
        self._only_owner(caller)
        self._registry_for(module).unregister(name)
        logger.debug("integration.removed", module=module, name=name)

    def get_integration_adapter(self, module: str, name: str) -> Any | None:
        registry = self._by_module.get(module)
        if registry is None or not registry.contains(name):
            return None
        return registry.get(name)

    def is_valid_integration(self, module: str, name: str) -> bool:
        return self.get_integration_adapter(module, name) is not None

    def list_integrations(self, module: str) -> list[str]:
        registry = self._by_module.get(module)
        return registry.list_names() if registry else []
