"""
Named component registry.

Holds named component instances (exchange adapters, issuance orchestrators)
and validates that each one exposes the interface its consumers call.

Usage:
    registry = BaseRegistry(component_type="exchange adapter", required_methods=("get_spender",))
    registry.register("UNISWAP", adapter)
    adapter = registry.get("UNISWAP")
"""

from typing import Any, Generic, Iterable, TypeVar

T = TypeVar("T")


class RegistryError(Exception):
    """Base exception for registry errors."""


class ComponentNotFoundError(RegistryError):
    """Component not found in registry."""


class DuplicateComponentError(RegistryError):
    """Component already registered with this name."""


class InvalidComponentError(RegistryError):
    """Component does not expose the required interface."""


class BaseRegistry(Generic[T]):
    """
    Name to instance map that checks required methods on registration.

    T is the interface consumers expect (e.g. IExchangeAdapter); the check is
    structural, by callable attribute name.
    """

    def __init__(self, component_type: str, required_methods: Iterable[str] = ()):
        """
        Initialize registry.

        Args:
            component_type: Human-readable component type (e.g., "exchange adapter")
            required_methods: Callables every registered component must provide
        """
        self.component_type = component_type
        self.required_methods = tuple(required_methods)
        self._registry: dict[str, T] = {}
        self._metadata: dict[str, dict[str, Any]] = {}

    def register(
        self,
        name: str,
        component: T,
        metadata: dict[str, Any] | None = None,
        allow_override: bool = False,
    ) -> None:
        """
        Register a component.

        Args:
            name: Component name (registry key)
            component: The component instance
            metadata: Optional metadata (description, source, etc.)
            allow_override: Allow replacing existing component

        Raises:
            InvalidComponentError: If component is missing a required method
            DuplicateComponentError: If name already registered (and not allow_override)
        """
        if not name:
            raise InvalidComponentError(f"{self.component_type} name cannot be empty")

        missing = [m for m in self.required_methods if not callable(getattr(component, m, None))]
        if missing:
            raise InvalidComponentError(
                f"{type(component).__name__} is not a valid {self.component_type}: missing {', '.join(missing)}"
            )

        if name in self._registry and not allow_override:
            raise DuplicateComponentError(
                f"{self.component_type} '{name}' already registered ({type(self._registry[name]).__name__})"
            )

        self._registry[name] = component
        self._metadata[name] = metadata or {}

    def unregister(self, name: str) -> None:
        """
        Remove a component.

        Raises:
            ComponentNotFoundError: If name not in registry
        """
        if name not in self._registry:
            raise ComponentNotFoundError(f"{self.component_type} '{name}' not found")
        del self._registry[name]
        self._metadata.pop(name, None)

    def get(self, name: str) -> T:
        """
        Get component by name.

        Raises:
            ComponentNotFoundError: If name not in registry
        """
        if name not in self._registry:
            available = ", ".join(sorted(self._registry.keys()))
            raise ComponentNotFoundError(f"{self.component_type} '{name}' not found. Available: {available}")

        return self._registry[name]

    def contains(self, name: str) -> bool:
        return name in self._registry

    def list_names(self) -> list[str]:
        """Sorted list of registered names."""
        return sorted(self._registry.keys())

    def get_metadata(self, name: str) -> dict[str, Any]:
        """
        Get metadata for a component.

        Raises:
            ComponentNotFoundError: If name not in registry
        """
        if name not in self._metadata:
            raise ComponentNotFoundError(f"{self.component_type} '{name}' not found")

        return dict(self._metadata[name])
