"""
Unit tests for basketlever.libraries.registry.

- Descriptive test names: test_<function>_<scenario>_<expected>
- Arrange-Act-Assert pattern
"""

import pytest

from basketlever.libraries.registry import (
    BaseRegistry,
    ComponentNotFoundError,
    DuplicateComponentError,
    InvalidComponentError,
    RegistryError,
)


class MockAdapter:
    def get_spender(self) -> str:
        return "0xspender"

    def get_trade_calldata(self, *args):
        return None


class NotAnAdapter:
    get_spender = "not callable"


@pytest.fixture
def registry() -> BaseRegistry[MockAdapter]:
    return BaseRegistry(component_type="exchange adapter", required_methods=("get_spender", "get_trade_calldata"))


class TestRegister:
    def test_register_valid_component_is_retrievable(self, registry):
        # Arrange
        adapter = MockAdapter()

        # Act
        registry.register("UNISWAP", adapter, metadata={"source": "test"})

        # Assert
        assert registry.get("UNISWAP") is adapter
        assert registry.contains("UNISWAP")
        assert registry.get_metadata("UNISWAP") == {"source": "test"}

    def test_register_missing_method_raises_invalid(self, registry):
        with pytest.raises(InvalidComponentError, match="missing get_spender, get_trade_calldata"):
            registry.register("BAD", NotAnAdapter())

    def test_register_empty_name_raises_invalid(self, registry):
        with pytest.raises(InvalidComponentError, match="name cannot be empty"):
            registry.register("", MockAdapter())

    def test_register_duplicate_raises(self, registry):
        registry.register("UNISWAP", MockAdapter())
        with pytest.raises(DuplicateComponentError, match="already registered"):
            registry.register("UNISWAP", MockAdapter())

    def test_register_duplicate_with_override_replaces(self, registry):
        # Arrange
        registry.register("UNISWAP", MockAdapter())
        replacement = MockAdapter()

        # Act
        registry.register("UNISWAP", replacement, allow_override=True)

        # Assert
        assert registry.get("UNISWAP") is replacement


class TestLookup:
    def test_get_unknown_lists_available_names(self, registry):
        registry.register("SUSHI", MockAdapter())
        registry.register("CURVE", MockAdapter())

        with pytest.raises(ComponentNotFoundError, match="Available: CURVE, SUSHI"):
            registry.get("UNISWAP")

    def test_list_names_is_sorted(self, registry):
        registry.register("b", MockAdapter())
        registry.register("a", MockAdapter())
        assert registry.list_names() == ["a", "b"]

    def test_unregister_removes_component(self, registry):
        registry.register("UNISWAP", MockAdapter())
        registry.unregister("UNISWAP")
        assert not registry.contains("UNISWAP")
        with pytest.raises(ComponentNotFoundError):
            registry.get_metadata("UNISWAP")

    def test_unregister_unknown_raises(self, registry):
        with pytest.raises(ComponentNotFoundError):
            registry.unregister("UNISWAP")

    def test_errors_share_base_class(self):
        assert issubclass(ComponentNotFoundError, RegistryError)
        assert issubclass(DuplicateComponentError, RegistryError)
        assert issubclass(InvalidComponentError, RegistryError)
