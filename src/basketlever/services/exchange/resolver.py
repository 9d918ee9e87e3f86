"""
Exchange adapter resolver.

Maps an adapter name to the exchange adapter registered for a module in the
integration registry.
"""

from basketlever.libraries.registry import ComponentNotFoundError, InvalidComponentError
from basketlever.services.exchange.interface import IExchangeAdapter
from basketlever.services.integration.registry import IIntegrationRegistry
from basketlever.system import LoggerFactory

logger = LoggerFactory.get_logger()

REQUIRED_ADAPTER_METHODS = ("get_spender", "get_trade_calldata")


class ExchangeAdapterResolver:
    """
    Resolves named exchange adapters for one module.

    Usage:
        >>> resolver = ExchangeAdapterResolver(integration_registry, module.address)
        >>> adapter = resolver.resolve("UNISWAP")
        >>> call = adapter.get_trade_calldata(usdc, wsteth, basket.address, 10**9, 3 * 10**17, b"")
    """

    def __init__(self, integration_registry: IIntegrationRegistry, module: str) -> None:
        self._registry = integration_registry
        self._module = module

    def resolve(self, adapter_name: str) -> IExchangeAdapter:
        """
        Look up adapter_name for this module.

        Raises:
            ComponentNotFoundError: If no adapter is registered under adapter_name
            InvalidComponentError: If the registered object is not an exchange adapter
        """
        adapter = self._registry.get_integration_adapter(self._module, adapter_name)
        if adapter is None:
            logger.warning("exchange.adapter.not_found", module=self._module, adapter_name=adapter_name)
            raise ComponentNotFoundError(f"Exchange adapter '{adapter_name}' not registered for {self._module}")

        missing = [m for m in REQUIRED_ADAPTER_METHODS if not callable(getattr(adapter, m, None))]
        if missing:
            raise InvalidComponentError(f"'{adapter_name}' is not an exchange adapter: missing {', '.join(missing)}")

        return adapter
