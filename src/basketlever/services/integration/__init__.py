from basketlever.services.integration.registry import IIntegrationRegistry, IntegrationRegistry

__all__ = ["IIntegrationRegistry", "IntegrationRegistry"]
