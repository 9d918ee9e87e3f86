"""Wire contracts (JSON Schema) for published events."""
