"""basketlever services package.

Each service is independently testable and talks to its collaborators
through Protocol interfaces injected at construction. The leverage module is
the core; the rest are in-memory collaborators it runs against.
"""

from basketlever.services.leverage import LeverageModule
from basketlever.services.scenario import World, build_world

__all__: list[str] = [
    "LeverageModule",
    "World",
    "build_world",
]
