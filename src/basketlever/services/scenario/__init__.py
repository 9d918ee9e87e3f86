"""
Scenario simulation.

Exports:
    - build_world / World: wire the in-memory collaborators around one basket
    - ScenarioRunner / load_scenario: run YAML scenarios against a world
"""

from basketlever.services.scenario.models import ScenarioConfig, ScenarioStep, WorldSpec, to_wei
from basketlever.services.scenario.runner import (
    ScenarioError,
    ScenarioResult,
    ScenarioRunner,
    StepOutcome,
    load_scenario,
)
from basketlever.services.scenario.world import Accounts, World, build_world, issue, redeem

__all__ = [
    "Accounts",
    "ScenarioConfig",
    "ScenarioError",
    "ScenarioResult",
    "ScenarioRunner",
    "ScenarioStep",
    "StepOutcome",
    "World",
    "WorldSpec",
    "build_world",
    "issue",
    "load_scenario",
    "redeem",
    "to_wei",
]
