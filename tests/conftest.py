"""Root conftest: shared simulated worlds for all tests.

The default world holds 1 basket token backed by 1 wstETH, with wstETH
priced at 3000 USDC by both the oracle and the venue.
"""

from typing import Callable

import pytest

from basketlever.services.scenario.models import WorldSpec
from basketlever.services.scenario.world import World, build_world
from basketlever.system.config import LeverageSettings, SystemConfig


@pytest.fixture
def make_world() -> Callable[..., World]:
    """Factory for worlds with custom leverage settings or world parameters."""

    def _make(spec: WorldSpec | None = None, **leverage) -> World:
        return build_world(SystemConfig(leverage=LeverageSettings(**leverage)), spec)

    return _make


@pytest.fixture
def world(make_world) -> World:
    """Fresh world with the module initialized and collateral still in the Default position."""
    return make_world()


@pytest.fixture
def collateralized_world(world: World) -> World:
    """World after enter_collateral_position."""
    world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)
    return world


@pytest.fixture
def levered_world(collateralized_world: World) -> World:
    """World levered with 1000 USDC per basket token (receives 1/3 wstETH)."""
    world = collateralized_world
    world.module.lever(world.basket, 1000 * 10**6, 10**17, "UNISWAP", caller=world.accounts.manager)
    return world
