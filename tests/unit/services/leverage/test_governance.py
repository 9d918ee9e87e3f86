"""Unit tests for the allow-list and module governance operations."""

import pytest

from basketlever.services.issuance.debt_issuance import DebtIssuanceModule
from basketlever.services.ledger.models import Position, PositionKind
from basketlever.services.leverage import AllowList, AuthorizationError, StatePreconditionError

USDC = 10**6


class TestAllowList:
    def test_empty_list_allows_nothing(self):
        assert not AllowList().is_allowed("0xbasket")

    def test_every_mutation_bumps_version(self):
        allow_list = AllowList()

        assert allow_list.set_allowed("0xbasket", True) == 1
        assert allow_list.set_any_set_allowed(True) == 2
        assert allow_list.set_allowed("0xbasket", False) == 3

    def test_override_allows_unlisted(self):
        allow_list = AllowList(any_set_allowed=True)

        assert allow_list.is_allowed("0xanything")
        assert not allow_list.is_listed("0xanything")

    def test_restore(self):
        allow_list = AllowList(allowed=["0xbasket"])
        state = allow_list.snapshot()
        allow_list.set_allowed("0xbasket", False)

        allow_list.restore(state)

        assert allow_list.is_allowed("0xbasket")
        assert allow_list.version == 0


class TestUpdateAllowedSetToken:
    def test_owner_updates_controller_enabled_basket(self, world):
        # Act
        version = world.module.update_allowed_set_token(world.basket.address, False, caller=world.accounts.owner)

        # Assert
        assert version == 2
        assert not world.module.allow_list.is_allowed(world.basket.address)
        event = world.event_bus.get_history(event_type="allow_list_updated")[-1]
        assert event.allowed is False
        assert event.version == 2

    def test_disallowing_does_not_affect_initialized_basket(self, collateralized_world):
        world = collateralized_world
        world.module.update_allowed_set_token(world.basket.address, False, caller=world.accounts.owner)

        world.module.lever(world.basket, 1000 * USDC, 0, "UNISWAP", caller=world.accounts.manager)

        assert world.module.get_settings(world.basket.address).allow_list_version == 1

    def test_unknown_basket_rejected(self, world):
        with pytest.raises(StatePreconditionError, match="Invalid SetToken"):
            world.module.update_allowed_set_token("0xunknown", True, caller=world.accounts.owner)

    def test_listed_basket_can_be_removed_after_controller_drop(self, world):
        # Arrange
        world.controller.remove_set(world.basket.address, caller=world.accounts.owner)

        # Act
        world.module.update_allowed_set_token(world.basket.address, False, caller=world.accounts.owner)

        # Assert
        assert not world.module.allow_list.is_listed(world.basket.address)

    def test_non_owner_rejected(self, world):
        with pytest.raises(AuthorizationError, match="Only owner"):
            world.module.update_allowed_set_token(world.basket.address, True, caller=world.accounts.manager)


class TestUpdateAnySetAllowed:
    def test_toggle(self, world):
        version = world.module.update_any_set_allowed(True, caller=world.accounts.owner)

        assert world.module.allow_list.any_set_allowed
        assert world.event_bus.get_history(event_type="any_set_allowed_updated")[-1].version == version

    def test_non_owner_rejected(self, world):
        with pytest.raises(AuthorizationError, match="Only owner"):
            world.module.update_any_set_allowed(True, caller=world.accounts.issuer)


class TestRegisterToModule:
    def test_registers_on_additional_orchestrator(self, world):
        # Arrange
        owner, manager = world.accounts.owner, world.accounts.manager
        second = DebtIssuanceModule("0xdebt1ssuance2", world.controller, world.bank, world.router)
        world.controller.add_module(second.address, caller=owner)
        world.basket.add_module(second.address, caller=manager)
        second.initialize(world.basket, caller=manager)

        # Act
        world.module.register_to_module(world.basket, second, caller=manager)

        # Assert
        assert second.is_registered(world.basket, world.module.address)
        assert second.address in world.module.get_settings(world.basket.address).issuance_modules
        event = world.event_bus.get_history(event_type="issuance_module_registered")[-1]
        assert event.issuance_module == second.address

    def test_uninitialized_orchestrator_rejected(self, world):
        second = DebtIssuanceModule("0xdebt1ssuance2", world.controller, world.bank, world.router)

        with pytest.raises(StatePreconditionError, match="Issuance not initialized"):
            world.module.register_to_module(world.basket, second, caller=world.accounts.manager)

    def test_non_manager_rejected(self, world):
        with pytest.raises(AuthorizationError):
            world.module.register_to_module(world.basket, world.issuance, caller=world.accounts.owner)


class TestRemoveModule:
    def test_outstanding_borrow_blocks_removal(self, levered_world):
        world = levered_world

        with pytest.raises(StatePreconditionError, match="Borrow balance must be 0"):
            world.basket.remove_module(world.module.address, caller=world.accounts.manager)

        assert world.basket.is_initialized_module(world.module.address)
        assert world.module.is_initialized(world.basket.address)

    def test_rejected_removal_leaves_market_unaccrued(self, levered_world):
        # Arrange
        world = levered_world
        world.lending.set_borrow_rate(world.market_params.interest_rate_model, 10**18 // (365 * 24 * 3600) // 10)
        world.lending.advance_time(24 * 3600)
        before = world.lending.market(world.market_params.market_id)

        # Act
        with pytest.raises(StatePreconditionError, match="Borrow balance must be 0"):
            world.basket.remove_module(world.module.address, caller=world.accounts.manager)

        # Assert
        after = world.lending.market(world.market_params.market_id)
        assert after.last_update == before.last_update
        assert after.total_borrow_assets == before.total_borrow_assets

    def test_removal_returns_collateral_to_default(self, levered_world):
        # Arrange
        world = levered_world
        manager = world.accounts.manager
        world.module.delever_to_zero_borrow_balance(world.basket, 4 * 10**17, "UNISWAP", caller=manager)

        # Act
        world.basket.remove_module(world.module.address, caller=manager)

        # Assert
        assert world.basket.get_positions() == [
            Position(component=world.collateral, kind=PositionKind.DEFAULT, unit=933333333333333333),
            Position(component=world.loan, kind=PositionKind.DEFAULT, unit=200 * USDC),
        ]
        assert world.basket.balance_of(world.collateral) == 933333333333333333
        assert not world.basket.is_initialized_module(world.module.address)
        assert not world.module.is_initialized(world.basket.address)
        assert not world.issuance.is_registered(world.basket, world.module.address)
        assert world.event_bus.get_history(event_type="module_removed")[-1].basket_token == world.basket.address

    def test_collateralized_basket_can_be_removed(self, collateralized_world):
        world = collateralized_world

        world.basket.remove_module(world.module.address, caller=world.accounts.manager)

        assert world.basket.get_positions() == [
            Position(component=world.collateral, kind=PositionKind.DEFAULT, unit=10**18)
        ]

    def test_direct_call_from_unknown_basket_rejected(self, world):
        with pytest.raises(StatePreconditionError):
            world.module.remove_module(caller="0xnotabasket")
