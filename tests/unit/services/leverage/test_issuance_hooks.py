"""Unit tests for the leverage module's issuance and redemption hooks."""

import pytest

from basketlever.services.leverage import AuthorizationError, InvariantViolationError

WAD = 10**18
USDC = 10**6


def call_issue_hook(world, component, is_equity=False, quantity=10**17, caller=None):
    return world.module.component_issue_hook(
        world.basket, quantity, component, is_equity, caller=caller or world.issuance.address
    )


def call_redeem_hook(world, component, is_equity=False, quantity=10**17, caller=None):
    return world.module.component_redeem_hook(
        world.basket, quantity, component, is_equity, caller=caller or world.issuance.address
    )


def borrow_shares(world) -> int:
    return world.lending.position(world.market_params.market_id, world.basket.address).borrow_shares


class TestComponentIssueHook:
    def test_borrows_pro_rata_debt(self, levered_world):
        world = levered_world

        # Act
        borrowed = call_issue_hook(world, world.loan)

        # Assert
        assert borrowed == 100 * USDC
        assert world.basket.balance_of(world.loan) == 100 * USDC
        assert borrow_shares(world) == 11 * 10**14

    def test_units_are_not_resynced_by_default(self, levered_world):
        world = levered_world

        call_issue_hook(world, world.loan)

        assert world.basket.get_external_position_real_unit(world.loan, world.module.address) == -1000 * USDC

    def test_component_hook_leaves_units_even_when_resync_configured(self, make_world):
        # Arrange
        world = make_world(sync_after_component_hooks=True)
        manager = world.accounts.manager
        world.module.enter_collateral_position(world.basket, caller=manager)
        world.module.lever(world.basket, 1000 * USDC, 10**17, "UNISWAP", caller=manager)

        # Act
        call_issue_hook(world, world.loan)

        # Assert
        assert world.basket.get_external_position_real_unit(world.loan, world.module.address) == -1000 * USDC

    def test_equity_is_ignored(self, levered_world):
        world = levered_world

        assert call_issue_hook(world, world.loan, is_equity=True) == 0
        assert world.basket.balance_of(world.loan) == 0

    def test_collateral_component_rejected(self, levered_world):
        world = levered_world

        with pytest.raises(InvariantViolationError, match="Debt component mismatch"):
            call_issue_hook(world, world.collateral)

    def test_requires_negative_debt_unit(self, collateralized_world):
        world = collateralized_world

        with pytest.raises(InvariantViolationError, match="Component must be negative"):
            call_issue_hook(world, world.loan)

    def test_non_module_caller_rejected(self, levered_world):
        world = levered_world

        with pytest.raises(AuthorizationError, match="Only the module can call"):
            call_issue_hook(world, world.loan, caller=world.accounts.owner)

    def test_disabled_module_caller_rejected(self, levered_world):
        world = levered_world
        world.controller.remove_module(world.issuance.address, caller=world.accounts.owner)

        with pytest.raises(AuthorizationError, match="Module must be enabled on controller"):
            call_issue_hook(world, world.loan)


class TestComponentRedeemHook:
    def test_repays_what_issue_borrowed(self, levered_world):
        # Arrange
        world = levered_world
        call_issue_hook(world, world.loan)

        # Act
        repaid = call_redeem_hook(world, world.loan)

        # Assert
        assert repaid == 100 * USDC
        assert borrow_shares(world) == 10**15
        assert world.basket.balance_of(world.loan) == 0

    def test_equity_is_ignored(self, levered_world):
        world = levered_world
        world.bank.mint(world.loan, world.basket.address, 100 * USDC)

        assert call_redeem_hook(world, world.loan, is_equity=True) == 0
        assert world.basket.balance_of(world.loan) == 100 * USDC

    def test_collateral_component_rejected(self, levered_world):
        world = levered_world

        with pytest.raises(InvariantViolationError, match="Debt component mismatch"):
            call_redeem_hook(world, world.collateral)

    def test_non_module_caller_rejected(self, levered_world):
        world = levered_world

        with pytest.raises(AuthorizationError, match="Only the module can call"):
            call_redeem_hook(world, world.loan, caller=world.accounts.owner)


class TestModuleHooks:
    def test_module_issue_hook_syncs(self, levered_world):
        # Arrange
        world = levered_world
        world.lending.set_borrow_rate(world.market_params.interest_rate_model, WAD // (365 * 24 * 3600) // 10)
        world.lending.advance_time(24 * 3600)

        # Act
        world.module.module_issue_hook(world.basket, 10**17, caller=world.issuance.address)

        # Assert
        unit = world.basket.get_external_position_real_unit(world.loan, world.module.address)
        assert unit == -world.module.get_borrow_balance(world.basket)
        assert unit < -1000 * USDC

    def test_module_redeem_hook_requires_module(self, levered_world):
        world = levered_world

        with pytest.raises(AuthorizationError):
            world.module.module_redeem_hook(world.basket, 10**17, caller="0xstranger")


class TestPostHooks:
    def test_post_issue_hook_skips_sync_by_default(self, levered_world):
        # Arrange
        world = levered_world
        call_issue_hook(world, world.loan)

        # Act
        world.module.module_post_issue_hook(world.basket, 10**17, caller=world.issuance.address)

        # Assert
        assert world.basket.get_external_position_real_unit(world.loan, world.module.address) == -1000 * USDC

    def test_post_redeem_hook_syncs_when_configured(self, make_world):
        # Arrange
        world = make_world(sync_after_component_hooks=True)
        manager = world.accounts.manager
        world.module.enter_collateral_position(world.basket, caller=manager)
        world.module.lever(world.basket, 1000 * USDC, 10**17, "UNISWAP", caller=manager)
        call_issue_hook(world, world.loan)

        # Act
        world.module.module_post_redeem_hook(world.basket, 10**17, caller=world.issuance.address)

        # Assert
        unit = world.basket.get_external_position_real_unit(world.loan, world.module.address)
        assert unit == -world.module.get_borrow_balance(world.basket)
        assert unit == -1100 * USDC

    def test_post_issue_hook_requires_module(self, levered_world):
        world = levered_world

        with pytest.raises(AuthorizationError, match="Only the module can call"):
            world.module.module_post_issue_hook(world.basket, 10**17, caller="0xstranger")
