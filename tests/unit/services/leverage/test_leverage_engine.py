"""
Unit tests for LeverageModule: initialize, enter collateral, lever,
delever, delever to zero, sync and views.

Numbers assume the default world: 1 basket token backed by 1 wstETH,
wstETH at 3000 USDC on both oracle and venue, fresh lending market.
"""

import pytest

from basketlever.services.exchange.simulated import ExchangeError, SimulatedExchangeAdapter
from basketlever.services.ledger.basket_token import BasketToken
from basketlever.services.ledger.models import Position, PositionKind
from basketlever.services.lending.market import LendingMarketError
from basketlever.services.leverage import (
    AuthorizationError,
    InvariantViolationError,
    LeverageState,
    ReentrancyError,
    SlippageError,
    StatePreconditionError,
)
from basketlever.services.scenario.models import WorldSpec

WAD = 10**18
USDC = 10**6
FEE_RECIPIENT = "0xfee0000000000000000000000000000000000000"


class NoMinimumAdapter(SimulatedExchangeAdapter):
    """Adapter that drops the minimum output so only the module checks slippage."""

    def get_trade_calldata(self, src_token, dst_token, recipient, src_quantity, min_dst_quantity, route_data):
        return super().get_trade_calldata(src_token, dst_token, recipient, src_quantity, 0, route_data)


def external(world, asset, unit):
    return Position(component=asset, kind=PositionKind.EXTERNAL, module=world.module.address, unit=unit)


def default(asset, unit):
    return Position(component=asset, kind=PositionKind.DEFAULT, unit=unit)


def observable_state(world):
    """Balances and positions a failed call must leave untouched."""
    position = world.lending.position(world.market_params.market_id, world.basket.address)
    return (
        world.basket.get_positions(),
        position,
        world.bank.balance_of(world.collateral, world.basket.address),
        world.bank.balance_of(world.loan, world.basket.address),
        world.bank.balance_of(world.collateral, world.venue.address),
        world.lending.market(world.market_params.market_id),
    )


@pytest.fixture
def second_basket(world) -> BasketToken:
    return BasketToken(
        "0xbasket2",
        world.accounts.manager,
        world.bank,
        world.router,
        world.controller,
        components=[world.collateral],
        units=[WAD],
    )


class TestInitialize:
    def test_world_basket_is_initialized(self, world):
        assert world.module.is_initialized(world.basket.address)
        assert world.basket.is_initialized_module(world.module.address)
        assert world.issuance.is_registered(world.basket, world.module.address)
        assert world.module.get_settings(world.basket.address).market_id == world.market_params.market_id

    def test_initialized_event_published(self, world):
        events = world.event_bus.get_history(event_type="module_initialized")

        assert len(events) == 1
        assert events[0].basket_token == world.basket.address
        assert events[0].allow_list_version == 1

    def test_non_manager_rejected(self, world, second_basket):
        with pytest.raises(AuthorizationError, match="Must be the SetToken manager"):
            world.module.initialize(second_basket, world.market_params, caller="0xstranger")

    def test_guards_checked_in_order(self, world, second_basket):
        module, owner, manager = world.module, world.accounts.owner, world.accounts.manager

        with pytest.raises(StatePreconditionError, match="Must be controller-enabled SetToken"):
            module.initialize(second_basket, world.market_params, caller=manager)
        world.controller.add_set(second_basket.address, caller=owner)

        with pytest.raises(StatePreconditionError, match="Must be pending initialization"):
            module.initialize(second_basket, world.market_params, caller=manager)
        second_basket.add_module(module.address, caller=manager)

        with pytest.raises(StatePreconditionError, match="Not allowed SetToken"):
            module.initialize(second_basket, world.market_params, caller=manager)
        module.update_allowed_set_token(second_basket.address, True, caller=owner)

        other_market = world.market_params.model_copy(update={"liquidation_threshold": 90 * WAD // 100})
        with pytest.raises(StatePreconditionError, match="Market not created"):
            module.initialize(second_basket, other_market, caller=manager)

        with pytest.raises(StatePreconditionError, match="Issuance not initialized"):
            module.initialize(second_basket, world.market_params, caller=manager)
        second_basket.add_module(world.issuance.address, caller=manager)
        world.issuance.initialize(second_basket, caller=manager)

        module.initialize(second_basket, world.market_params, caller=manager)
        assert module.get_state(second_basket) == LeverageState.INITIALIZED

    def test_missing_issuance_integration_rejected(self, world, second_basket):
        # Arrange
        owner, manager = world.accounts.owner, world.accounts.manager
        world.controller.add_set(second_basket.address, caller=owner)
        second_basket.add_module(world.module.address, caller=manager)
        world.module.update_allowed_set_token(second_basket.address, True, caller=owner)
        world.integration_registry.remove_integration(world.module.address, "DefaultIssuanceModule", caller=owner)

        # Act & Assert
        with pytest.raises(StatePreconditionError, match="Must be valid adapter"):
            world.module.initialize(second_basket, world.market_params, caller=manager)
        assert not world.module.is_initialized(second_basket.address)

    def test_uninitialized_basket_rejected_by_operations(self, world, second_basket):
        with pytest.raises(StatePreconditionError, match="Must be a valid and initialized SetToken"):
            world.module.lever(second_basket, USDC, 0, "UNISWAP", caller=world.accounts.manager)
        with pytest.raises(StatePreconditionError, match="Must be a valid and initialized SetToken"):
            world.module.sync(second_basket)


class TestEnterCollateralPosition:
    def test_default_collateral_moves_to_external(self, world):
        # Act
        supplied = world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)

        # Assert
        assert supplied == WAD
        assert world.basket.get_positions() == [external(world, world.collateral, WAD)]
        assert world.module.get_collateral_balance(world.basket) == WAD
        assert world.bank.balance_of(world.collateral, world.basket.address) == 0

    def test_event_published(self, world):
        world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)

        event = world.event_bus.get_history(event_type="collateral_position_entered")[-1]
        assert event.collateral_supplied == WAD
        assert event.collateral_unit == WAD

    def test_zero_supply_basket_rejected(self, make_world):
        world = make_world(WorldSpec(basket_supply="0"))

        with pytest.raises(StatePreconditionError, match="Collateral balance is 0"):
            world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)

    def test_second_entry_has_nothing_to_supply(self, collateralized_world):
        world = collateralized_world

        with pytest.raises(StatePreconditionError, match="Collateral balance is 0"):
            world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)

    def test_non_manager_rejected(self, world):
        with pytest.raises(AuthorizationError):
            world.module.enter_collateral_position(world.basket, caller=world.accounts.issuer)


class TestLever:
    def test_lever_borrows_trades_and_supplies(self, collateralized_world):
        world = collateralized_world

        # Act
        result = world.module.lever(world.basket, 1000 * USDC, 10**17, "UNISWAP", caller=world.accounts.manager)

        # Assert
        assert result.total_borrow == 1000 * USDC
        assert result.total_received == 333333333333333333
        assert result.protocol_fee == 0
        assert result.collateral_supplied == 333333333333333333
        assert world.basket.get_positions() == [
            external(world, world.collateral, 1333333333333333333),
            external(world, world.loan, -1000 * USDC),
        ]
        assert world.basket.balance_of(world.loan) == 0
        assert world.basket.balance_of(world.collateral) == 0
        assert world.module.get_borrow_balance(world.basket) == 1000 * USDC

    def test_lever_event(self, levered_world):
        event = levered_world.event_bus.get_history(event_type="leverage_increased")[-1]

        assert event.exchange_adapter == "UNISWAP"
        assert event.total_borrow == 1000 * USDC
        assert event.total_received == 333333333333333333

    def test_state_becomes_levered(self, levered_world):
        assert levered_world.module.get_state(levered_world.basket) == LeverageState.LEVERED

    def test_protocol_fee_taken_from_received_collateral(self, make_world):
        # Arrange
        world = make_world(protocol_fee_bps=25)
        world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)

        # Act
        result = world.module.lever(world.basket, 1000 * USDC, 10**17, "UNISWAP", caller=world.accounts.manager)

        # Assert
        assert result.protocol_fee == 833333333333333
        assert result.collateral_supplied == 333333333333333333 - 833333333333333
        assert world.bank.balance_of(world.collateral, FEE_RECIPIENT) == 833333333333333
        assert result.collateral_unit == WAD + result.collateral_supplied

    def test_zero_quantity_rejected(self, collateralized_world):
        world = collateralized_world

        with pytest.raises(StatePreconditionError, match="Quantity is 0"):
            world.module.lever(world.basket, 0, 0, "UNISWAP", caller=world.accounts.manager)

    def test_unknown_adapter_rejected(self, collateralized_world):
        world = collateralized_world

        with pytest.raises(StatePreconditionError, match="Must be valid adapter"):
            world.module.lever(world.basket, 1000 * USDC, 0, "SUSHI", caller=world.accounts.manager)

    def test_non_manager_rejected(self, collateralized_world):
        world = collateralized_world

        with pytest.raises(AuthorizationError, match="Must be the SetToken manager"):
            world.module.lever(world.basket, 1000 * USDC, 0, "UNISWAP", caller=world.accounts.owner)

    def test_slippage_rolls_back_everything(self, collateralized_world):
        # Arrange
        world = collateralized_world
        world.integration_registry.add_integration(
            world.module.address, "NOMIN", NoMinimumAdapter(world.venue), caller=world.accounts.owner
        )
        before = observable_state(world)

        # Act
        with pytest.raises(SlippageError, match="Slippage too high"):
            world.module.lever(world.basket, 1000 * USDC, 5 * 10**17, "NOMIN", caller=world.accounts.manager)

        # Assert
        assert observable_state(world) == before
        assert world.event_bus.get_history(event_type="leverage_increased") == []

    def test_venue_rejection_rolls_back_everything(self, collateralized_world):
        world = collateralized_world
        before = observable_state(world)

        with pytest.raises(ExchangeError, match="Insufficient output amount"):
            world.module.lever(world.basket, 1000 * USDC, 5 * 10**17, "UNISWAP", caller=world.accounts.manager)

        assert observable_state(world) == before

    def test_reentrant_call_rejected_and_rolled_back(self, collateralized_world):
        # Arrange
        world = collateralized_world
        before = observable_state(world)
        world.venue.on_swap = lambda info: world.module.sync(world.basket)

        # Act
        with pytest.raises(ReentrancyError, match="ReentrancyGuard: reentrant call"):
            world.module.lever(world.basket, 1000 * USDC, 10**17, "UNISWAP", caller=world.accounts.manager)

        # Assert: rolled back, and the guard is released afterwards
        assert observable_state(world) == before
        world.venue.on_swap = None
        assert world.module.sync(world.basket).collateral_unit == WAD


class TestDelever:
    def test_partial_delever_repays_proceeds(self, levered_world):
        world = levered_world

        # Act
        result = world.module.delever(world.basket, 10**17, 0, "UNISWAP", caller=world.accounts.manager)

        # Assert
        assert result.total_redeem == 10**17
        assert result.total_received == 300 * USDC
        assert result.total_repay == 300 * USDC
        assert not result.fully_delevered
        assert world.basket.get_positions() == [
            external(world, world.collateral, 1233333333333333333),
            external(world, world.loan, -700 * USDC),
        ]

    def test_delever_past_debt_leaves_default_loan_position(self, levered_world):
        world = levered_world

        # Act
        result = world.module.delever(world.basket, 5 * 10**17, 0, "UNISWAP", caller=world.accounts.manager)

        # Assert
        assert result.total_received == 1500 * USDC
        assert result.total_repay == 1000 * USDC
        assert result.fully_delevered
        assert world.basket.get_positions() == [
            external(world, world.collateral, 833333333333333333),
            default(world.loan, 500 * USDC),
        ]
        assert world.event_bus.get_history(event_type="fully_delevered")[-1].collateral_unit == 833333333333333333
        assert world.module.get_state(world.basket) == LeverageState.COLLATERALIZED

    def test_minimum_repay_enforced(self, levered_world):
        world = levered_world

        with pytest.raises(ExchangeError):
            world.module.delever(world.basket, 10**17, 400 * USDC, "UNISWAP", caller=world.accounts.manager)

    def test_unhealthy_withdrawal_rolls_back(self, levered_world):
        world = levered_world
        before = observable_state(world)

        with pytest.raises(LendingMarketError, match="insufficient collateral"):
            world.module.delever(world.basket, 12 * 10**17, 0, "UNISWAP", caller=world.accounts.manager)

        assert observable_state(world) == before


class TestDeleverToZero:
    def test_repays_every_share(self, levered_world):
        world = levered_world

        # Act
        repaid = world.module.delever_to_zero_borrow_balance(
            world.basket, 4 * 10**17, "UNISWAP", caller=world.accounts.manager
        )

        # Assert
        assert repaid == 1000 * USDC
        position = world.lending.position(world.market_params.market_id, world.basket.address)
        assert position.borrow_shares == 0
        assert world.basket.get_positions() == [
            external(world, world.collateral, 933333333333333333),
            default(world.loan, 200 * USDC),
        ]

    def test_events(self, levered_world):
        world = levered_world

        world.module.delever_to_zero_borrow_balance(world.basket, 4 * 10**17, "UNISWAP", caller=world.accounts.manager)

        decreased = world.event_bus.get_history(event_type="leverage_decreased")[-1]
        assert decreased.protocol_fee == 0
        assert decreased.total_repay == 1000 * USDC
        assert len(world.event_bus.get_history(event_type="fully_delevered")) == 1

    def test_no_borrow_rejected(self, collateralized_world):
        world = collateralized_world

        with pytest.raises(InvariantViolationError, match="Borrow balance is zero"):
            world.module.delever_to_zero_borrow_balance(
                world.basket, 10**17, "UNISWAP", caller=world.accounts.manager
            )

    def test_proceeds_below_debt_rejected(self, levered_world):
        world = levered_world
        before = observable_state(world)

        with pytest.raises(ExchangeError):
            world.module.delever_to_zero_borrow_balance(
                world.basket, 3 * 10**17, "UNISWAP", caller=world.accounts.manager
            )

        assert observable_state(world) == before


class TestSync:
    def test_sync_after_interest_tracks_debt(self, levered_world):
        # Arrange
        world = levered_world
        world.lending.set_borrow_rate(world.market_params.interest_rate_model, WAD // (365 * 24 * 3600) // 10)
        world.lending.advance_time(30 * 24 * 3600)

        # Act
        result = world.module.sync(world.basket)

        # Assert
        assert result.borrow_unit < -1000 * USDC
        assert result.borrow_unit == -world.module.get_borrow_balance(world.basket)
        assert world.basket.get_external_position_real_unit(world.loan, world.module.address) == result.borrow_unit

    def test_sync_after_liquidation_tracks_collateral(self, levered_world):
        # Arrange
        world = levered_world
        market_id = world.market_params.market_id
        world.lending.set_oracle_price(world.accounts.oracle, world.oracle_price(800))
        liquidator = world.accounts.liquidator
        world.bank.mint(world.loan, liquidator, 1000 * USDC)
        world.bank.approve(world.loan, liquidator, world.lending.address, 1000 * USDC)
        world.lending.liquidate(world.market_params, world.basket.address, 0, 5 * 10**14, caller=liquidator)

        # Act
        result = world.module.sync(world.basket)

        # Assert
        position = world.lending.position(market_id, world.basket.address)
        assert result.collateral_unit == position.collateral
        assert result.collateral_unit < 1333333333333333333
        assert result.borrow_unit == -world.module.get_borrow_balance(world.basket)

    def test_sync_publishes_event(self, levered_world):
        levered_world.module.sync(levered_world.basket, caller="0xanyone")

        event = levered_world.event_bus.get_history(event_type="positions_synced")[-1]
        assert event.collateral_unit == 1333333333333333333
        assert event.borrow_unit == -1000 * USDC

    def test_zero_supply_is_a_no_op(self, make_world):
        world = make_world(WorldSpec(basket_supply="0"))

        assert world.module.sync(world.basket) is None
        assert world.event_bus.get_history(event_type="positions_synced") == []
        assert world.basket.get_default_position_real_unit(world.collateral) == WAD

    def test_sync_is_idempotent(self, levered_world):
        world = levered_world
        first = world.module.sync(world.basket)

        second = world.module.sync(world.basket)

        assert first == second


class TestViews:
    def test_state_progression(self, world):
        manager = world.accounts.manager
        assert world.module.get_state(world.basket) == LeverageState.INITIALIZED

        world.module.enter_collateral_position(world.basket, caller=manager)
        assert world.module.get_state(world.basket) == LeverageState.COLLATERALIZED

        world.module.lever(world.basket, 1000 * USDC, 0, "UNISWAP", caller=manager)
        assert world.module.get_state(world.basket) == LeverageState.LEVERED

    def test_uninitialized_state(self, world, second_basket):
        assert world.module.get_state(second_basket) == LeverageState.UNINITIALIZED

    def test_balances(self, levered_world):
        world = levered_world

        assert world.module.get_borrow_balance(world.basket) == 1000 * USDC
        assert world.module.get_collateral_balance(world.basket) == 1333333333333333333
