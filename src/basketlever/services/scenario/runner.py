"""
Scenario runner.

Loads a YAML scenario, builds its world and executes each step against the
leverage module, recording one outcome per step and a final snapshot of
the basket's positions and lending-market balances.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from pydantic import ValidationError

from basketlever.events.events import BaseEvent
from basketlever.libraries.precise_math import PRECISE_UNIT
from basketlever.services.ledger.models import Position
from basketlever.services.leverage.models import LeverageState
from basketlever.services.scenario.models import ScenarioConfig, ScenarioStep, to_fraction, to_wei
from basketlever.services.scenario.world import World, build_world, issue, redeem
from basketlever.system import LoggerFactory
from basketlever.system.config import ConfigLoadError, SystemConfig

logger = LoggerFactory.get_logger()


class ScenarioError(Exception):
    """Raised when a step fails unexpectedly or an expected failure does not happen."""

    def __init__(self, message: str, step_index: int, action: str) -> None:
        super().__init__(message)
        self.step_index = step_index
        self.action = action


@dataclass
class StepOutcome:
    index: int
    action: str
    ok: bool
    detail: str = ""
    error: Optional[str] = None


@dataclass
class ScenarioResult:
    """Outcome of a scenario run."""

    name: str
    outcomes: list[StepOutcome] = field(default_factory=list)
    positions: list[Position] = field(default_factory=list)
    state: LeverageState = LeverageState.UNINITIALIZED
    total_supply: int = 0
    collateral_balance: int = 0
    borrow_balance: int = 0
    events: list[BaseEvent] = field(default_factory=list)


def load_scenario(path: str | Path) -> ScenarioConfig:
    """
    Load and validate a scenario file.

    Raises:
        ConfigLoadError: File missing, unparsable or invalid
    """
    path = Path(path)
    if not path.exists():
        raise ConfigLoadError(f"Scenario file not found: {path}")
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse YAML from {path}: {e}") from e

    try:
        return ScenarioConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid scenario {path}: {e}") from e


class ScenarioRunner:
    """
    Executes scenario steps against a world.

    Amount parameters are human-readable strings in the asset's own
    decimals; lever/delever quantities are per basket token.

    Example:
        >>> runner = ScenarioRunner.from_config(load_scenario("scenarios/lever.yaml"))
        >>> result = runner.run()
        >>> result.state
        <LeverageState.LEVERED: 'levered'>
    """

    def __init__(self, scenario: ScenarioConfig, world: World) -> None:
        self.scenario = scenario
        self.world = world
        self._actions: dict[str, Callable[[dict[str, Any]], str]] = {
            "enter_collateral": self._enter_collateral,
            "lever": self._lever,
            "delever": self._delever,
            "delever_to_zero": self._delever_to_zero,
            "sync": self._sync,
            "advance_time": self._advance_time,
            "set_oracle_price": self._set_oracle_price,
            "set_swap_price": self._set_swap_price,
            "liquidate": self._liquidate,
            "issue": self._issue,
            "redeem": self._redeem,
        }

    @classmethod
    def from_config(cls, scenario: ScenarioConfig, config: Optional[SystemConfig] = None) -> "ScenarioRunner":
        return cls(scenario, build_world(config, scenario.world))

    def run(self) -> ScenarioResult:
        """
        Run every step in order.

        Raises:
            ScenarioError: A step failed without expect_error, or raised a
                different error than expected, or succeeded when a failure was expected
        """
        result = ScenarioResult(name=self.scenario.name)
        logger.info("scenario.started", name=self.scenario.name, steps=len(self.scenario.steps))

        for index, step in enumerate(self.scenario.steps, start=1):
            result.outcomes.append(self._run_step(index, step))

        self._snapshot(result)
        logger.info("scenario.completed", name=self.scenario.name, state=result.state.value)
        return result

    def _run_step(self, index: int, step: ScenarioStep) -> StepOutcome:
        try:
            detail = self._actions[step.action](step.params)
        except Exception as e:
            error_name = type(e).__name__
            if step.expect_error is None:
                logger.error("scenario.step.failed", index=index, action=step.action, error=str(e))
                raise ScenarioError(f"Step {index} ({step.action}) failed: {error_name}: {e}", index, step.action) from e
            if error_name != step.expect_error:
                raise ScenarioError(
                    f"Step {index} ({step.action}) raised {error_name}, expected {step.expect_error}: {e}",
                    index,
                    step.action,
                ) from e
            logger.info("scenario.step.expected_failure", index=index, action=step.action, error=error_name)
            return StepOutcome(index=index, action=step.action, ok=False, detail=str(e), error=error_name)

        if step.expect_error is not None:
            raise ScenarioError(
                f"Step {index} ({step.action}) succeeded, expected {step.expect_error}", index, step.action
            )
        logger.debug("scenario.step.completed", index=index, action=step.action, detail=detail)
        return StepOutcome(index=index, action=step.action, ok=True, detail=detail)

    def _snapshot(self, result: ScenarioResult) -> None:
        world = self.world
        position = world.lending.position(world.market_params.market_id, world.basket.address)
        result.positions = world.basket.get_positions()
        result.state = world.module.get_state(world.basket)
        result.total_supply = world.basket.total_supply()
        result.collateral_balance = position.collateral
        result.borrow_balance = world.module.get_borrow_balance(world.basket)
        result.events = world.event_bus.get_history()

    # ------------------------------------------------------------------
    # Amount helpers
    # ------------------------------------------------------------------

    def _collateral(self, params: dict[str, Any], key: str, default: Any = None) -> int:
        return to_wei(params.get(key, default), self.world.spec.collateral.decimals)

    def _loan(self, params: dict[str, Any], key: str, default: Any = None) -> int:
        return to_wei(params.get(key, default), self.world.spec.loan.decimals)

    def _adapter(self, params: dict[str, Any]) -> str:
        return params.get("adapter", self.world.spec.adapter_name)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _enter_collateral(self, params: dict[str, Any]) -> str:
        world = self.world
        supplied = world.module.enter_collateral_position(world.basket, caller=world.accounts.manager)
        return f"supplied {supplied} collateral"

    def _lever(self, params: dict[str, Any]) -> str:
        world = self.world
        result = world.module.lever(
            world.basket,
            self._loan(params, "borrow"),
            self._collateral(params, "min_receive", "0"),
            self._adapter(params),
            params.get("trade_data"),
            caller=world.accounts.manager,
        )
        return f"borrowed {result.total_borrow}, received {result.total_received}, fee {result.protocol_fee}"

    def _delever(self, params: dict[str, Any]) -> str:
        world = self.world
        result = world.module.delever(
            world.basket,
            self._collateral(params, "redeem"),
            self._loan(params, "min_repay", "0"),
            self._adapter(params),
            params.get("trade_data"),
            caller=world.accounts.manager,
        )
        return f"redeemed {result.total_redeem}, repaid {result.total_repay}, fully delevered {result.fully_delevered}"

    def _delever_to_zero(self, params: dict[str, Any]) -> str:
        world = self.world
        repaid = world.module.delever_to_zero_borrow_balance(
            world.basket,
            self._collateral(params, "redeem"),
            self._adapter(params),
            params.get("trade_data"),
            caller=world.accounts.manager,
        )
        return f"repaid {repaid}"

    def _sync(self, params: dict[str, Any]) -> str:
        world = self.world
        result = world.module.sync(world.basket, caller=params.get("caller"))
        if result is None:
            return "no supply"
        return f"collateral unit {result.collateral_unit}, borrow unit {result.borrow_unit}"

    def _advance_time(self, params: dict[str, Any]) -> str:
        seconds = int(params["seconds"])
        self.world.lending.advance_time(seconds)
        return f"+{seconds}s"

    def _set_oracle_price(self, params: dict[str, Any]) -> str:
        world = self.world
        price = world.oracle_price(to_fraction(params["price"]))
        world.lending.set_oracle_price(world.accounts.oracle, price)
        return f"oracle price {price}"

    def _set_swap_price(self, params: dict[str, Any]) -> str:
        self.world.set_swap_price(to_fraction(params["price"]))
        return f"swap price {params['price']}"

    def _liquidate(self, params: dict[str, Any]) -> str:
        """Liquidate the basket; the liquidator is funded with whatever loan asset it needs."""
        world = self.world
        liquidator = world.accounts.liquidator
        seized = self._collateral(params, "seized", "0")
        repaid_shares = int(params.get("repaid_shares", 0))
        world.bank.mint(world.loan, liquidator, world.module.get_borrow_balance(world.basket))
        world.bank.approve(
            world.loan, liquidator, world.lending.address, world.bank.balance_of(world.loan, liquidator)
        )
        with world.journal.atomic():
            seized_assets, repaid_assets = world.lending.liquidate(
                world.market_params, world.basket.address, seized, repaid_shares, caller=liquidator
            )
        return f"seized {seized_assets}, repaid {repaid_assets}"

    def _issue(self, params: dict[str, Any]) -> str:
        quantity = to_wei(params["quantity"], 18)
        issue(self.world, quantity)
        return f"issued {quantity} ({quantity / PRECISE_UNIT:g} tokens)"

    def _redeem(self, params: dict[str, Any]) -> str:
        quantity = to_wei(params["quantity"], 18)
        redeem(self.world, quantity)
        return f"redeemed {quantity} ({quantity / PRECISE_UNIT:g} tokens)"
