"""
In-memory world builder.

Wires every collaborator the leverage module needs (token bank, call
router, controller, integration registry, lending market, exchange venue,
debt-issuance orchestrator, basket token, transaction journal, event bus),
then walks the basket through setup: controller registration, module
initialization, market creation with third-party liquidity, and an initial
issuance so the basket has supply.
"""

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Optional

from basketlever.events.event_bus import EventBus
from basketlever.services.chain.bank import TokenBank
from basketlever.services.chain.journal import TransactionJournal
from basketlever.services.chain.router import CallRouter
from basketlever.services.controller.controller import PROTOCOL_TRADE_FEE_INDEX, Controller
from basketlever.services.exchange.simulated import SimulatedExchangeAdapter, SimulatedVenue
from basketlever.services.integration.registry import IntegrationRegistry
from basketlever.services.issuance.debt_issuance import DebtIssuanceModule
from basketlever.services.ledger.basket_token import BasketToken
from basketlever.services.lending.market import ORACLE_PRICE_SCALE, SimulatedLendingMarket
from basketlever.services.lending.models import WAD, MarketParams
from basketlever.services.leverage.engine import LeverageModule
from basketlever.services.scenario.models import WorldSpec, to_fraction, to_wei
from basketlever.system import LoggerFactory
from basketlever.system.config import SystemConfig, get_system_config

logger = LoggerFactory.get_logger()


@dataclass(frozen=True)
class Accounts:
    """Well-known addresses used by the simulated world."""

    owner: str = "0x0wner"
    manager: str = "0xmanager"
    issuer: str = "0x1ssuer"
    lender: str = "0x1ender"
    liquidator: str = "0x11quidator"
    controller: str = "0xc0ntroller"
    lending_market: str = "0xm0rpho"
    venue: str = "0xvenue"
    issuance_module: str = "0xdebt1ssuance"
    leverage_module: str = "0x1everage"
    basket: str = "0xbasket"
    oracle: str = "0x0racle"
    interest_rate_model: str = "0x1rm"


@dataclass
class World:
    """Every wired collaborator plus the basket under test."""

    config: SystemConfig
    spec: WorldSpec
    accounts: Accounts
    bank: TokenBank
    router: CallRouter
    controller: Controller
    integration_registry: IntegrationRegistry
    lending: SimulatedLendingMarket
    venue: SimulatedVenue
    adapter: SimulatedExchangeAdapter
    issuance: DebtIssuanceModule
    module: LeverageModule
    basket: BasketToken
    journal: TransactionJournal
    event_bus: EventBus
    market_params: MarketParams
    symbols: dict[str, str] = field(default_factory=dict)

    @property
    def collateral(self) -> str:
        return self.market_params.collateral_asset

    @property
    def loan(self) -> str:
        return self.market_params.loan_asset

    def decimals(self, asset: str) -> int:
        return self.bank.decimals(asset)

    def oracle_price(self, price: Fraction) -> int:
        """Loan wei per collateral wei at 1e36 scale for a human price."""
        scaled = price * ORACLE_PRICE_SCALE * Fraction(10) ** (self.spec.loan.decimals - self.spec.collateral.decimals)
        return int(scaled)

    def set_swap_price(self, price: Fraction) -> None:
        """Set both venue directions from a human price (loan per whole collateral)."""
        loan_scale = 10**self.spec.loan.decimals
        collateral_scale = 10**self.spec.collateral.decimals
        self.venue.set_rate(self.loan, self.collateral, collateral_scale * price.denominator, price.numerator * loan_scale)
        self.venue.set_rate(self.collateral, self.loan, price.numerator * loan_scale, price.denominator * collateral_scale)


def build_world(config: Optional[SystemConfig] = None, spec: Optional[WorldSpec] = None) -> World:
    """
    Build and set up a world ready for enter_collateral_position.

    Args:
        config: System config (default: loaded system config)
        spec: World parameters (default: WorldSpec())

    Returns:
        World with the leverage module initialized on the basket and the
        basket holding its Default collateral position
    """
    config = config if config is not None else get_system_config()
    spec = spec if spec is not None else WorldSpec()
    accounts = Accounts()
    leverage_settings = config.leverage

    bank = TokenBank()
    bank.register_asset(spec.collateral.address, spec.collateral.decimals, symbol=spec.collateral.symbol)
    bank.register_asset(spec.loan.address, spec.loan.decimals, symbol=spec.loan.symbol)
    router = CallRouter()

    controller = Controller(accounts.controller, accounts.owner, fee_recipient=leverage_settings.fee_recipient)
    integration_registry = IntegrationRegistry(accounts.owner)

    lending = SimulatedLendingMarket(accounts.lending_market, bank)
    router.register(lending)

    venue = SimulatedVenue(accounts.venue, bank, fee_bps=spec.venue_fee_bps)
    router.register(venue)
    adapter = SimulatedExchangeAdapter(venue)

    issuance = DebtIssuanceModule(accounts.issuance_module, controller, bank, router)
    journal = TransactionJournal([bank, controller, lending, issuance])
    event_bus = EventBus(max_history=config.events.max_history, display_events=config.events.display_events)

    module = LeverageModule(
        accounts.leverage_module,
        accounts.owner,
        controller,
        integration_registry,
        lending,
        settings=leverage_settings,
        event_bus=event_bus,
        journal=journal,
    )
    router.register(module)

    controller.add_module(issuance.address, caller=accounts.owner)
    controller.add_module(module.address, caller=accounts.owner)
    controller.edit_fee(
        module.address, PROTOCOL_TRADE_FEE_INDEX, leverage_settings.protocol_fee_bps, caller=accounts.owner
    )
    integration_registry.add_integration(module.address, spec.adapter_name, adapter, caller=accounts.owner)
    integration_registry.add_integration(
        module.address, leverage_settings.default_issuance_module_name, issuance, caller=accounts.owner
    )

    market_params = MarketParams(
        collateral_asset=spec.collateral.address,
        loan_asset=spec.loan.address,
        oracle=accounts.oracle,
        interest_rate_model=accounts.interest_rate_model,
        liquidation_threshold=int(to_fraction(spec.liquidation_threshold) * WAD),
    )

    basket = BasketToken(
        accounts.basket,
        accounts.manager,
        bank,
        router,
        controller,
        components=[spec.collateral.address],
        units=[to_wei(spec.collateral_unit, spec.collateral.decimals)],
        name="Leveraged Basket",
    )
    journal.add(basket)

    world = World(
        config=config,
        spec=spec,
        accounts=accounts,
        bank=bank,
        router=router,
        controller=controller,
        integration_registry=integration_registry,
        lending=lending,
        venue=venue,
        adapter=adapter,
        issuance=issuance,
        module=module,
        basket=basket,
        journal=journal,
        event_bus=event_bus,
        market_params=market_params,
        symbols={
            spec.collateral.address: spec.collateral.symbol,
            spec.loan.address: spec.loan.symbol,
            basket.address: basket.name,
        },
    )

    price = to_fraction(spec.price)
    lending.set_oracle_price(accounts.oracle, world.oracle_price(price))
    lending.set_borrow_rate(accounts.interest_rate_model, spec.borrow_rate_per_second)
    lending.create_market(market_params)
    _supply_liquidity(world, to_wei(spec.lender_liquidity, spec.loan.decimals))

    world.set_swap_price(to_fraction(spec.swap_price) if spec.swap_price is not None else price)
    bank.mint(spec.collateral.address, venue.address, to_wei(spec.venue_liquidity_collateral, spec.collateral.decimals))
    bank.mint(spec.loan.address, venue.address, to_wei(spec.venue_liquidity_loan, spec.loan.decimals))

    controller.add_set(basket.address, caller=accounts.owner)
    basket.add_module(issuance.address, caller=accounts.manager)
    basket.add_module(module.address, caller=accounts.manager)
    issuance.initialize(basket, caller=accounts.manager)
    module.update_allowed_set_token(basket.address, True, caller=accounts.owner)
    module.initialize(basket, market_params, caller=accounts.manager)

    initial_supply = to_wei(spec.basket_supply, 18)
    if initial_supply > 0:
        issue(world, initial_supply)

    logger.info(
        "scenario.world.built",
        basket=basket.address,
        market_id=market_params.market_id,
        total_supply=basket.total_supply(),
    )
    return world


def _supply_liquidity(world: World, amount: int) -> None:
    if amount == 0:
        return
    lender = world.accounts.lender
    world.bank.mint(world.loan, lender, amount)
    world.bank.approve(world.loan, lender, world.lending.address, amount)
    world.lending.supply(world.market_params, amount, 0, lender, caller=lender)


def issue(world: World, quantity: int, account: Optional[str] = None) -> None:
    """Fund account with the equity it needs, then issue quantity basket tokens to it atomically."""
    account = account or world.accounts.issuer
    with world.journal.atomic():
        # Units are synced by the module hook inside issue(); quote after a sync so funding matches.
        if world.basket.total_supply() > 0:
            world.module.sync(world.basket)
        required = world.issuance.get_required_component_issuance_units(world.basket, quantity)
        for component, equity in zip(required.components, required.equity):
            if equity > 0:
                _fund(world, component, account, equity)
        world.issuance.issue(world.basket, quantity, account, caller=account)


def redeem(world: World, quantity: int, account: Optional[str] = None) -> None:
    """Fund account with the debt it must return, then redeem quantity basket tokens atomically."""
    account = account or world.accounts.issuer
    with world.journal.atomic():
        world.module.sync(world.basket)
        required = world.issuance.get_required_component_redemption_units(world.basket, quantity)
        for component, debt in zip(required.components, required.debt):
            if debt > 0:
                _fund(world, component, account, debt)
        world.issuance.redeem(world.basket, quantity, account, caller=account)


def _fund(world: World, asset: str, account: str, amount: int) -> None:
    shortfall = amount - world.bank.balance_of(asset, account)
    if shortfall > 0:
        world.bank.mint(asset, account, shortfall)
    world.bank.approve(asset, account, world.issuance.address, amount)
