"""
Leverage Engine.

Levers and delevers a basket token against one isolated lending market.
Collateral supplied to the market and debt borrowed from it are recorded as
External positions owned by this module; trades between the loan and
collateral assets go through exchange adapters resolved by name from the
integration registry.

Lending-market and exchange calls are executed through the basket token's
invoke(), so the market and venue see the basket as the account acting.
All position units are re-derived from ground-truth balances after each
operation, since interest accrual and liquidation move them between calls.

Every public operation either completes or leaves no trace: guards run
before any mutation, and mutations run inside the transaction journal when
one is supplied.
"""

from contextlib import contextmanager, nullcontext
from dataclasses import replace
from typing import Any, ContextManager, Iterator, Optional, Type

from basketlever.events.event_bus import IEventBus
from basketlever.events.events import (
    BaseEvent,
    CollateralPositionEnteredEvent,
    FullyDeleveredEvent,
    LeverageDecreasedEvent,
    LeverageIncreasedEvent,
    ModuleInitializedEvent,
    PositionsSyncedEvent,
)
from basketlever.libraries.precise_math import precise_mul
from basketlever.libraries.registry import RegistryError
from basketlever.libraries.shares_math import to_assets_up
from basketlever.services.chain.journal import TransactionJournal
from basketlever.services.chain.models import CallPayload
from basketlever.services.controller.controller import PROTOCOL_TRADE_FEE_INDEX
from basketlever.services.controller.interface import IController
from basketlever.services.exchange.resolver import ExchangeAdapterResolver
from basketlever.services.integration.registry import IIntegrationRegistry
from basketlever.services.ledger.adapter import PositionLedgerAdapter, get_notional_from_unit, get_unit_from_notional
from basketlever.services.ledger.interface import IBasketToken
from basketlever.services.ledger.models import PositionKind
from basketlever.services.lending.interface import ILendingMarket
from basketlever.services.lending.models import MarketParams
from basketlever.services.leverage.errors import (
    AuthorizationError,
    InvariantViolationError,
    LeverageModuleError,
    ReentrancyError,
    SlippageError,
    StatePreconditionError,
)
from basketlever.services.leverage.governance import AllowList, GovernanceMixin
from basketlever.services.leverage.hooks import IssuanceHooksMixin
from basketlever.services.leverage.models import (
    ActionInfo,
    DeleverResult,
    LeverageState,
    LeverResult,
    ModuleSettings,
    SyncResult,
)
from basketlever.system import LoggerFactory
from basketlever.system.config import LeverageSettings, get_system_config

logger = LoggerFactory.get_logger()


class LeverageModule(IssuanceHooksMixin, GovernanceMixin):
    """
    Leveraged-position module for basket tokens.

    One instance serves any number of basket tokens; per-basket state lives
    in a dict keyed by basket address. Quantities passed to lever/delever are
    per basket unit (1e18 scale) and converted to notional with the basket's
    total supply.

    Example:
        >>> module = LeverageModule("0xlev", "0xowner", controller, integrations, market,
        ...                         event_bus=bus, journal=journal)
        >>> module.initialize(basket, market_params, caller=basket.manager)
        >>> module.enter_collateral_position(basket, caller=basket.manager)
        >>> module.lever(basket, 1000 * 10**6, 10**17, "UNISWAP", None, caller=basket.manager)
    """

    EXTERNAL_METHODS = frozenset(
        {
            "remove_module",
            "module_issue_hook",
            "module_redeem_hook",
            "module_post_issue_hook",
            "module_post_redeem_hook",
            "component_issue_hook",
            "component_redeem_hook",
        }
    )

    def __init__(
        self,
        address: str,
        owner: str,
        controller: IController,
        integration_registry: IIntegrationRegistry,
        lending_market: ILendingMarket,
        *,
        settings: Optional[LeverageSettings] = None,
        event_bus: Optional[IEventBus] = None,
        journal: Optional[TransactionJournal] = None,
        allow_list: Optional[AllowList] = None,
    ) -> None:
        """
        Initialize the module.

        Args:
            address: Module address (must be enabled on the controller before use)
            owner: Account allowed to edit the allow-list
            controller: System controller (module/basket registry, protocol fee)
            integration_registry: Source of exchange adapters and the issuance orchestrator
            lending_market: Lending market every basket's market lives on
            settings: Leverage settings (default: loaded system config)
            event_bus: Receives domain and control events (optional)
            journal: Rolls every participant back on failure (optional)
            allow_list: Baskets allowed to initialize (default: empty list)
        """
        self.address = address
        self.owner = owner
        self.config = settings if settings is not None else get_system_config().leverage
        self._controller = controller
        self._integration_registry = integration_registry
        self._lending = lending_market
        self._event_bus = event_bus
        self._journal = journal
        self._allow_list = allow_list if allow_list is not None else AllowList()
        self._resolver = ExchangeAdapterResolver(integration_registry, address)

        self._settings: dict[str, ModuleSettings] = {}
        self._active: set[str] = set()

        if journal is not None:
            journal.add(self)

        logger.debug(
            "leverage.module.created",
            address=address,
            lending_market=lending_market.address,
            sync_after_component_hooks=self.config.sync_after_component_hooks,
        )

    # ------------------------------------------------------------------
    # Guards and transactions
    # ------------------------------------------------------------------

    def _reject(
        self,
        error_cls: Type[LeverageModuleError],
        message: str,
        operation: str,
        basket_address: Optional[str],
        **context: Any,
    ) -> LeverageModuleError:
        """Log a rejected call and build the error for the caller to raise."""
        logger.warning(
            "leverage.guard.rejected",
            operation=operation,
            basket=basket_address,
            reason=message,
            error_type=error_cls.__name__,
            **context,
        )
        return error_cls(message, operation=operation, basket=basket_address)

    def _validate_initialized(self, basket: IBasketToken, operation: str) -> ModuleSettings:
        settings = self._settings.get(basket.address)
        if (
            settings is None
            or not self._controller.is_set(basket.address)
            or not basket.is_initialized_module(self.address)
        ):
            raise self._reject(
                StatePreconditionError, "Must be a valid and initialized SetToken", operation, basket.address
            )
        return settings

    def _validate_manager_call(self, basket: IBasketToken, caller: str, operation: str) -> ModuleSettings:
        if caller != basket.manager:
            raise self._reject(
                AuthorizationError, "Must be the SetToken manager", operation, basket.address, caller=caller
            )
        return self._validate_initialized(basket, operation)

    def _atomic(self) -> ContextManager[None]:
        if self._journal is None:
            return nullcontext()
        return self._journal.atomic()

    @contextmanager
    def _transaction(self, basket_address: str, operation: str) -> Iterator[None]:
        """Per-basket reentrancy guard wrapped around an atomic block."""
        if basket_address in self._active:
            raise self._reject(ReentrancyError, "ReentrancyGuard: reentrant call", operation, basket_address)

        self._active.add(basket_address)
        try:
            with self._atomic():
                yield
        except LeverageModuleError:
            raise
        except Exception as e:
            logger.error(
                "leverage.operation.failed",
                operation=operation,
                basket=basket_address,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            self._active.discard(basket_address)

    def _publish(self, event: BaseEvent) -> None:
        """Publish now, or after the enclosing journal transaction commits."""
        if self._event_bus is None:
            return
        bus = self._event_bus
        if self._journal is None:
            bus.publish(event)
        else:
            self._journal.defer(lambda: bus.publish(event))

    # ------------------------------------------------------------------
    # Lending primitives (executed by the basket token)
    # ------------------------------------------------------------------

    def _invoke_lending(self, basket: IBasketToken, method: str, **kwargs: Any) -> Any:
        payload = CallPayload(method=method, kwargs=kwargs)
        return basket.invoke(self._lending.address, 0, payload, caller=self.address)

    def _supply_collateral(self, basket: IBasketToken, settings: ModuleSettings, amount: int) -> None:
        basket.invoke_approve(settings.collateral_asset, self._lending.address, amount, caller=self.address)
        self._invoke_lending(
            basket, "supply_collateral", params=settings.market_params, assets=amount, on_behalf=basket.address
        )

    def _withdraw_collateral(self, basket: IBasketToken, settings: ModuleSettings, amount: int) -> None:
        self._invoke_lending(
            basket,
            "withdraw_collateral",
            params=settings.market_params,
            assets=amount,
            on_behalf=basket.address,
            receiver=basket.address,
        )

    def _borrow(self, basket: IBasketToken, settings: ModuleSettings, amount: int) -> int:
        assets, _shares = self._invoke_lending(
            basket,
            "borrow",
            params=settings.market_params,
            assets=amount,
            shares=0,
            on_behalf=basket.address,
            receiver=basket.address,
        )
        return assets

    def _repay_debt(self, basket: IBasketToken, settings: ModuleSettings, amount: int) -> int:
        """
        Repay up to amount of loan asset.

        When amount covers the outstanding debt, every borrow share is repaid
        so the position reaches exactly zero.

        Returns:
            Loan asset actually repaid
        """
        params = settings.market_params
        self._lending.accrue_interest(params)
        borrow_shares = self._lending.position(settings.market_id, basket.address).borrow_shares
        if borrow_shares == 0 or amount == 0:
            return 0

        market = self._lending.market(settings.market_id)
        debt = to_assets_up(borrow_shares, market.total_borrow_assets, market.total_borrow_shares)
        basket.invoke_approve(settings.loan_asset, self._lending.address, min(amount, debt), caller=self.address)
        if amount >= debt:
            repaid, _shares = self._invoke_lending(
                basket, "repay", params=params, assets=0, shares=borrow_shares, on_behalf=basket.address
            )
        else:
            repaid, _shares = self._invoke_lending(
                basket, "repay", params=params, assets=amount, shares=0, on_behalf=basket.address
            )
        return repaid

    # ------------------------------------------------------------------
    # Trade helpers
    # ------------------------------------------------------------------

    def _create_action_info(
        self,
        basket: IBasketToken,
        send_quantity: int,
        min_receive_quantity: int,
        receive_asset: str,
        adapter_name: str,
        operation: str,
    ) -> ActionInfo:
        total_supply = basket.total_supply()
        notional_send = precise_mul(send_quantity, total_supply)
        if notional_send == 0:
            raise self._reject(StatePreconditionError, "Quantity is 0", operation, basket.address)

        try:
            adapter = self._resolver.resolve(adapter_name)
        except RegistryError as e:
            raise self._reject(
                StatePreconditionError, "Must be valid adapter", operation, basket.address, adapter_name=adapter_name
            ) from e

        return ActionInfo(
            basket=basket,
            total_supply=total_supply,
            notional_send_quantity=notional_send,
            min_notional_receive_quantity=precise_mul(min_receive_quantity, total_supply),
            pre_trade_receive_token_balance=basket.balance_of(receive_asset),
            adapter_name=adapter_name,
            adapter=adapter,
        )

    def _execute_trade(self, action: ActionInfo, send_asset: str, receive_asset: str, operation: str) -> int:
        """Approve the adapter's spender, run the trade through the basket, return the amount received."""
        basket = action.basket
        basket.invoke_approve(
            send_asset, action.adapter.get_spender(), action.notional_send_quantity, caller=self.address
        )
        call = action.adapter.get_trade_calldata(
            send_asset,
            receive_asset,
            basket.address,
            action.notional_send_quantity,
            action.min_notional_receive_quantity,
            action.trade_data,
        )
        basket.invoke(call.target, call.value, call.payload, caller=self.address)

        received = basket.balance_of(receive_asset) - action.pre_trade_receive_token_balance
        if received < action.min_notional_receive_quantity:
            raise self._reject(
                SlippageError,
                "Slippage too high",
                operation,
                basket.address,
                received=received,
                minimum=action.min_notional_receive_quantity,
            )
        return received

    def _accrue_protocol_fee(self, basket: IBasketToken, asset: str, received: int) -> int:
        fee_bps = self._controller.get_module_fee(self.address, PROTOCOL_TRADE_FEE_INDEX)
        fee = received * fee_bps // 10_000
        if fee > 0:
            basket.invoke_transfer(asset, self._controller.fee_recipient(), fee, caller=self.address)
        return fee

    # ------------------------------------------------------------------
    # Position derivation
    # ------------------------------------------------------------------

    def _sync_positions(self, basket: IBasketToken, settings: ModuleSettings, total_supply: int) -> SyncResult:
        """
        Rewrite both External positions from lending-market and token balances.

        The collateral External unit is written before the Default unit is
        cleared so the component keeps its place in the position list.
        """
        params = settings.market_params
        self._lending.accrue_interest(params)
        position = self._lending.position(settings.market_id, basket.address)
        market = self._lending.market(settings.market_id)
        ledger = PositionLedgerAdapter(basket, self.address)

        collateral_notional = position.collateral + basket.balance_of(settings.collateral_asset)
        collateral_unit = get_unit_from_notional(collateral_notional, total_supply)
        ledger.write_position(settings.collateral_asset, PositionKind.EXTERNAL, self.address, collateral_unit)
        ledger.write_position(settings.collateral_asset, PositionKind.DEFAULT, None, 0)

        borrow_notional = to_assets_up(position.borrow_shares, market.total_borrow_assets, market.total_borrow_shares)
        borrow_unit = -get_unit_from_notional(borrow_notional, total_supply, round_up=True)
        ledger.write_position(settings.loan_asset, PositionKind.EXTERNAL, self.address, borrow_unit)

        return SyncResult(
            total_supply=total_supply,
            collateral_unit=collateral_unit,
            collateral_notional=collateral_notional,
            borrow_unit=borrow_unit,
            borrow_notional=borrow_notional,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self, basket: IBasketToken, market_params: MarketParams, *, caller: str) -> None:
        """
        Initialize the module on a basket token and latch its lending market.

        The market cannot be changed afterwards; a second call fails.

        Raises:
            AuthorizationError: caller is not the basket manager
            StatePreconditionError: any other precondition fails
        """
        operation = "initialize"
        if caller != basket.manager:
            raise self._reject(
                AuthorizationError, "Must be the SetToken manager", operation, basket.address, caller=caller
            )
        if not self._controller.is_set(basket.address):
            raise self._reject(StatePreconditionError, "Must be controller-enabled SetToken", operation, basket.address)
        if not basket.is_pending_module(self.address):
            raise self._reject(StatePreconditionError, "Must be pending initialization", operation, basket.address)
        if not self._allow_list.is_allowed(basket.address):
            raise self._reject(StatePreconditionError, "Not allowed SetToken", operation, basket.address)
        if basket.address in self._settings:
            raise self._reject(StatePreconditionError, "Market already initialized", operation, basket.address)

        market_id = market_params.market_id
        if self._lending.market(market_id).last_update == 0:
            raise self._reject(
                StatePreconditionError, "Market not created", operation, basket.address, market_id=market_id
            )

        issuance_module = self._integration_registry.get_integration_adapter(
            self.address, self.config.default_issuance_module_name
        )
        if issuance_module is None:
            raise self._reject(
                StatePreconditionError,
                "Must be valid adapter",
                operation,
                basket.address,
                adapter_name=self.config.default_issuance_module_name,
            )
        if not basket.is_initialized_module(issuance_module.address):
            raise self._reject(StatePreconditionError, "Issuance not initialized", operation, basket.address)

        with self._atomic():
            basket.initialize_module(caller=self.address)
            settings = ModuleSettings(
                basket=basket,
                market_params=market_params,
                allow_list_version=self._allow_list.version,
            )
            self._settings[basket.address] = settings
            issuance_module.register_to_issuance_module(basket, caller=self.address)
            settings.issuance_modules[issuance_module.address] = issuance_module

        logger.info(
            "leverage.module.initialized",
            basket=basket.address,
            market_id=market_id,
            allow_list_version=settings.allow_list_version,
        )
        self._publish(
            ModuleInitializedEvent(
                basket_token=basket.address,
                market_id=market_id,
                collateral_asset=market_params.collateral_asset,
                loan_asset=market_params.loan_asset,
                allow_list_version=settings.allow_list_version,
            )
        )

    # ------------------------------------------------------------------
    # Manager operations
    # ------------------------------------------------------------------

    def enter_collateral_position(self, basket: IBasketToken, *, caller: str) -> int:
        """
        Move the basket's Default collateral into the lending market.

        The Default collateral unit becomes an External unit of the same
        size. If an External collateral unit already exists, the unit is
        re-derived from balances instead.

        Returns:
            Collateral supplied (notional)
        """
        operation = "enter_collateral_position"
        settings = self._validate_manager_call(basket, caller, operation)
        collateral = settings.collateral_asset

        with self._transaction(basket.address, operation):
            total_supply = basket.total_supply()
            ledger = PositionLedgerAdapter(basket, self.address)
            default_unit = ledger.default_unit(collateral)
            notional = get_notional_from_unit(default_unit, total_supply)
            if notional == 0:
                raise self._reject(StatePreconditionError, "Collateral balance is 0", operation, basket.address)

            self._supply_collateral(basket, settings, notional)
            if ledger.external_unit(collateral) == 0:
                ledger.write_position(collateral, PositionKind.EXTERNAL, self.address, default_unit)
                ledger.write_position(collateral, PositionKind.DEFAULT, None, 0)
                collateral_unit = default_unit
            else:
                collateral_unit = self._sync_positions(basket, settings, total_supply).collateral_unit

        logger.info(
            "leverage.collateral.entered",
            basket=basket.address,
            collateral_supplied=notional,
            collateral_unit=collateral_unit,
        )
        self._publish(
            CollateralPositionEnteredEvent(
                basket_token=basket.address,
                market_id=settings.market_id,
                collateral_asset=collateral,
                collateral_supplied=notional,
                collateral_unit=collateral_unit,
            )
        )
        return notional

    def lever(
        self,
        basket: IBasketToken,
        borrow_quantity: int,
        min_receive_quantity: int,
        adapter_name: str,
        trade_data: Any = None,
        *,
        caller: str,
    ) -> LeverResult:
        """
        Borrow the loan asset, trade it for collateral and supply the collateral.

        Args:
            basket: Basket token to lever
            borrow_quantity: Loan asset to borrow per basket unit
            min_receive_quantity: Minimum collateral to receive per basket unit
            adapter_name: Exchange adapter registered for this module
            trade_data: Route data passed through to the adapter

        Raises:
            SlippageError: Trade returned less than the minimum
        """
        operation = "lever"
        settings = self._validate_manager_call(basket, caller, operation)

        with self._transaction(basket.address, operation):
            self._lending.accrue_interest(settings.market_params)
            action = self._create_action_info(
                basket, borrow_quantity, min_receive_quantity, settings.collateral_asset, adapter_name, operation
            )
            action.trade_data = trade_data

            self._borrow(basket, settings, action.notional_send_quantity)
            received = self._execute_trade(action, settings.loan_asset, settings.collateral_asset, operation)
            fee = self._accrue_protocol_fee(basket, settings.collateral_asset, received)
            supplied = received - fee
            if supplied > 0:
                self._supply_collateral(basket, settings, supplied)
            synced = self._sync_positions(basket, settings, action.total_supply)

        logger.info(
            "leverage.lever.completed",
            basket=basket.address,
            adapter=adapter_name,
            total_borrow=action.notional_send_quantity,
            total_received=received,
            protocol_fee=fee,
            collateral_unit=synced.collateral_unit,
            borrow_unit=synced.borrow_unit,
        )
        self._publish(
            LeverageIncreasedEvent(
                basket_token=basket.address,
                borrow_asset=settings.loan_asset,
                collateral_asset=settings.collateral_asset,
                exchange_adapter=adapter_name,
                total_borrow=action.notional_send_quantity,
                total_received=received,
                protocol_fee=fee,
            )
        )
        return LeverResult(
            total_borrow=action.notional_send_quantity,
            total_received=received,
            protocol_fee=fee,
            collateral_supplied=supplied,
            collateral_unit=synced.collateral_unit,
            borrow_unit=synced.borrow_unit,
        )

    def delever(
        self,
        basket: IBasketToken,
        redeem_quantity: int,
        min_repay_quantity: int,
        adapter_name: str,
        trade_data: Any = None,
        *,
        caller: str,
    ) -> DeleverResult:
        """
        Withdraw collateral, trade it for the loan asset and repay debt.

        Repays min(received - fee, outstanding debt); anything left over stays
        on the basket as a Default loan-asset position.

        Args:
            basket: Basket token to delever
            redeem_quantity: Collateral to withdraw per basket unit
            min_repay_quantity: Minimum loan asset to receive per basket unit
            adapter_name: Exchange adapter registered for this module
            trade_data: Route data passed through to the adapter
        """
        operation = "delever"
        settings = self._validate_manager_call(basket, caller, operation)

        with self._transaction(basket.address, operation):
            self._lending.accrue_interest(settings.market_params)
            action = self._create_action_info(
                basket, redeem_quantity, min_repay_quantity, settings.loan_asset, adapter_name, operation
            )
            action.trade_data = trade_data

            self._withdraw_collateral(basket, settings, action.notional_send_quantity)
            received = self._execute_trade(action, settings.collateral_asset, settings.loan_asset, operation)
            fee = self._accrue_protocol_fee(basket, settings.loan_asset, received)
            repaid = self._repay_debt(basket, settings, received - fee)
            self._update_leftover_loan_position(action, settings)
            synced = self._sync_positions(basket, settings, action.total_supply)
            fully_delevered = self._lending.position(settings.market_id, basket.address).borrow_shares == 0

        logger.info(
            "leverage.delever.completed",
            basket=basket.address,
            adapter=adapter_name,
            total_redeem=action.notional_send_quantity,
            total_received=received,
            total_repay=repaid,
            protocol_fee=fee,
            fully_delevered=fully_delevered,
        )
        self._publish(
            LeverageDecreasedEvent(
                basket_token=basket.address,
                collateral_asset=settings.collateral_asset,
                repay_asset=settings.loan_asset,
                exchange_adapter=adapter_name,
                total_redeem=action.notional_send_quantity,
                total_received=received,
                total_repay=repaid,
                protocol_fee=fee,
            )
        )
        if fully_delevered:
            self._publish_fully_delevered(basket, settings, synced)

        return DeleverResult(
            total_redeem=action.notional_send_quantity,
            total_received=received,
            protocol_fee=fee,
            total_repay=repaid,
            collateral_unit=synced.collateral_unit,
            borrow_unit=synced.borrow_unit,
            fully_delevered=fully_delevered,
        )

    def delever_to_zero_borrow_balance(
        self,
        basket: IBasketToken,
        redeem_quantity: int,
        adapter_name: str,
        trade_data: Any = None,
        *,
        caller: str,
    ) -> int:
        """
        Delever and repay every borrow share.

        The trade must return at least the full debt, rounded up. No protocol
        fee is taken, since the whole proceeds may be needed for the repayment.

        Returns:
            Loan asset repaid

        Raises:
            InvariantViolationError: The basket has no borrow to repay
            SlippageError: Trade returned less than the outstanding debt
        """
        operation = "delever_to_zero_borrow_balance"
        settings = self._validate_manager_call(basket, caller, operation)

        with self._transaction(basket.address, operation):
            params = settings.market_params
            self._lending.accrue_interest(params)
            borrow_shares = self._lending.position(settings.market_id, basket.address).borrow_shares
            if borrow_shares == 0:
                raise self._reject(InvariantViolationError, "Borrow balance is zero", operation, basket.address)

            market = self._lending.market(settings.market_id)
            debt = to_assets_up(borrow_shares, market.total_borrow_assets, market.total_borrow_shares)
            action = self._create_action_info(
                basket, redeem_quantity, 0, settings.loan_asset, adapter_name, operation
            )
            action.min_notional_receive_quantity = debt
            action.trade_data = trade_data

            self._withdraw_collateral(basket, settings, action.notional_send_quantity)
            received = self._execute_trade(action, settings.collateral_asset, settings.loan_asset, operation)
            repaid = self._repay_debt(basket, settings, received)
            self._update_leftover_loan_position(action, settings)
            synced = self._sync_positions(basket, settings, action.total_supply)

        logger.info(
            "leverage.delever_to_zero.completed",
            basket=basket.address,
            adapter=adapter_name,
            total_redeem=action.notional_send_quantity,
            total_received=received,
            total_repay=repaid,
        )
        self._publish(
            LeverageDecreasedEvent(
                basket_token=basket.address,
                collateral_asset=settings.collateral_asset,
                repay_asset=settings.loan_asset,
                exchange_adapter=adapter_name,
                total_redeem=action.notional_send_quantity,
                total_received=received,
                total_repay=repaid,
                protocol_fee=0,
            )
        )
        self._publish_fully_delevered(basket, settings, synced)
        return repaid

    def _update_leftover_loan_position(self, action: ActionInfo, settings: ModuleSettings) -> None:
        basket = action.basket
        if basket.balance_of(settings.loan_asset) != action.pre_trade_receive_token_balance:
            PositionLedgerAdapter(basket, self.address).calculate_and_edit_default_position(
                settings.loan_asset, action.total_supply, action.pre_trade_receive_token_balance
            )

    def _publish_fully_delevered(self, basket: IBasketToken, settings: ModuleSettings, synced: SyncResult) -> None:
        logger.info("leverage.fully_delevered", basket=basket.address, collateral_unit=synced.collateral_unit)
        self._publish(
            FullyDeleveredEvent(
                basket_token=basket.address,
                market_id=settings.market_id,
                collateral_unit=synced.collateral_unit,
            )
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self, basket: IBasketToken, *, caller: Optional[str] = None) -> Optional[SyncResult]:
        """
        Re-derive collateral and borrow units from ground-truth balances.

        Anyone may call. A basket with zero supply is left unchanged.

        Returns:
            Written units and notionals, or None when total supply is 0
        """
        operation = "sync"
        settings = self._validate_initialized(basket, operation)

        with self._transaction(basket.address, operation):
            total_supply = basket.total_supply()
            if total_supply == 0:
                return None
            result = self._sync_positions(basket, settings, total_supply)

        logger.info(
            "leverage.positions.synced",
            basket=basket.address,
            caller=caller,
            total_supply=result.total_supply,
            collateral_unit=result.collateral_unit,
            borrow_unit=result.borrow_unit,
        )
        self._publish(
            PositionsSyncedEvent(
                basket_token=basket.address,
                market_id=settings.market_id,
                total_supply=result.total_supply,
                collateral_unit=result.collateral_unit,
                borrow_unit=result.borrow_unit,
                collateral_notional=result.collateral_notional,
                borrow_notional=result.borrow_notional,
            )
        )
        return result

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def allow_list(self) -> AllowList:
        return self._allow_list

    def get_settings(self, basket_address: str) -> Optional[ModuleSettings]:
        return self._settings.get(basket_address)

    def is_initialized(self, basket_address: str) -> bool:
        return basket_address in self._settings

    def get_state(self, basket: IBasketToken) -> LeverageState:
        """Lifecycle state derived from settings and recorded positions."""
        settings = self._settings.get(basket.address)
        if settings is None:
            return LeverageState.UNINITIALIZED
        ledger = PositionLedgerAdapter(basket, self.address)
        if ledger.external_unit(settings.loan_asset) < 0:
            return LeverageState.LEVERED
        if ledger.external_unit(settings.collateral_asset) > 0:
            return LeverageState.COLLATERALIZED
        return LeverageState.INITIALIZED

    def get_borrow_balance(self, basket: IBasketToken) -> int:
        """Outstanding debt of basket after accrual, rounded up."""
        settings = self._validate_initialized(basket, "get_borrow_balance")
        self._lending.accrue_interest(settings.market_params)
        position = self._lending.position(settings.market_id, basket.address)
        market = self._lending.market(settings.market_id)
        return to_assets_up(position.borrow_shares, market.total_borrow_assets, market.total_borrow_shares)

    def get_collateral_balance(self, basket: IBasketToken) -> int:
        settings = self._validate_initialized(basket, "get_collateral_balance")
        return self._lending.position(settings.market_id, basket.address).collateral

    # ------------------------------------------------------------------
    # Journal participation
    # ------------------------------------------------------------------

    def snapshot(self) -> dict[str, Any]:
        return {
            "settings": {
                address: replace(s, issuance_modules=dict(s.issuance_modules)) for address, s in self._settings.items()
            },
            "allow_list": self._allow_list.snapshot(),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._settings = {
            address: replace(s, issuance_modules=dict(s.issuance_modules)) for address, s in state["settings"].items()
        }
        self._allow_list.restore(state["allow_list"])
