"""
Leverage and governance events.

Every event carries the envelope defined by contracts/schemas/envelope.v1.json.
Leverage events (ValidatedEvent) additionally check their payload against
contracts/schemas/leverage/<event_type>.v1.json, so the JSON Schema files are
the wire contract and these models are their Python side. Governance events
(ControlEvent) are internal and validate the envelope only.

Token amounts and position units are ints in Python and decimal strings on
the wire, since they routinely exceed 2**53. Timestamps are UTC and
serialize as RFC3339 with a Z suffix.
"""

import json
from datetime import datetime, timezone
from functools import lru_cache
from importlib import resources
from typing import Any, ClassVar, Optional
from uuid import uuid4

import jsonschema
from jsonschema import Draft202012Validator, FormatChecker
from pydantic import BaseModel, Field, field_serializer, field_validator, model_validator

# ============================================
# Constants
# ============================================

# Envelope fields; everything else on a validated event is payload.
RESERVED_ENVELOPE_KEYS = {
    "event_id",
    "event_type",
    "event_version",
    "occurred_at",
    "correlation_id",
    "causation_id",
    "source_service",
}

SCHEMA_PACKAGE = "basketlever.contracts.schemas"


def _rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ============================================
# Schema Loading & Caching
# ============================================


@lru_cache(maxsize=128)
def load_and_compile_schema(schema_name: str) -> Draft202012Validator:
    """
    Load and compile JSON Schema validator with caching.

    Uses importlib.resources for package-safe loading (works with wheels).

    Args:
        schema_name: Schema path relative to the schema package (e.g., "leverage/leverage_increased.v1.json")

    Raises:
        FileNotFoundError: If schema file doesn't exist
    """
    try:
        schema_file = resources.files(SCHEMA_PACKAGE).joinpath(schema_name)
        with schema_file.open("r", encoding="utf-8") as f:
            schema = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Schema not found: {schema_name} in package {SCHEMA_PACKAGE}")

    return Draft202012Validator(schema, format_checker=FormatChecker())


@lru_cache(maxsize=8)
def load_envelope_schema() -> Draft202012Validator:
    """Load and compile envelope schema validator."""
    return load_and_compile_schema("envelope.v1.json")


# ============================================
# Base Event Classes
# ============================================


class BaseEvent(BaseModel):
    """
    Base for all events - provides envelope fields only.
    All events (including control events) validate envelope.
    """

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str = "base"
    event_version: int = Field(default=1, description="Schema major version")
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc), description="UTC timestamp RFC3339"
    )
    correlation_id: Optional[str] = None
    causation_id: Optional[str] = None
    source_service: str = "unknown"

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("occurred_at", mode="before")
    @classmethod
    def ensure_utc(cls, v: Any) -> datetime:
        """Ensure timestamp is UTC timezone-aware."""
        if isinstance(v, str):
            dt = datetime.fromisoformat(v.replace("Z", "+00:00"))
        elif isinstance(v, datetime):
            dt = v
        else:
            raise ValueError(f"Cannot parse datetime from {type(v)}: {v}")

        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        elif dt.tzinfo != timezone.utc:
            dt = dt.astimezone(timezone.utc)

        return dt

    @field_serializer("occurred_at")
    def _serialize_occurred_at(self, v: datetime) -> str:
        """Serialize datetime to RFC3339 with Z suffix."""
        return _rfc3339(v)

    @model_validator(mode="after")
    def _validate_envelope(self) -> "BaseEvent":
        """Validate envelope fields against envelope.v1.json (None-valued optionals dropped)."""
        envelope_validator = load_envelope_schema()

        envelope_data = {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "event_version": self.event_version,
            "occurred_at": _rfc3339(self.occurred_at),
            "source_service": self.source_service,
        }
        if self.correlation_id is not None:
            envelope_data["correlation_id"] = self.correlation_id
        if self.causation_id is not None:
            envelope_data["causation_id"] = self.causation_id

        try:
            envelope_validator.validate(envelope_data)
        except jsonschema.ValidationError as e:
            raise ValueError(
                f"{self.__class__.__name__} envelope validation failed (envelope.v1.json): {e.message}\n"
                f"Path: {list(e.path)}\n"
                f"Schema path: {list(e.schema_path)}"
            )

        return self


class ValidatedEvent(BaseEvent):
    """
    Base for domain events that require JSON Schema validation.

    Validates payload against {SCHEMA_BASE}.v{event_version}.json.
    """

    SCHEMA_BASE: ClassVar[Optional[str]] = None

    @model_validator(mode="after")
    def _validate_payload(self) -> "ValidatedEvent":
        """
        Validate payload fields (everything but the envelope) against the domain schema.

        Raises:
            ValueError: If validation fails, with full error context
        """
        if self.SCHEMA_BASE is None:
            raise ValueError(f"{self.__class__.__name__} must specify SCHEMA_BASE")

        schema_base_name = self.SCHEMA_BASE.split("/")[-1]
        if self.event_type != schema_base_name:
            raise ValueError(
                f"{self.__class__.__name__}: event_type '{self.event_type}' must equal contract name '{schema_base_name}' "
                f"(from SCHEMA_BASE '{self.SCHEMA_BASE}')"
            )

        data = self.model_dump()
        payload_data = {k: v for k, v in data.items() if k not in RESERVED_ENVELOPE_KEYS}

        schema_file = f"{self.SCHEMA_BASE}.v{self.event_version}.json"

        try:
            payload_validator = load_and_compile_schema(schema_file)
            payload_validator.validate(payload_data)
        except FileNotFoundError as e:
            raise ValueError(f"{self.__class__.__name__}: Schema not found: {schema_file}") from e
        except jsonschema.ValidationError as e:
            raise ValueError(
                f"{self.__class__.__name__} payload validation failed against {schema_file}: {e.message}\n"
                f"Path: {list(e.path)}\n"
                f"Schema path: {list(e.schema_path)}\n"
                f"Failed value: {e.instance}"
            )

        return self


class ControlEvent(BaseEvent):
    """
    Base for control/governance events that don't require payload validation.

    Only validates envelope, skips payload schema validation.
    """

    pass


# ============================================
# Leverage Events
# ============================================


class ModuleInitializedEvent(ValidatedEvent):
    """Leverage module initialized on a basket token with a latched market."""

    SCHEMA_BASE: ClassVar[Optional[str]] = "leverage/module_initialized"
    event_type: str = "module_initialized"
    source_service: str = "leverage_module"

    basket_token: str
    market_id: str
    collateral_asset: str
    loan_asset: str
    allow_list_version: int


class CollateralPositionEnteredEvent(ValidatedEvent):
    """Default collateral moved into the lending market and reclassified as External."""

    SCHEMA_BASE: ClassVar[Optional[str]] = "leverage/collateral_position_entered"
    event_type: str = "collateral_position_entered"
    source_service: str = "leverage_module"

    basket_token: str
    market_id: str
    collateral_asset: str
    collateral_supplied: int
    collateral_unit: int

    @field_serializer("collateral_supplied", "collateral_unit")
    def _serialize_int(self, v: int) -> str:
        """Serialize token amounts as decimal strings for wire format."""
        return str(v)


class LeverageIncreasedEvent(ValidatedEvent):
    """
    Lever completed - validates against leverage/leverage_increased.v{version}.json.

    Attributes:
        basket_token: Basket token address
        borrow_asset: Asset borrowed (loan asset)
        collateral_asset: Asset bought and supplied as collateral
        exchange_adapter: Name of the adapter used for the trade
        total_borrow: Notional borrowed
        total_received: Collateral received from the trade, before fee
        protocol_fee: Fee taken from total_received
    """

    SCHEMA_BASE: ClassVar[Optional[str]] = "leverage/leverage_increased"
    event_type: str = "leverage_increased"
    source_service: str = "leverage_module"

    basket_token: str
    borrow_asset: str
    collateral_asset: str
    exchange_adapter: str
    total_borrow: int
    total_received: int
    protocol_fee: int

    @field_serializer("total_borrow", "total_received", "protocol_fee")
    def _serialize_int(self, v: int) -> str:
        return str(v)


class LeverageDecreasedEvent(ValidatedEvent):
    """
    Delever completed - validates against leverage/leverage_decreased.v{version}.json.

    total_repay is the loan asset actually repaid; any remainder of the trade
    output stays on the basket as a Default position.
    """

    SCHEMA_BASE: ClassVar[Optional[str]] = "leverage/leverage_decreased"
    event_type: str = "leverage_decreased"
    source_service: str = "leverage_module"

    basket_token: str
    collateral_asset: str
    repay_asset: str
    exchange_adapter: str
    total_redeem: int
    total_received: int
    total_repay: int
    protocol_fee: int

    @field_serializer("total_redeem", "total_received", "total_repay", "protocol_fee")
    def _serialize_int(self, v: int) -> str:
        return str(v)


class FullyDeleveredEvent(ValidatedEvent):
    """Borrow shares reached zero; collateral stays External."""

    SCHEMA_BASE: ClassVar[Optional[str]] = "leverage/fully_delevered"
    event_type: str = "fully_delevered"
    source_service: str = "leverage_module"

    basket_token: str
    market_id: str
    collateral_unit: int

    @field_serializer("collateral_unit")
    def _serialize_int(self, v: int) -> str:
        return str(v)


class PositionsSyncedEvent(ValidatedEvent):
    """Position units re-derived from lending-market and token balances."""

    SCHEMA_BASE: ClassVar[Optional[str]] = "leverage/positions_synced"
    event_type: str = "positions_synced"
    source_service: str = "leverage_module"

    basket_token: str
    market_id: str
    total_supply: int
    collateral_unit: int
    borrow_unit: int
    collateral_notional: int
    borrow_notional: int

    @field_serializer("total_supply", "collateral_unit", "borrow_unit", "collateral_notional", "borrow_notional")
    def _serialize_int(self, v: int) -> str:
        return str(v)


# ============================================
# Governance Events (control)
# ============================================


class AllowListUpdatedEvent(ControlEvent):
    event_type: str = "allow_list_updated"
    source_service: str = "leverage_module"

    basket_token: str
    allowed: bool
    version: int


class AnySetAllowedUpdatedEvent(ControlEvent):
    event_type: str = "any_set_allowed_updated"
    source_service: str = "leverage_module"

    any_set_allowed: bool
    version: int


class IssuanceModuleRegisteredEvent(ControlEvent):
    event_type: str = "issuance_module_registered"
    source_service: str = "leverage_module"

    basket_token: str
    issuance_module: str


class ModuleRemovedEvent(ControlEvent):
    event_type: str = "module_removed"
    source_service: str = "leverage_module"

    basket_token: str
    market_id: str
