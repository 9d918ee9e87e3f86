"""
Event system for basketlever.

Exports:
    - EventBus / IEventBus / SubscriptionToken: synchronous publish/subscribe
    - Leverage domain events validated against JSON Schema
    - Governance control events
"""

from basketlever.events.event_bus import EventBus, IEventBus, SubscriptionToken
from basketlever.events.events import (
    AllowListUpdatedEvent,
    AnySetAllowedUpdatedEvent,
    BaseEvent,
    CollateralPositionEnteredEvent,
    ControlEvent,
    FullyDeleveredEvent,
    IssuanceModuleRegisteredEvent,
    LeverageDecreasedEvent,
    LeverageIncreasedEvent,
    ModuleInitializedEvent,
    ModuleRemovedEvent,
    PositionsSyncedEvent,
    ValidatedEvent,
)

__all__ = [
    "AllowListUpdatedEvent",
    "AnySetAllowedUpdatedEvent",
    "BaseEvent",
    "CollateralPositionEnteredEvent",
    "ControlEvent",
    "EventBus",
    "FullyDeleveredEvent",
    "IEventBus",
    "IssuanceModuleRegisteredEvent",
    "LeverageDecreasedEvent",
    "LeverageIncreasedEvent",
    "ModuleInitializedEvent",
    "ModuleRemovedEvent",
    "PositionsSyncedEvent",
    "SubscriptionToken",
    "ValidatedEvent",
]
