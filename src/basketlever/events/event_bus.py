"""
EventBus for basketlever.

The leverage module, its governance surface and the scenario runner publish
here; auditors, the CLI and tests subscribe. Delivery is synchronous: publish()
returns once every handler for the event type has run, highest priority first
(ties in subscription order). A failing handler is logged and reported to the
error callback, and the remaining handlers still run.

Published events are retained in a bounded history so a run can be inspected
after the fact (e.g. every LeverageIncreasedEvent of a scenario).
"""

import itertools
import time
from collections import deque
from datetime import datetime
from typing import Any, Callable, ContextManager, NamedTuple, Optional, Protocol, Type, TypeVar, Union, overload

from basketlever.events.events import BaseEvent
from basketlever.system import LoggerFactory

EventT = TypeVar("EventT", bound=BaseEvent)
Handler = Callable[[Any], None]
ErrorCallback = Callable[[BaseEvent, Handler, Exception], None]

logger = LoggerFactory.get_logger()

DISPLAY_ALL = "*"


class IEventBus(Protocol):
    """What publishers need from a bus."""

    def publish(self, event: BaseEvent) -> None: ...

    def subscribe(
        self, event_type: Union[str, Type[BaseEvent]], handler: Handler, priority: int = 0
    ) -> "SubscriptionToken": ...

    def unsubscribe(self, event_type: str, handler: Handler) -> None: ...

    def get_history(
        self,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[BaseEvent]: ...

    def clear_history(self) -> None: ...


class SubscriptionToken(ContextManager):
    """Returned by subscribe(); unsubscribes on exit when used as a context manager."""

    def __init__(self, bus: "EventBus", event_type: str, handler: Handler):
        self.bus = bus
        self.event_type = event_type
        self.handler = handler
        self._active = True

    def unsubscribe(self) -> None:
        if self._active:
            self.bus.unsubscribe(self.event_type, self.handler)
            self._active = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.unsubscribe()


class _Subscription(NamedTuple):
    priority: int
    seq: int
    handler: Handler


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


def event_type_name(event_type: Union[str, Type[BaseEvent]]) -> str:
    """Resolve an event class to the event_type string it publishes under."""
    if isinstance(event_type, str):
        return event_type
    field_info = event_type.model_fields.get("event_type")
    default = field_info.default if field_info is not None else None
    if not isinstance(default, str):
        raise ValueError(f"Event class {event_type.__name__} has no default event_type")
    return default


class EventBus:
    """
    Synchronous, in-process event bus. Not thread-safe; engine calls are serialized.

    Example:
        >>> bus = EventBus(max_history=10_000, display_events=["leverage_increased"])
        >>> bus.subscribe(PositionsSyncedEvent, audit.record, priority=100)
        >>> module = LeverageModule(..., event_bus=bus)
        >>> bus.get_history(event_type="positions_synced", limit=10)
    """

    def __init__(self, max_history: int = 100_000, display_events: Optional[list[str]] = None):
        """
        Args:
            max_history: Events retained in history, oldest dropped first (0 = unlimited)
            display_events: Event types rendered on the console via the logger ("*" for all)
        """
        self._subscriptions: dict[str, list[_Subscription]] = {}
        self._ordered: dict[str, list[Handler]] = {}
        self._seq = itertools.count()
        self._history: deque[BaseEvent] = deque(maxlen=max_history or None)
        self._on_error: Optional[ErrorCallback] = None
        self._display = frozenset(display_events or ())
        logger.debug("event_bus.initialized", max_history=max_history, display_events=sorted(self._display))

    def _handlers_for(self, event_type: str) -> list[Handler]:
        handlers = self._ordered.get(event_type)
        if handlers is None:
            subscriptions = sorted(self._subscriptions.get(event_type, ()), key=lambda s: (-s.priority, s.seq))
            handlers = self._ordered[event_type] = [s.handler for s in subscriptions]
        return handlers

    def _display_event(self, event: BaseEvent) -> None:
        if DISPLAY_ALL in self._display or event.event_type in self._display:
            # The console renderer formats entries from the basketlever.events.* loggers.
            LoggerFactory.get_logger(f"basketlever.events.{event.event_type}").info(
                "event.display", **event.model_dump()
            )

    def publish(self, event: BaseEvent) -> None:
        """Record the event in history, then deliver it to every handler for its type."""
        started = time.perf_counter()
        self._history.append(event)
        self._display_event(event)

        handlers = self._handlers_for(event.event_type)
        failures = 0
        for handler in handlers:
            try:
                handler(event)
            except Exception as exc:
                failures += 1
                logger.error(
                    "event_bus.handler_failed",
                    event_type=event.event_type,
                    event_id=event.event_id,
                    handler=_handler_name(handler),
                    error=str(exc),
                )
                if self._on_error is not None:
                    self._on_error(event, handler, exc)

        logger.debug(
            "event_bus.published",
            event_type=event.event_type,
            event_id=event.event_id,
            handlers=len(handlers),
            failures=failures,
            duration=time.perf_counter() - started,
        )

    @overload
    def subscribe(self, event_type: str, handler: Callable[[BaseEvent], None], priority: int = 0) -> SubscriptionToken: ...
    @overload
    def subscribe(
        self, event_type: Type[EventT], handler: Callable[[EventT], None], priority: int = 0
    ) -> SubscriptionToken: ...

    def subscribe(
        self, event_type: Union[str, Type[BaseEvent]], handler: Handler, priority: int = 0
    ) -> SubscriptionToken:
        """Subscribe a handler to an event type given as a string or an event class."""
        name = event_type_name(event_type)
        self._subscriptions.setdefault(name, []).append(_Subscription(priority, next(self._seq), handler))
        self._ordered.pop(name, None)
        logger.debug("event_bus.subscribed", event_type=name, handler=_handler_name(handler), priority=priority)
        return SubscriptionToken(self, name, handler)

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        """Remove every subscription of handler to event_type; unknown pairs are ignored."""
        subscriptions = self._subscriptions.get(event_type)
        if not subscriptions:
            return
        kept = [s for s in subscriptions if s.handler != handler]
        if len(kept) != len(subscriptions):
            self._subscriptions[event_type] = kept
            self._ordered.pop(event_type, None)
            logger.debug("event_bus.unsubscribed", event_type=event_type, handler=_handler_name(handler))

    def get_history(
        self,
        event_type: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[BaseEvent]:
        """Retained events, oldest first, filtered by type and time; limit keeps the most recent."""
        events = [
            e
            for e in self._history
            if (event_type is None or e.event_type == event_type) and (since is None or e.occurred_at >= since)
        ]
        return events[-limit:] if limit is not None else events

    def clear_history(self) -> None:
        self._history.clear()

    def get_subscriber_count(self, event_type: str) -> int:
        return len(self._subscriptions.get(event_type, ()))

    def set_error_handler(self, on_error: Optional[ErrorCallback]) -> None:
        """Callback invoked with (event, handler, exception) after a handler raises."""
        self._on_error = on_error
