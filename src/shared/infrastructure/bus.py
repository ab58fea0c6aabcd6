"""In-memory event bus implementation."""

from __future__ import annotations

from typing import Dict, List, Type

from shared.domain.bus import IEventBus, IEventHandler
from shared.domain.events import DomainEvent


class InMemoryEventBus(IEventBus):
    """Simple in-process event bus.

    Also keeps a name -> class registry so events rehydrated from the
    outbox (which only stores ``event_name``) can be routed.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Type[DomainEvent], List[IEventHandler]] = {}
        self._registry: Dict[str, Type[DomainEvent]] = {}

    def subscribe(self, event_class: Type[DomainEvent], handler: IEventHandler) -> None:
        self._registry[event_class.__name__] = event_class
        handlers = self._handlers.setdefault(event_class, [])
        if handler not in handlers:
            handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(type(event), []):
            handler.handle(event)

    def resolve(self, event_name: str) -> Type[DomainEvent] | None:
        return self._registry.get(event_name)


# Global bus instance (singleton)

event_bus = InMemoryEventBus()
