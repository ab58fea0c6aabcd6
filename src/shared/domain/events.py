"""Domain event primitives shared by the settlement modules."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable).

    ``aggregate_id`` identifies the Receipt or Order the event is about.
    ``event_name`` is derived from the concrete class so the outbox can
    route rows back to the right handler.
    """

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_payload(self) -> Dict[str, Any]:
        """Return a JSON-safe dict of the event fields."""
        return _normalize_for_json(asdict(self))


class DomainEventMixin:
    """Mixin for aggregate roots that collect domain events in memory."""

    _domain_events: list[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        self._domain_events.append(event)

    def clear_domain_events(self) -> None:
        if hasattr(self, "_domain_events"):
            self._domain_events.clear()

    @property
    def domain_events(self) -> list[DomainEvent]:
        if not hasattr(self, "_domain_events"):
            self._domain_events = []
        return list(self._domain_events)


def _normalize_for_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, list):
        return [_normalize_for_json(item) for item in value]
    if isinstance(value, dict):
        return {key: _normalize_for_json(val) for key, val in value.items()}
    return value


def event_from_payload(event_class: type[DomainEvent], payload: Dict[str, Any]) -> DomainEvent:
    """Rebuild an event of *event_class* from ``DomainEvent.to_payload`` output."""
    kwargs: Dict[str, Any] = {}
    for f in fields(event_class):
        if not f.init or f.name not in payload:
            continue
        value = payload[f.name]
        if f.name in ("aggregate_id", "event_id"):
            value = UUID(value)
        elif f.name == "occurred_on":
            value = datetime.fromisoformat(value)
        kwargs[f.name] = value
    return event_class(**kwargs)
