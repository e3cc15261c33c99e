"""Domain events published after an escrow operation commits.

Subscribers (indexers, notifiers, UIs) are fanned out to in subscription
order. A failing subscriber is logged and skipped; committed state is never
affected by delivery.
"""

import inspect
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from bundleswap.registry.base import AssetRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent:
    """Base for all escrow events."""

    timestamp: float = field(default_factory=time.time, kw_only=True)

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = asdict(self)
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    order_id: int
    owner: str
    asset: AssetRef


@dataclass(frozen=True)
class OfferMade(DomainEvent):
    order_id: int
    offer_id: int
    proposer: str
    bundle: tuple[AssetRef, ...]


@dataclass(frozen=True)
class OfferAccepted(DomainEvent):
    order_id: int
    offer_id: int
    owner: str


@dataclass(frozen=True)
class OrderCanceled(DomainEvent):
    order_id: int
    owner: str


Subscriber = Callable[[DomainEvent], Union[None, Awaitable[None]]]


class EventPublisher:
    """Fans domain events out to subscribers and keeps a short history."""

    def __init__(self, history_size: int = 1000):
        self._subscribers: list[Subscriber] = []
        self.recent: deque[DomainEvent] = deque(maxlen=history_size)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a sync or async callback. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def publish(self, event: DomainEvent) -> None:
        """Record and deliver an event."""
        self.recent.append(event)
        logger.info(f"Event {event.name}: {self._describe(event)}")

        for callback in list(self._subscribers):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Subscriber {callback!r} failed on {event.name}")

    def history(self, limit: Optional[int] = None) -> list[DomainEvent]:
        """Most recent events, oldest first."""
        events = list(self.recent)
        return events[-limit:] if limit else events

    @staticmethod
    def _describe(event: DomainEvent) -> str:
        parts: list[str] = []
        for key, value in asdict(event).items():
            if key == "timestamp":
                continue
            parts.append(f"{key}={_format(value)}")
        return " ".join(parts)


def _format(value: Any) -> str:
    if isinstance(value, dict) and set(value) == {"registry", "token_id"}:
        return f"{value['registry']}#{value['token_id']}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_format(item) for item in value) + "]"
    return str(value)
