"""In-process event notification for ledger changes."""

from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

from logger import get_logger

logger = get_logger()

__all__ = [
    "Event",
    "EventBus",
    "ALL_EVENTS",
    "TRANSACTION_ADDED",
    "TRANSACTION_UPDATED",
    "TRANSACTION_DELETED",
    "TRANSACTIONS_RECATEGORIZED",
    "TRANSACTIONS_IMPORTED",
    "CATEGORY_ADDED",
    "CATEGORY_UPDATED",
    "CATEGORY_DELETED",
    "LEDGER_RECONCILED",
]

TRANSACTION_ADDED = "TRANSACTION_ADDED"
TRANSACTION_UPDATED = "TRANSACTION_UPDATED"
TRANSACTION_DELETED = "TRANSACTION_DELETED"
TRANSACTIONS_RECATEGORIZED = "TRANSACTIONS_RECATEGORIZED"
TRANSACTIONS_IMPORTED = "TRANSACTIONS_IMPORTED"
CATEGORY_ADDED = "CATEGORY_ADDED"
CATEGORY_UPDATED = "CATEGORY_UPDATED"
CATEGORY_DELETED = "CATEGORY_DELETED"
LEDGER_RECONCILED = "LEDGER_RECONCILED"

# Subscribing under this name receives every event
ALL_EVENTS = "*"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event], None]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

    def publish(self, name: str, payload: dict) -> Event:
        """Deliver an event to handlers of its name, then to catch-all handlers.

        A failing handler is logged and does not stop delivery to the rest:
        the change it reports has already been applied.
        """
        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)

        handlers = list(self._subscribers.get(name, []))
        handlers += self._subscribers.get(ALL_EVENTS, [])
        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {name}")
        return event
