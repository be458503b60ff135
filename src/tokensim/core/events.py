"""
Lifecycle events emitted by the simulation driver.

External collaborators (loggers, UIs, transports) subscribe plain callables
instead of subclassing the engine. Observers run synchronously, in
subscription order, on the driver's thread.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class EventKind(str, Enum):
    INITIALIZED = "initialized"
    STARTING = "starting"
    ITERATION_CHECKED = "iteration_checked"
    COMPLETED = "completed"
    WARNING = "warning"
    RESET = "reset"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    payload: dict[str, Any] = field(default_factory=dict)


Observer = Callable[[Event], Any]


class EventBus:
    """Fan-out of driver events to subscribed observers."""

    def __init__(self):
        self._observers: list[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``; returns a function that unsubscribes it."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, kind: EventKind, **payload: Any) -> Event:
        event = Event(kind, payload)
        for observer in list(self._observers):
            observer(event)
        return event

    def __len__(self) -> int:
        return len(self._observers)
