"""
Device channel contract.

The channel is an event emitter over a persistent connection: requests are
emitted by name with a JSON-able payload, and incoming events are delivered
to every handler registered for that event name.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

class CommandChannel(ABC):

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    @abstractmethod
    async def emit(self, event: str, data: Dict[str, Any]):
        """Send an event to the device side."""
        ...

    def on(self, event: str, handler: Handler):
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Handler):
        handlers = self._handlers.get(event)
        if not handlers:
            return
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            del self._handlers[event]

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def deliver(self, event: str, data: Dict[str, Any]):
        """Hand an incoming event to its handlers."""
        # Copy so handlers can deregister themselves while being called
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(data)
            except Exception:
                logger.exception(f"Handler for {event} failed")
