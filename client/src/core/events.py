"""In-process event bus for signaling between unrelated components."""
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Events published by services and commands sent between views."""

    OPEN_NEW_PROJECT_FORM = "open_new_project_form"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"


@dataclass
class Event:
    """Event payload delivered to subscribers."""

    type: EventType
    data: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[Event], Awaitable[None] | None]


class EventBus:
    """
    Publish/subscribe hub.

    Handlers run in subscription order; a failing handler is logged and
    does not prevent the others from running.
    """

    def __init__(self) -> None:
        self._handlers: dict[EventType, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Handler) -> Callable[[], None]:
        """
        Register a handler.

        Returns:
            A callable that removes the handler again.
        """
        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[event_type]:
                self._handlers[event_type].remove(handler)

        return unsubscribe

    async def publish(self, event_type: EventType, **data: Any) -> int:
        """
        Deliver an event to every current subscriber.

        Returns:
            Number of handlers invoked.
        """
        event = Event(type=event_type, data=data)
        handlers = list(self._handlers[event_type])
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("event_handler_failed", extra={"event": event_type.value})
        return len(handlers)
