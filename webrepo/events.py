"""Lifecycle event dispatch.

Provides the ordered observer list the repository facade uses to announce
lifecycle points (``Model.beforeSave``, ``Model.afterDelete``, ...):
- Listeners run in registration order, sync or async
- The first listener that returns a value short-circuits the dispatch
- Listener objects expose their handlers through ``implemented_events()``
"""

import asyncio
import logging

import typing as t
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

Listener = t.Callable[["Event"], t.Any]


@t.runtime_checkable
class EventListener(t.Protocol):
    def implemented_events(self) -> dict[str, Listener]: ...


class Event(BaseModel):
    """A named notification travelling through the listener list."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(description="Event name, e.g. Model.beforeSave")
    subject: t.Any = Field(default=None, description="Object emitting the event")
    data: dict[str, t.Any] = Field(default_factory=dict)
    result: t.Any = Field(default=None)
    stopped: bool = Field(default=False)

    def stop_propagation(self) -> None:
        self.stopped = True

    def is_stopped(self) -> bool:
        return self.stopped

    def __str__(self) -> str:
        return f"Event({self.name})"


class EventManager:
    """Ordered registry of event listeners."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, name: str, callback: Listener) -> "EventManager":
        self._listeners.setdefault(name, []).append(callback)
        return self

    def off(self, name: str, callback: Listener | None = None) -> "EventManager":
        if callback is None:
            self._listeners.pop(name, None)
            return self
        listeners = self._listeners.get(name, [])
        self._listeners[name] = [cb for cb in listeners if cb != callback]
        return self

    def register(self, listener: EventListener) -> "EventManager":
        """Attach every handler a listener object implements."""
        for name, callback in listener.implemented_events().items():
            self.on(name, callback)
        return self

    def listeners(self, name: str) -> list[Listener]:
        return list(self._listeners.get(name, []))

    async def dispatch(
        self,
        event: Event | str,
        subject: t.Any = None,
        data: dict[str, t.Any] | None = None,
    ) -> Event:
        """Run the listeners for an event in registration order.

        A listener returning anything other than None stores it as the event
        result and stops propagation; ``False`` counts as a result.
        """
        if isinstance(event, str):
            event = Event(name=event, subject=subject, data=data or {})

        for callback in self.listeners(event.name):
            result = callback(event)
            if asyncio.iscoroutine(result):
                result = await result
            if result is not None:
                event.result = result
                event.stop_propagation()
            if event.is_stopped():
                logger.debug(f"{event.name} stopped by {callback!r}")
                break

        return event
