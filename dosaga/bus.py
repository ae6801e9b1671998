"""Event bus adapter boundary and an in-memory host implementation.

The scheduler consumes any object satisfying :class:`EventBus`. The bundled
:class:`InMemoryBus` stands in for a host state container: it optionally
folds events into a state value with a reducer, then notifies subscribers.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]
Unsubscribe = Callable[[], None]
Reducer = Callable[[Any, Any], Any]


@runtime_checkable
class EventBus(Protocol):
    """What the scheduler needs from the host event stream."""

    def subscribe(self, on_event: Subscriber) -> Unsubscribe: ...

    def emit(self, event: Any) -> None: ...


class InMemoryBus:
    """Synchronous pub/sub bus with optional reducer-backed state.

    Every subscriber sees every event exactly once, in emission order. An
    emit made from inside a subscriber is queued and delivered after the
    current event has reached all subscribers.
    """

    def __init__(
        self,
        reducer: Reducer | None = None,
        initial_state: Any = None,
        *,
        keep_history: bool = True,
    ) -> None:
        self._reducer = reducer
        self._state = initial_state
        self._subscribers: list[Subscriber] = []
        self._queue: deque[Any] = deque()
        self._delivering = False
        self._keep_history = keep_history
        self.history: list[Any] = []

    def get_state(self) -> Any:
        return self._state

    def subscribe(self, on_event: Subscriber) -> Unsubscribe:
        if not callable(on_event):
            raise TypeError(f"subscriber must be callable, got {type(on_event).__name__}")
        self._subscribers.append(on_event)

        def unsubscribe() -> None:
            try:
                self._subscribers.remove(on_event)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, event: Any) -> None:
        """Deliver ``event`` and anything emitted while delivering it.

        A failing reducer or subscriber does not stop the queue: every queued
        event is still delivered, then the first failure is raised here.
        """
        self._queue.append(event)
        if self._delivering:
            return
        self._delivering = True
        failures: list[Exception] = []
        try:
            while self._queue:
                self._deliver(self._queue.popleft(), failures)
        finally:
            self._delivering = False
        if failures:
            for extra in failures[1:]:
                logger.error(
                    "further event delivery failure",
                    exc_info=(type(extra), extra, extra.__traceback__),
                )
            raise failures[0]

    def _deliver(self, event: Any, failures: list[Exception]) -> None:
        if self._reducer is not None:
            try:
                self._state = self._reducer(self._state, event)
            except Exception as exc:
                # A rejected event never reaches history or subscribers.
                failures.append(exc)
                return
        if self._keep_history:
            self.history.append(event)
        logger.debug("bus event %r -> %d subscriber(s)", event, len(self._subscribers))
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as exc:
                failures.append(exc)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


__all__ = ["EventBus", "InMemoryBus", "Reducer", "Subscriber", "Unsubscribe"]
