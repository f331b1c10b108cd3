"""Lifecycle event fan-out for proposed actions.

Two ways to listen:
- per-type callbacks registered with ``subscribe`` (audit log, chat cards)
- queues opened with ``open_queue`` that receive every event as a tagged
  ActionEvent, for subscriber tasks running on the event loop
"""

import asyncio
import inspect
import logging
from collections.abc import Callable
from datetime import datetime

from farm_guardrail.models.action import ActionEvent, ActionEventType, ProposedAction

logger = logging.getLogger(__name__)

ActionListener = Callable[[ProposedAction], None]


class ActionEventNotifier:
    """Delivers lifecycle transitions to zero or more subscribers.

    A failing subscriber is logged and skipped; it never stops delivery to
    the others and never reaches the code that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[ActionEventType, list[ActionListener]] = {}
        self._queues: list[asyncio.Queue[ActionEvent]] = []

    def subscribe(
        self,
        event_type: ActionEventType | str,
        callback: ActionListener,
    ) -> Callable[[], None]:
        """Register a callback for one event type.

        Callbacks run synchronously inside the transition; async consumers
        should use ``open_queue`` instead.

        Returns:
            A function that removes the registration. Calling it twice is safe.

        Raises:
            TypeError: If the callback is a coroutine function
        """
        if inspect.iscoroutinefunction(callback):
            raise TypeError(
                "Action listeners must be synchronous; use open_queue() for async consumers"
            )
        event_type = ActionEventType(event_type)
        self._listeners.setdefault(event_type, []).append(callback)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event_type, [])
            try:
                listeners.remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def listener_count(self, event_type: ActionEventType | str) -> int:
        return len(self._listeners.get(ActionEventType(event_type), []))

    def open_queue(self, maxsize: int = 100) -> asyncio.Queue[ActionEvent]:
        """Open a queue that receives every event from now on."""
        queue: asyncio.Queue[ActionEvent] = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def close_queue(self, queue: asyncio.Queue[ActionEvent]) -> None:
        """Stop delivering to a queue. Idempotent."""
        try:
            self._queues.remove(queue)
        except ValueError:
            pass

    def emit(
        self,
        event_type: ActionEventType,
        action: ProposedAction,
        emitted_at: datetime | None = None,
    ) -> None:
        """Deliver an event to every callback and queue.

        Args:
            event_type: Transition that happened
            action: The action in its new state
            emitted_at: Timestamp for queued events; wall-clock time if omitted
        """
        for callback in list(self._listeners.get(event_type, [])):
            try:
                callback(action)
            except Exception:
                logger.exception(
                    f"Error in action listener for {event_type.value} "
                    f"(action {action.id})"
                )

        if not self._queues:
            return

        event = ActionEvent(type=event_type, action=action.model_copy(deep=True))
        if emitted_at is not None:
            event = event.model_copy(update={"emitted_at": emitted_at})
        for queue in list(self._queues):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(
                    f"Dropping {event_type.value} event for action {action.id}: "
                    "subscriber queue full"
                )
