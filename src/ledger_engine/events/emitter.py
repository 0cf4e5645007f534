"""Event emitter for publishing domain events.

The emitter provides:
- Handler registration with type and category filtering
- Error isolation (handler failures are logged and never reach the caller)
- Optional executor for asynchronous consumption
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Callable, TypeVar

from ledger_engine.events.types import DomainEvent, EventCategory

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=DomainEvent)

EventHandler = Callable[[DomainEvent], None]


@dataclass
class HandlerRegistration:
    """Registration of an event handler."""

    handler: EventHandler
    event_types: set[str] | None  # None = all events
    categories: set[EventCategory] | None  # None = all categories

    def accepts(self, event: DomainEvent) -> bool:
        if self.event_types and event.event_type not in self.event_types:
            return False
        if self.categories and event.category not in self.categories:
            return False
        return True


class EventEmitter:
    """Publishes events to registered handlers.

    Without an executor, handlers run inline in registration order. With one,
    each handler is submitted to it and its failure is logged when the future
    completes.

    Usage:
        emitter = EventEmitter()
        emitter.on(PaymentApplied, ledger_handler)
        emitter.on_category(EventCategory.INVOICE, audit_log)
        emitter.emit(event)
    """

    def __init__(self, executor: Executor | None = None) -> None:
        self._handlers: list[HandlerRegistration] = []
        self._executor = executor

    def on(self, event_type: type[T] | list[type[T]], handler: EventHandler) -> None:
        """Register handler for specific event type(s)."""
        types = event_type if isinstance(event_type, list) else [event_type]
        self._handlers.append(
            HandlerRegistration(
                handler=handler,
                event_types={t.__name__ for t in types},
                categories=None,
            )
        )

    def on_category(
        self, category: EventCategory | list[EventCategory], handler: EventHandler
    ) -> None:
        """Register handler for event category(ies)."""
        cats = set(category) if isinstance(category, list) else {category}
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None, categories=cats)
        )

    def on_all(self, handler: EventHandler) -> None:
        self._handlers.append(
            HandlerRegistration(handler=handler, event_types=None, categories=None)
        )

    def off(self, handler: EventHandler) -> None:
        self._handlers = [reg for reg in self._handlers if reg.handler is not handler]

    def emit(self, event: DomainEvent) -> list[Exception]:
        """Emit an event to all matching handlers.

        Returns exceptions raised by inline handlers (always empty when an
        executor is used). Nothing is raised to the caller.
        """
        errors: list[Exception] = []
        for reg in self._handlers:
            if not reg.accepts(event):
                continue
            if self._executor is not None:
                future = self._executor.submit(reg.handler, event)
                future.add_done_callback(self._log_failure(reg.handler, event))
                continue
            try:
                reg.handler(event)
            except Exception as e:
                logger.exception(
                    "Handler %s failed for event %s (%s)",
                    reg.handler,
                    event.event_type,
                    event.metadata.event_id,
                )
                errors.append(e)
        return errors

    @staticmethod
    def _log_failure(handler: EventHandler, event: DomainEvent) -> Callable[[Future], None]:
        def callback(future: Future) -> None:
            exc = future.exception()
            if exc is not None:
                logger.error(
                    "Handler %s failed for event %s (%s)",
                    handler,
                    event.event_type,
                    event.metadata.event_id,
                    exc_info=exc,
                )

        return callback
