"""
ContractGate Events

Per-instance error/warning reporting. Handlers registered with `on()` are
called for every emitted event; each event is also written to the log.
"""

import logging
from typing import Callable, Dict, List

EVENT_TYPES = ('error', 'warning')


class EventBus:
    """
    Small synchronous event emitter for reported problems.

    Example:
        events = EventBus()
        events.on('error', lambda err: print(err.code))
        events.emit('error', ErrorCode('Controller file not found', 'CONTRACTGATE_ROUTE_CONTROLLER'))
    """

    def __init__(self, logger: logging.Logger = None):
        self.handlers: Dict[str, List[Callable]] = {}
        self.logger = logger or logging.getLogger("contractgate.events")

    def on(self, event_type: str, handler: Callable) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")
        self.handlers.setdefault(event_type, []).append(handler)

    def emit(self, event_type: str, error: BaseException) -> None:
        code = getattr(error, 'code', None)
        if event_type == 'error':
            self.logger.error(f"{error} ({code})" if code else str(error))
        else:
            self.logger.warning(f"{error} ({code})" if code else str(error))

        for handler in self.handlers.get(event_type, []):
            handler(error)
