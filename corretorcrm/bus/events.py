"""
Event Bus
The store emits an event after every write; integrations (notifications,
agent hooks) subscribe without the store knowing about them.
"""

from typing import Callable, Dict, List, Any
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    In-process publish/subscribe.
    A failing handler is logged and does not stop the others.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """Register handler(event_data) for event_name."""
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {handler.__name__}")

    def emit(self, event_name: str, event_data: Dict[str, Any] = None):
        """Call every handler registered for event_name, in registration order."""
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with keys: {sorted(event_data)}")

        for handler in self._handlers.get(event_name, []):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {handler.__name__} for event '{event_name}': {e}")

    def clear(self):
        """Remove all handlers."""
        self._handlers.clear()


# Singleton instance
bus = EventBus()


# =============================================================================
# STANDARD EVENTS
# =============================================================================

EVENT_LEAD_CREATED = 'lead_created'
EVENT_LEAD_UPDATED = 'lead_updated'
EVENT_INTERACTION_LOGGED = 'interaction_logged'
EVENT_VISIT_CREATED = 'visit_created'
EVENT_VISIT_UPDATED = 'visit_updated'
