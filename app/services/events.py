"""
Business event emission.

Services report what happened (webhook verified, entitlement granted, trial
started, allocation exhausted, ...) through an observer passed in at
construction time. The default observer writes one log line per event.
"""
import logging
from typing import Any, Dict, List, Protocol, Tuple

logger = logging.getLogger("app.events")

WEBHOOK_VERIFIED = "webhook.verified"
WEBHOOK_REJECTED = "webhook.rejected"
WEBHOOK_IGNORED = "webhook.ignored"
ENTITLEMENT_GRANTED = "entitlement.granted"
ENTITLEMENT_WITHHELD = "entitlement.withheld"
ENTITLEMENT_BINDING_REJECTED = "entitlement.binding_rejected"
TRIAL_STARTED = "trial.started"
TRIAL_DENIED = "trial.denied"
ALLOCATION_SUCCEEDED = "allocation.succeeded"
ALLOCATION_EXHAUSTED = "allocation.exhausted"
ALLOCATION_RELEASED = "allocation.released"
CHECKOUT_INITIALIZED = "checkout.initialized"
CHECKOUT_FAILED = "checkout.failed"

_WARNING_EVENTS = {
    WEBHOOK_REJECTED,
    ENTITLEMENT_WITHHELD,
    ENTITLEMENT_BINDING_REJECTED,
    ALLOCATION_EXHAUSTED,
    CHECKOUT_FAILED,
}


class EventObserver(Protocol):
    def emit(self, event: str, **fields: Any) -> None:
        ...


class LoggingObserver:
    def emit(self, event: str, **fields: Any) -> None:
        level = logging.WARNING if event in _WARNING_EVENTS else logging.INFO
        details = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        logger.log(level, "[event] %s %s", event, details, extra={"event": event, "fields": fields})


class RecordingObserver:
    """Keeps emitted events in memory. Used by tests and the admin debug view."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def emit(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> List[str]:
        return [name for name, _ in self.events]


_default_observer: EventObserver = LoggingObserver()


def get_observer() -> EventObserver:
    """FastAPI dependency for the process-wide observer."""
    return _default_observer
