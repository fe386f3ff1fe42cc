"""Custom exceptions for epsnfa."""

from typing import Any, Iterable, Optional


class EpsNFAError(Exception):
    """Base exception for all epsnfa errors."""

    pass


class UnknownStateReference(EpsNFAError):
    """Raised when an operation names a state id the machine does not have."""

    def __init__(self, state_id: Any, context: str = "") -> None:
        self.state_id = state_id
        self.context = context
        super().__init__(f"unknown state {state_id!r}")

    def __str__(self) -> str:
        if self.context:
            return f"{super().__str__()} ({self.context})"
        return super().__str__()


class InvalidEventType(EpsNFAError):
    """Raised when binding a handler to an event type that does not exist."""

    def __init__(self, event_type: Any, allowed: Iterable[str]) -> None:
        self.event_type = event_type
        self.allowed = tuple(allowed)
        super().__init__(
            f"unknown event type {event_type!r}; expected one of: "
            + ", ".join(self.allowed)
        )


class HandlerFailure(EpsNFAError):
    """Raised when a bound event handler fails during dispatch.

    The original exception is available as ``__cause__``.
    """

    def __init__(self, event: Any, state_id: Optional[Any] = None) -> None:
        self.event = event
        self.state_id = state_id
        if state_id is None:
            message = f"handler for machine event '{event}' failed"
        else:
            message = f"handler for '{event}' on state {state_id!r} failed"
        super().__init__(message)
