from __future__ import annotations

from typing import TYPE_CHECKING
from typing import Optional

if TYPE_CHECKING:
    from aggregate_root.abc import Identity
    from aggregate_root.aggregate import AggregateRoot
    from aggregate_root.aggregate import DomainEvent


class EventSourcingError(Exception):
    @property
    def cause(self) -> Optional[BaseException]:
        """The underlying exception this error was raised from, if any."""
        return self.__cause__


class EventCallbackError(EventSourcingError):
    """
    Raised when an event cannot be dispatched to its aggregate handler.

    Covers the three dispatch failures: the handler table could not be resolved,
    the aggregate declares no handler for the event's exact type, or the handler
    itself raised.

    Attributes
    ----------
    aggregate : AggregateRoot
        The aggregate the event was applied to.
    event : DomainEvent
        The offending event.
    message : str
        Short description of the failure.
    """

    def __init__(self, aggregate: AggregateRoot, event: DomainEvent, message: str = ""):
        self.aggregate = aggregate
        self.event = event
        self.message = message
        super().__init__(
            f"{message} (aggregate={type(aggregate).__name__}, event={type(event).__name__})"
        )


class HistoryBuildError(EventSourcingError):
    """
    Raised when an aggregate class cannot be blank-instantiated for replay.

    Attributes
    ----------
    aggregate_name : str
        Name of the aggregate class replay was invoked on.
    message : str
        Short description of the failure.
    history : tuple[DomainEvent, ...]
        The events that were about to be replayed.
    """

    def __init__(self, aggregate_name: str, message: str = "", history: tuple = ()):
        self.aggregate_name = aggregate_name
        self.message = message
        self.history = tuple(history)
        super().__init__(f"{message} (aggregate={aggregate_name})")


class HandlerDefinitionError(EventSourcingError):
    pass


class AggregateNotFoundError(EventSourcingError):
    pass


class ConcurrencyError(EventSourcingError):
    """Raised by an event store when the stored stream moved past the expected version."""

    def __init__(self, aggregate_id: Identity, expected_version: int, actual_version: int):
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"aggregate {aggregate_id} is at version {actual_version}, "
            f"expected {expected_version}"
        )
