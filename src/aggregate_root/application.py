from __future__ import annotations

from typing import TypeVar

from aggregate_root.abc import EventStore
from aggregate_root.abc import Identity
from aggregate_root.aggregate import AggregateRoot
from aggregate_root.exceptions import AggregateNotFoundError
from aggregate_root.log import get_logger

logger = get_logger(__name__)

A = TypeVar("A", bound=AggregateRoot)


class Application:
    """
    Loads and saves aggregates through an event store.

    The aggregate version is passed to the store as the expected version, so a save
    is rejected with `ConcurrencyError` when another writer appended to the stream
    since the aggregate was loaded.

    Parameters
    ----------
    store : EventStore
        The store holding the event streams.
    """

    def __init__(self, store: EventStore):
        self.store = store

    def save(self, aggregate: AggregateRoot) -> None:
        """
        Appends the aggregate's new events to its stream, then commits them.

        Raises
        ------
        ConcurrencyError
            If the stored stream is no longer at the aggregate's version. The
            aggregate keeps its new events.
        """
        events = aggregate.new_events
        if not events:
            return
        self.store.append(aggregate.id, events, expected_version=aggregate.version)
        aggregate.commit_events()
        logger.info(
            "aggregate_saved",
            aggregate_type=type(aggregate).__name__,
            aggregate_id=str(aggregate.id),
            version=aggregate.version,
        )

    def get(self, aggregate_type: type[A], aggregate_id: Identity) -> A:
        """
        Rebuilds an aggregate from its stored stream.

        Raises
        ------
        AggregateNotFoundError
            If the store has no event for this identity.
        """
        events = self.store.load(aggregate_id)
        if not events:
            raise AggregateNotFoundError(f"no events stored for {aggregate_id}")
        aggregate = aggregate_type.build_from_history(aggregate_id, *events)
        logger.info(
            "aggregate_loaded",
            aggregate_type=aggregate_type.__name__,
            aggregate_id=str(aggregate_id),
            version=aggregate.version,
        )
        return aggregate
