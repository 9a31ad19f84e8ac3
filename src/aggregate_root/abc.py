from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import TYPE_CHECKING
from typing import Sequence

if TYPE_CHECKING:
    from aggregate_root.aggregate import DomainEvent


class Identity(ABC):
    """
    Abstract base class for values identifying one aggregate across its lifetime.

    Two identities are equal if and only if their canonical string forms are equal,
    whatever their concrete classes. Implementations must never change after creation.

    Methods
    -------
    to_string() -> str
        Returns the canonical string form of the identity.
    equals(other: Identity) -> bool
        Value equality based on the canonical string form.
    """

    @abstractmethod
    def to_string(self) -> str:
        """
        Returns the canonical string form of the identity.

        Returns
        -------
        str
            The canonical string form.
        """
        pass

    def equals(self, other: Identity) -> bool:
        """
        Compares two identities by their canonical string form.

        Parameters
        ----------
        other : Identity
            The identity to compare with.

        Returns
        -------
        bool
            True if both identities have the same canonical string form.
        """
        return self.to_string() == other.to_string()

    def __str__(self) -> str:
        return self.to_string()

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Identity):
            return self.equals(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.to_string())


class EventStore(ABC):
    """
    Abstract base class for the store that persists aggregate event streams.

    Streams are keyed by aggregate identity. The store is responsible for optimistic
    concurrency: an append is only accepted when the stream still has exactly
    `expected_version` events, i.e. nobody else wrote to it since the aggregate
    was loaded.
    """

    @abstractmethod
    def load(self, aggregate_id: Identity) -> list[DomainEvent]:
        """
        Returns the ordered event stream of an aggregate.

        Parameters
        ----------
        aggregate_id : Identity
            The identity of the aggregate.

        Returns
        -------
        list[DomainEvent]
            The stored events in order, or an empty list for an unknown aggregate.
        """
        pass

    @abstractmethod
    def append(
        self,
        aggregate_id: Identity,
        events: Sequence[DomainEvent],
        expected_version: int,
    ) -> None:
        """
        Appends events to the stream of an aggregate.

        Parameters
        ----------
        aggregate_id : Identity
            The identity of the aggregate.
        events : Sequence[DomainEvent]
            The new events, in application order.
        expected_version : int
            The version the aggregate had when it was loaded.

        Raises
        ------
        ConcurrencyError
            If the stored stream length differs from `expected_version`.
        """
        pass
