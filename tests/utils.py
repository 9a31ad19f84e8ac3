from collections.abc import MutableMapping
from typing import Iterator
from typing import Sequence

from aggregate_root.abc import EventStore
from aggregate_root.abc import Identity
from aggregate_root.aggregate import AggregateRoot
from aggregate_root.aggregate import DomainEvent
from aggregate_root.aggregate import handles
from aggregate_root.exceptions import ConcurrencyError


class MockAggregateCreated(DomainEvent):
    pass


class MockAggregateDeleted(DomainEvent):
    pass


class MockAggregateRenamed(DomainEvent):
    name: str


class MockAggregateReopened(DomainEvent):
    pass


class UnknownEvent(DomainEvent):
    pass


class SpecialAggregateDeleted(MockAggregateDeleted):
    pass


class MockAggregate(AggregateRoot):
    def __init__(self, aggregate_id: Identity):
        super().__init__(aggregate_id)
        self._apply(MockAggregateCreated())

    def _initialize_blank(self) -> None:
        self.deleted = False
        self.name = ""

    def delete(self):
        self._apply(MockAggregateDeleted())

    def rename(self, name: str):
        self._apply(MockAggregateRenamed(name=name))

    def apply(self, event: DomainEvent):
        self._apply(event)

    def is_deleted(self) -> bool:
        return self.deleted

    @handles
    def _on_created(self, event: MockAggregateCreated) -> None:
        self.deleted = False

    @handles
    def _on_deleted(self, event: MockAggregateDeleted) -> None:
        self.deleted = True

    @handles(MockAggregateRenamed)
    def _on_renamed(self, event) -> None:
        if self.deleted:
            raise ValueError("cannot rename a deleted aggregate")
        self.name = event.name


class Account(AggregateRoot):
    def __init__(self, aggregate_id: Identity, owner: str):
        super().__init__(aggregate_id)
        self._apply(AccountOpened(owner=owner))

    def _initialize_blank(self) -> None:
        self.owner = None
        self.balance = 0

    def deposit(self, amount: int):
        self._apply(MoneyDeposited(amount=amount))

    def withdraw(self, amount: int):
        self._apply(MoneyWithdrawn(amount=amount))

    @handles
    def _on_opened(self, event: "AccountOpened") -> None:
        self.owner = event.owner

    @handles
    def _on_deposited(self, event: "MoneyDeposited") -> None:
        self.balance += event.amount

    @handles
    def _on_withdrawn(self, event: "MoneyWithdrawn") -> None:
        if event.amount > self.balance:
            self.balance = None
            raise ValueError("insufficient funds")
        self.balance -= event.amount


# declared after Account: handler annotations are only evaluated on first dispatch
class AccountOpened(DomainEvent):
    owner: str


class MoneyDeposited(DomainEvent):
    amount: int


class MoneyWithdrawn(DomainEvent):
    amount: int


class EventMemory(MutableMapping):
    """In-memory event streams keyed by aggregate identity."""

    def __init__(self):
        self.data: dict[Identity, list[DomainEvent]] = {}

    def __getitem__(self, key: Identity) -> list[DomainEvent]:
        return self.data[key]

    def __setitem__(self, key: Identity, value: list[DomainEvent]) -> None:
        self.data[key] = value

    def __delitem__(self, key: Identity) -> None:
        del self.data[key]

    def __iter__(self) -> Iterator[Identity]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)


class InMemoryEventStore(EventStore):
    def __init__(self):
        self.memory = EventMemory()

    def load(self, aggregate_id: Identity) -> list[DomainEvent]:
        return list(self.memory.get(aggregate_id, []))

    def append(
        self,
        aggregate_id: Identity,
        events: Sequence[DomainEvent],
        expected_version: int,
    ) -> None:
        stream = self.memory.setdefault(aggregate_id, [])
        if len(stream) != expected_version:
            raise ConcurrencyError(aggregate_id, expected_version, len(stream))
        stream.extend(events)
