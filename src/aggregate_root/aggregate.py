from __future__ import annotations

import inspect
import typing
from abc import ABCMeta
from abc import abstractmethod
from typing import Callable
from typing import Optional
from typing import TypeVar

from pydantic import BaseModel
from pydantic import ConfigDict

from aggregate_root.abc import Identity
from aggregate_root.config import get_settings
from aggregate_root.exceptions import EventCallbackError
from aggregate_root.exceptions import HandlerDefinitionError
from aggregate_root.exceptions import HistoryBuildError
from aggregate_root.log import get_logger

logger = get_logger(__name__)

A = TypeVar("A", bound="AggregateRoot")


class DomainEvent(BaseModel):
    """
    Base class for all domain events. Inherit from this class to declare an event.

    Events are immutable value objects. No field is shared by all events: the
    concrete class itself is the key an aggregate dispatches on.
    """

    model_config = ConfigDict(frozen=True)


class AggregateMeta(ABCMeta):
    """
    Metaclass collecting the event handlers declared on aggregate classes.

    Each class created with this metaclass records the names of the methods of its
    own body that are decorated with `@handles`. The table mapping an event type to
    its handler function is built on first dispatch, once all annotations can be
    evaluated, and then cached on the class.

    Methods
    -------
    __new__(mcs, name, bases, namespace)
        Records the handler methods declared in the class body.
    _resolve_handler(cls, event_type)
        Returns the handler function declared for an exact event type, if any.
    """

    def __new__(mcs, name: str, bases: tuple, namespace: dict, **kwargs):
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)
        cls._declared_handlers = tuple(
            attr_name
            for attr_name, attr_value in namespace.items()
            if callable(attr_value) and getattr(attr_value, "_is_event_handler", False)
        )
        cls._handler_table = None
        return cls

    def _resolve_handler(cls, event_type: type) -> Optional[Callable]:
        """
        Looks up the handler of an exact event type.

        Parameters
        ----------
        event_type : type
            The concrete class of the event being applied.

        Returns
        -------
        Callable or None
            The handler function, to be called with the aggregate and the event, or
            None if no handler of the class or its bases declares this type.

        Raises
        ------
        HandlerDefinitionError
            If two handlers of one class body claim this type while
            `ambiguous_handlers` is "error".
        Exception
            If no handler matched and the event type of another handler could not
            be determined, the error raised while determining it.
        """
        table, unresolved = cls._handler_entries()
        entry = table.get(event_type)
        if isinstance(entry, HandlerDefinitionError):
            raise entry
        if entry is None:
            # an unresolvable handler may be the one declared for this event
            if unresolved:
                raise unresolved[0][1]
            return None
        return entry[1]

    def _handler_entries(cls) -> tuple[dict, list]:
        entries = cls.__dict__["_handler_table"]
        if entries is None:
            entries = _build_handler_table(cls)
            cls._handler_table = entries
        return entries


def _build_handler_table(cls: type) -> tuple[dict, list]:
    # bases first, so that a more derived class replaces what it inherits
    table: dict = {}
    unresolved: list = []
    for klass in reversed(cls.__mro__):
        table = {
            event_type: entry
            for event_type, entry in table.items()
            if isinstance(entry, HandlerDefinitionError) or entry[0] not in klass.__dict__
        }
        unresolved = [entry for entry in unresolved if entry[0] not in klass.__dict__]
        handlers, failures = _class_handlers(klass)
        table.update(handlers)
        unresolved.extend(failures)
    return table, unresolved


def _class_handlers(klass: type) -> tuple[dict, list]:
    handlers: dict = {}
    failures: list = []
    for attr_name in klass.__dict__.get("_declared_handlers", ()):
        method = klass.__dict__[attr_name]
        try:
            event_type = _handled_event_type(method)
        except Exception as e:
            failures.append((attr_name, e))
            continue
        if event_type in handlers:
            if get_settings().ambiguous_handlers == "error" and not isinstance(
                handlers[event_type], HandlerDefinitionError
            ):
                handlers[event_type] = HandlerDefinitionError(
                    f"{klass.__qualname__} declares both {handlers[event_type][0]} and "
                    f"{attr_name} for {event_type.__name__}"
                )
            continue
        handlers[event_type] = (attr_name, method)
    return handlers, failures


def _handled_event_type(method: Callable) -> type[DomainEvent]:
    event_type = method._event_type
    if event_type is None:
        # annotations may be postponed, evaluate them in the handler's module
        hints = typing.get_type_hints(method)
        event_type = hints.get(method._event_parameter)
        if event_type is None:
            raise HandlerDefinitionError(
                f"handler {method.__qualname__} does not annotate its event parameter"
            )
    if not (isinstance(event_type, type) and issubclass(event_type, DomainEvent)):
        raise HandlerDefinitionError(
            f"handler {method.__qualname__} must handle a DomainEvent subclass, "
            f"not {event_type!r}"
        )
    return event_type


def _register_handler(method: Callable, event_type: Optional[type[DomainEvent]]) -> Callable:
    parameters = list(inspect.signature(method).parameters.values())[1:]
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    if len(parameters) != 1 or parameters[0].kind not in positional:
        raise HandlerDefinitionError(
            f"handler {method.__qualname__} must take exactly one event argument"
        )
    method._is_event_handler = True
    method._event_type = event_type
    method._event_parameter = parameters[0].name
    return method


def handles(event_type=None):
    """
    Decorator that declares a method as the handler of one event type.

    The handled type is either passed explicitly or read from the annotation of the
    method's single parameter. Handlers mutate the aggregate's state and nothing
    else; they are conventionally non-public.

    Parameters
    ----------
    event_type : type[DomainEvent], optional
        The exact event class handled. When omitted (bare `@handles`), the
        annotation of the event parameter is used.
        String annotations are evaluated against the globals of the handler's
        module on first dispatch, so they cannot name a class local to a function;
        pass the type explicitly in that case. A handler whose annotation cannot be
        evaluated only fails the dispatch of events no other handler matches.

    Returns
    -------
    Callable
        The method itself, marked as an event handler.

    Raises
    ------
    HandlerDefinitionError
        If the method does not take exactly one argument besides `self`, or if the
        explicit event type is not a `DomainEvent` subclass.

    Examples
    --------
    >>> class Account(AggregateRoot):
    ...     @handles
    ...     def _on_opened(self, event: AccountOpened) -> None:
    ...         self.balance = 0
    ...
    ...     @handles(AccountClosed)
    ...     def _on_closed(self, event) -> None:
    ...         self.closed = True
    """
    if inspect.isfunction(event_type):
        return _register_handler(event_type, None)
    if event_type is not None and not (
        isinstance(event_type, type) and issubclass(event_type, DomainEvent)
    ):
        raise HandlerDefinitionError(f"@handles expects a DomainEvent subclass, not {event_type!r}")

    def handles_decorator(method):
        return _register_handler(method, event_type)

    return handles_decorator


class AggregateRoot(metaclass=AggregateMeta):
    """
    Base class for event-sourced aggregates. Inherit from this class to create your own aggregate.

    State changes go through `_apply`, which dispatches the event to the handler the
    subclass declared for its exact type and records it as a new event. `commit_events`
    folds the new events into the version once they have been handed to storage, and
    `build_from_history` rebuilds an aggregate from a stored stream.

    Subclasses must implement `_initialize_blank`, which sets the zero state shared by
    both construction paths: the constructor, which may then apply originating events,
    and replay, which never runs the subclass constructor.

    Attributes
    ----------
    _id : Identity
        Identity of the aggregate, set once at creation.
    _version : int
        Number of events committed so far.
    _new_events : list[DomainEvent]
        Events applied since the last commit, in application order.
    """

    _id: Identity
    _version: int
    _new_events: list[DomainEvent]

    def __init__(self, aggregate_id: Identity):
        self._id = aggregate_id
        self._version = 0
        self._new_events = []
        self._initialize_blank()

    @classmethod
    def build_from_history(cls: type[A], aggregate_id: Identity, *events: DomainEvent) -> A:
        """
        Rebuilds an aggregate by replaying its stored events from blank state.

        Parameters
        ----------
        aggregate_id : Identity
            Identity of the aggregate to rebuild.
        *events : DomainEvent
            The aggregate's history, in order.

        Returns
        -------
        AggregateRoot
            An instance of the class this is called on, with every event committed:
            its version is `len(events)` and it has no new events.

        Raises
        ------
        HistoryBuildError
            If the class cannot be blank-instantiated, e.g. because it is abstract.
        EventCallbackError
            If one of the events cannot be dispatched. Replay stops at that event.
        """
        aggregate = cls._new_blank(aggregate_id, events)
        for event in events:
            aggregate._apply(event)
        aggregate.commit_events()
        logger.info(
            "aggregate_rebuilt",
            aggregate_type=cls.__name__,
            aggregate_id=str(aggregate_id),
            version=aggregate._version,
        )
        return aggregate

    @classmethod
    def _new_blank(cls: type[A], aggregate_id: Identity, history: tuple) -> A:
        try:
            aggregate = cls.__new__(cls)
            # base initialisation only, the subclass constructor may apply events
            AggregateRoot.__init__(aggregate, aggregate_id)
        except Exception as e:
            logger.warning("aggregate_blank_failed", aggregate_type=cls.__name__, error=str(e))
            raise HistoryBuildError(cls.__name__, "failed to create blank aggregate", history) from e
        return aggregate

    @abstractmethod
    def _initialize_blank(self) -> None:
        """Sets the subclass state an aggregate has before any event is applied."""

    @property
    def id(self) -> Identity:
        return self._id

    @property
    def version(self) -> int:
        return self._version

    @property
    def new_events(self) -> tuple[DomainEvent, ...]:
        return tuple(self._new_events)

    def commit_events(self) -> None:
        """Folds the new events into the version and clears them."""
        if self._new_events:
            logger.debug(
                "events_committed",
                aggregate_type=type(self).__name__,
                aggregate_id=str(self._id),
                count=len(self._new_events),
            )
        self._version += len(self._new_events)
        self._new_events = []

    def _apply(self, event: DomainEvent) -> None:
        """
        Applies an event: runs its handler, then records it as a new event.

        Parameters
        ----------
        event : DomainEvent
            The event to apply. Only a handler declared for its exact class matches.

        Raises
        ------
        EventCallbackError
            If the handler table cannot be resolved, if no handler is declared for the
            event's class, or if the handler raises. The event is not recorded and the
            aggregate's attributes are left as they were before the call.
        """
        try:
            handler = type(self)._resolve_handler(type(event))
        except Exception as e:
            raise EventCallbackError(self, event, "failed to resolve event handler") from e
        if handler is None:
            raise EventCallbackError(self, event, "aggregate has no handler for event")

        # only attribute bindings and the new events are restored, not in-place
        # mutations of other values
        state = dict(self.__dict__)
        state["_new_events"] = list(self._new_events)
        try:
            handler(self, event)
        except Exception as e:
            self.__dict__.clear()
            self.__dict__.update(state)
            raise EventCallbackError(self, event, "handler invocation failed") from e

        self._new_events.append(event)
        logger.debug(
            "event_applied",
            aggregate_type=type(self).__name__,
            aggregate_id=str(self._id),
            event_type=type(event).__name__,
        )

    def __repr__(self):
        return f"{type(self).__name__}(id={self._id}, version={self._version})"

    def __eq__(self, other: AggregateRoot):
        """
        Compares two aggregate instances for equality based on their internal state.

        Parameters
        ----------
        other : AggregateRoot
            Another aggregate instance to compare with.

        Returns
        -------
        bool
            True if both instances are of the same type and have equal attributes.
        """
        if isinstance(other, self.__class__) and self.__dict__ == other.__dict__:
            return True
        return False
