"""Lifecycle events and their dispatcher."""

import logging
from collections import defaultdict
from enum import Enum
from typing import Callable, DefaultDict, Dict, List, Optional, Type, TypeVar, Union

from epsnfa.automaton.state import StateId
from epsnfa.exceptions import HandlerFailure, InvalidEventType

logger = logging.getLogger(__name__)

Handler = Callable[[], object]
E = TypeVar("E", bound=Enum)


class StateEvent(Enum):
    """Events of a single state during a step."""

    ARRIVING = "arriving"  # Before the state is added to the new set
    ARRIVE = "arrive"  # After the state was added to the new set
    LEAVING = "leaving"  # When the state is taken off the queue
    LEAVE = "leave"  # Once per new destination the state produced


class MachineEvent(Enum):
    """Events of the machine as a whole, once per internal step."""

    CHANGING = "changing"  # Before the step consumes its queue
    CHANGE = "change"  # After the step's new set is committed


def parse_event(kind: Type[E], value: Union[E, str]) -> E:
    """Coerce ``value`` into a member of ``kind``.

    Raises:
        InvalidEventType: If ``value`` names no member of ``kind``.
    """
    if isinstance(value, kind):
        return value
    if isinstance(value, str):
        try:
            return kind(value.lower())
        except ValueError:
            pass
    raise InvalidEventType(value, [member.value for member in kind])


class EventDispatcher:
    """Ordered handler lists per state event and per machine event.

    Handlers take no arguments and run synchronously in registration order.
    The first failing handler stops the dispatch; its exception is re-raised
    as :class:`HandlerFailure`.
    """

    def __init__(self) -> None:
        self._state_handlers: DefaultDict[
            StateId, Dict[StateEvent, List[Handler]]
        ] = defaultdict(lambda: {event: [] for event in StateEvent})
        self._machine_handlers: Dict[MachineEvent, List[Handler]] = {
            event: [] for event in MachineEvent
        }

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def bind_state(
        self, state_id: StateId, event: Union[StateEvent, str], fn: Handler
    ) -> StateEvent:
        kind = parse_event(StateEvent, event)
        _check_callable(fn)
        self._state_handlers[state_id][kind].append(fn)
        return kind

    def bind_machine(self, event: Union[MachineEvent, str], fn: Handler) -> MachineEvent:
        kind = parse_event(MachineEvent, event)
        _check_callable(fn)
        self._machine_handlers[kind].append(fn)
        return kind

    def unbind_state(
        self, state_id: StateId, event: Union[StateEvent, str], fn: Handler
    ) -> bool:
        """Remove the first registration of ``fn``. Returns False if absent."""
        kind = parse_event(StateEvent, event)
        if state_id not in self._state_handlers:
            return False
        return _remove(self._state_handlers[state_id][kind], fn)

    def unbind_machine(self, event: Union[MachineEvent, str], fn: Handler) -> bool:
        kind = parse_event(MachineEvent, event)
        return _remove(self._machine_handlers[kind], fn)

    def rebind_state(
        self,
        state_id: StateId,
        event: Union[StateEvent, str],
        old_fn: Handler,
        new_fn: Handler,
    ) -> bool:
        """Replace ``old_fn`` with ``new_fn``, keeping its position."""
        kind = parse_event(StateEvent, event)
        _check_callable(new_fn)
        if state_id not in self._state_handlers:
            return False
        return _replace(self._state_handlers[state_id][kind], old_fn, new_fn)

    def rebind_machine(
        self, event: Union[MachineEvent, str], old_fn: Handler, new_fn: Handler
    ) -> bool:
        kind = parse_event(MachineEvent, event)
        _check_callable(new_fn)
        return _replace(self._machine_handlers[kind], old_fn, new_fn)

    def forget(self, state_id: StateId) -> None:
        """Drop every handler bound to ``state_id``."""
        self._state_handlers.pop(state_id, None)

    def handlers(
        self, event: Union[StateEvent, MachineEvent], state_id: Optional[StateId] = None
    ) -> List[Handler]:
        """Return a copy of the handlers registered for ``event``."""
        if isinstance(event, MachineEvent):
            return list(self._machine_handlers[event])
        if state_id not in self._state_handlers:
            return []
        return list(self._state_handlers[state_id][event])

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def fire_state(self, state_id: StateId, event: StateEvent) -> None:
        if state_id not in self._state_handlers:
            return
        self._run(self._state_handlers[state_id][event], event, state_id)

    def fire_machine(self, event: MachineEvent) -> None:
        self._run(self._machine_handlers[event], event, None)

    def _run(
        self, handlers: List[Handler], event: Enum, state_id: Optional[StateId]
    ) -> None:
        # Iterate over a snapshot: handlers may bind or unbind while running.
        for fn in list(handlers):
            try:
                fn()
            except Exception as e:
                logger.debug(
                    "handler %r for %s on %r raised %r", fn, event.value, state_id, e
                )
                raise HandlerFailure(event.value, state_id) from e


def _check_callable(fn: Handler) -> None:
    if not callable(fn):
        raise TypeError(f"event handler must be callable, got {fn!r}")


def _remove(handlers: List[Handler], fn: Handler) -> bool:
    try:
        handlers.remove(fn)
    except ValueError:
        return False
    return True


def _replace(handlers: List[Handler], old_fn: Handler, new_fn: Handler) -> bool:
    try:
        index = handlers.index(old_fn)
    except ValueError:
        return False
    handlers[index] = new_fn
    return True
