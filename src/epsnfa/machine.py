"""Non-deterministic finite state machine with epsilon moves."""

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple, Union

from epsnfa.automaton.engine import MachineRecord, TransitionEngine
from epsnfa.automaton.events import EventDispatcher, MachineEvent, StateEvent
from epsnfa.automaton.state import EMPTY_SYMBOL, NULL_STATE, StateId, Symbol, Target
from epsnfa.automaton.table import StateTable
from epsnfa.config import Config, DanglingPolicy
from epsnfa.exceptions import UnknownStateReference

logger = logging.getLogger(__name__)

Handler = Callable[[], object]


class StateMachine:
    """A non-deterministic finite state machine supporting empty moves.

    The machine occupies a set of active states at once. Feeding a symbol
    moves every active state along its transition for that symbol and then
    follows epsilon moves until the set settles.

    Example:
        >>> machine = StateMachine(
        ...     {
        ...         "A": {"final": False, "transitions": {"": "E"}},
        ...         "D": {"final": True, "transitions": {"c": ["B", "D"], "d": "D"}},
        ...         "B": {"transitions": {"d": "E"}},
        ...         "E": {"transitions": {"d": "D"}},
        ...     },
        ...     start_state="A",
        ... )
        >>> machine.state()
        ('E',)
        >>> machine.input("d")
        ('D',)
        >>> machine.accepted()
        True

    Policies:
        - The first state ever added becomes the start state unless one was
          given to the constructor.
        - Adding a state whose id is taken is a silent no-op; the existing
          state is never overwritten.
        - Deleting a state leaves transitions that point at it in place.
          They are resolved by ``Config.dangling`` when reached.
    """

    def __init__(
        self,
        states: Optional[Mapping[StateId, Any]] = None,
        start_state: Optional[StateId] = NULL_STATE,
        config: Optional[Config] = None,
    ) -> None:
        """Build the machine and reset it.

        Args:
            states: Mapping of state id to a definition dict with the keys
                ``final`` (or ``is_final``) and ``transitions``, the latter
                mapping symbols to a state id or a list of state ids.
            start_state: Id of the start state. Defaults to the first state.
            config: Optional machine configuration.

        Raises:
            UnknownStateReference: If a transition or the start state names
                a state that is not defined and ``strict_targets`` is set.
        """
        self.config = config or Config.default()
        self._record = MachineRecord(
            table=StateTable(self.config),
            events=EventDispatcher(),
            config=self.config,
            start_state=start_state,
        )
        self._engine = TransitionEngine(self._record)

        if states:
            self._load(states)
        if (
            self.config.strict_targets
            and start_state is not NULL_STATE
            and start_state not in self._record.table
        ):
            raise UnknownStateReference(start_state, "start state")

        self.reset()

    def _load(self, states: Mapping[StateId, Any]) -> None:
        # States first, so transitions may point at states declared later.
        for state_id, definition in states.items():
            self.add_state(state_id, _definition_final(definition))
        for state_id, definition in states.items():
            for symbol, to in _definition_transitions(definition).items():
                self.add_transition(state_id, symbol, to)

    def __repr__(self) -> str:
        return (
            f"StateMachine(states={len(self._record.table)}, "
            f"start={self._record.start_state!r}, active={self.state()!r})"
        )

    # ------------------------------------------------------------------
    # Running
    # ------------------------------------------------------------------

    def state(self) -> Tuple[StateId, ...]:
        """Return the active states, in the order they became active."""
        return tuple(self._record.active)

    def input(self, symbol: Symbol) -> Tuple[StateId, ...]:
        """Feed one symbol to the machine.

        Args:
            symbol: The input symbol; ``""`` performs an epsilon step.

        Returns:
            The new active states.

        Raises:
            HandlerFailure: If a bound handler raised. The active set keeps
                the value of the last completed internal step.
        """
        return self._engine.run(symbol).active

    def feed(self, symbols: Iterable[Symbol]) -> Tuple[StateId, ...]:
        """Feed every symbol of ``symbols`` in turn and return the active states.

        A string is fed one character at a time.
        """
        for symbol in symbols:
            self.input(symbol)
        return self.state()

    def reset(self) -> Tuple[StateId, ...]:
        """Return to the start state and follow its epsilon moves.

        A machine without a (surviving) start state resets to the empty set.
        """
        start = self._record.start_state
        sources = []
        if start in self._record.table:
            sources.append(start)
        elif start is not NULL_STATE:
            if self.config.dangling is DanglingPolicy.RAISE:
                raise UnknownStateReference(start, "start state")
            logger.warning("start state %r does not exist; resetting to null", start)

        logger.debug("reset to %r", start)
        return self._engine.run(EMPTY_SYMBOL, sources=sources).active

    def accepts(self, symbols: Iterable[Symbol]) -> bool:
        """Reset, feed ``symbols`` and report whether the machine accepts."""
        self.reset()
        self.feed(symbols)
        return self.accepted()

    def accepted(self) -> bool:
        """Check whether any active state is final."""
        table = self._record.table
        return any(table.is_final(s) for s in self._record.active)

    def null_state(self) -> bool:
        """Check whether the machine has no active state left."""
        return not self._record.active

    def epsilon_closure(self, states: Iterable[StateId]) -> Tuple[StateId, ...]:
        """Return the states reachable from ``states`` through epsilon moves."""
        return tuple(self._engine.epsilon_closure(states))

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    @property
    def start_state(self) -> Optional[StateId]:
        return self._record.start_state

    def set_start_state(self, state_id: StateId) -> None:
        """Make an existing state the start state. Takes effect on reset."""
        self._record.table.require(state_id, "start state")
        self._record.start_state = state_id

    def states(self) -> Tuple[StateId, ...]:
        """Return the ids of every state, in the order they were added."""
        return tuple(self._record.table)

    def add_state(
        self,
        state_id: StateId,
        is_final: bool = False,
        transitions: Optional[Mapping[Symbol, Any]] = None,
    ) -> bool:
        """Add a state; a no-op if ``state_id`` already exists.

        On a machine without a start state the new state becomes the start
        state. The active set is not touched; call :meth:`reset` to enter it.

        Returns:
            True if the state was created.
        """
        created = self._record.table.add_state(state_id, is_final, transitions)
        if created and self._record.start_state is NULL_STATE:
            logger.debug("state %r promoted to start state", state_id)
            self._record.start_state = state_id
        return created

    def delete_state(self, state_id: StateId) -> bool:
        """Delete a state, its handlers, and its place in the active set.

        Transitions of other states that point at it are kept.
        """
        if not self._record.table.delete_state(state_id):
            return False
        self._record.events.forget(state_id)
        self._engine.discard(state_id)
        if self._record.start_state == state_id:
            self._record.start_state = NULL_STATE
        return True

    def set_final(self, state_id: StateId, is_final: bool = True) -> None:
        self._record.table.set_final(state_id, is_final)

    def is_final(self, state_id: StateId) -> bool:
        return self._record.table.is_final(state_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def add_transition(self, source: StateId, symbol: Symbol, to: Any) -> Target:
        """Set the destination(s) of ``source`` on ``symbol``.

        Args:
            source: Id of an existing state.
            symbol: Input symbol; ``""`` defines an epsilon move.
            to: A state id, or an ordered list of state ids.
        """
        return self._record.table.add_transition(source, symbol, to)

    def delete_transition(self, source: StateId, symbol: Symbol) -> bool:
        return self._record.table.delete_transition(source, symbol)

    def add_destination(self, source: StateId, symbol: Symbol, to: StateId) -> Target:
        return self._record.table.add_destination(source, symbol, to)

    def remove_destination(self, source: StateId, symbol: Symbol, to: StateId) -> bool:
        return self._record.table.remove_destination(source, symbol, to)

    def transition(self, source: StateId, symbol: Symbol) -> Optional[Target]:
        """Return the explicit target of ``source`` on ``symbol``, or None."""
        return self._record.table.resolve(source, symbol)

    def has_transition(self, state_id: StateId, symbol: Symbol) -> bool:
        return self._record.table.has_transition(state_id, symbol)

    def has_transitions(self, state_ids: Any = None) -> bool:
        """Check whether states define any transition.

        Args:
            state_ids: A state id, a list or set of ids (any of them), or
                None for the active states. A tuple is a single id.
        """
        if state_ids is None:
            state_ids = self._record.active
        elif not isinstance(state_ids, (list, set, frozenset)):
            state_ids = [state_ids]
        table = self._record.table
        return any(table.has_transitions(s) for s in state_ids)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def bind_state_event(
        self, state_id: StateId, event: Union[StateEvent, str], fn: Handler
    ) -> None:
        """Bind a handler to ``arriving``, ``arrive``, ``leaving`` or ``leave``.

        Raises:
            UnknownStateReference: If the state does not exist.
            InvalidEventType: If ``event`` is not a state event.
        """
        self._record.table.require(state_id, "event binding")
        self._record.events.bind_state(state_id, event, fn)

    def bind_machine_event(self, event: Union[MachineEvent, str], fn: Handler) -> None:
        """Bind a handler to ``changing`` or ``change``.

        Raises:
            InvalidEventType: If ``event`` is not a machine event.
        """
        self._record.events.bind_machine(event, fn)

    def unbind_state_event(
        self, state_id: StateId, event: Union[StateEvent, str], fn: Handler
    ) -> bool:
        return self._record.events.unbind_state(state_id, event, fn)

    def unbind_machine_event(self, event: Union[MachineEvent, str], fn: Handler) -> bool:
        return self._record.events.unbind_machine(event, fn)

    def rebind_state_event(
        self,
        state_id: StateId,
        event: Union[StateEvent, str],
        old_fn: Handler,
        new_fn: Handler,
    ) -> bool:
        return self._record.events.rebind_state(state_id, event, old_fn, new_fn)

    def rebind_machine_event(
        self, event: Union[MachineEvent, str], old_fn: Handler, new_fn: Handler
    ) -> bool:
        return self._record.events.rebind_machine(event, old_fn, new_fn)


def _definition_final(definition: Any) -> bool:
    if not definition:
        return False
    if "final" in definition:
        return bool(definition["final"])
    return bool(definition.get("is_final", False))


def _definition_transitions(definition: Any) -> Mapping[Symbol, Any]:
    if not definition:
        return {}
    return definition.get("transitions") or {}
