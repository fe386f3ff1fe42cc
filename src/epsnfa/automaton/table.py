"""State table: the states of a machine and their transitions."""

import logging
from typing import Any, Dict, Iterator, Mapping, Optional

from epsnfa.automaton.state import (
    EMPTY_SYMBOL,
    NULL_STATE,
    Many,
    Single,
    State,
    StateId,
    Symbol,
    Target,
)
from epsnfa.config import Config
from epsnfa.exceptions import UnknownStateReference

logger = logging.getLogger(__name__)


class StateTable:
    """Owns the states of one machine, keyed by id in insertion order.

    The null state is never stored: adding it is a no-op and it may only
    appear as a transition destination, where it marks a dead branch.
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config or Config.default()
        self._states: Dict[StateId, State] = {}

    def __contains__(self, state_id: Any) -> bool:
        return state_id is not NULL_STATE and state_id in self._states

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[StateId]:
        return iter(self._states)

    def get(self, state_id: StateId) -> Optional[State]:
        """Return the state with ``state_id``, or None."""
        if state_id is NULL_STATE:
            return None
        return self._states.get(state_id)

    def require(self, state_id: StateId, context: str = "") -> State:
        """Return the state with ``state_id`` or raise UnknownStateReference."""
        state = self.get(state_id)
        if state is None:
            raise UnknownStateReference(state_id, context)
        return state

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def add_state(
        self,
        state_id: StateId,
        is_final: bool = False,
        transitions: Optional[Mapping[Symbol, Any]] = None,
    ) -> bool:
        """Add a new state.

        Existing states are never overwritten: when ``state_id`` is already
        taken (or is the null state) the call is a no-op and the final flag
        and transitions are ignored.

        Args:
            state_id: Id of the new state.
            is_final: Whether the state is accepting.
            transitions: Optional mapping of symbol to destination id or list
                of destination ids.

        Returns:
            True if the state was created.
        """
        if state_id is NULL_STATE or state_id in self._states:
            logger.debug("add_state(%r) ignored: id already in use", state_id)
            return False

        targets = {
            symbol: Target.of(to) for symbol, to in (transitions or {}).items()
        }
        for target in targets.values():
            self._check_target(target, pending=state_id)

        self._states[state_id] = State(
            id=state_id, is_final=bool(is_final), transitions=targets
        )
        return True

    def delete_state(self, state_id: StateId) -> bool:
        """Remove a state.

        Transitions of other states that point at it are left in place and
        are resolved by the engine's dangling policy.
        """
        if state_id is NULL_STATE:
            return False
        return self._states.pop(state_id, None) is not None

    def set_final(self, state_id: StateId, is_final: bool) -> None:
        """Set the final flag of a state. The null state is never final."""
        if state_id is NULL_STATE:
            return
        self.require(state_id, "set_final").is_final = bool(is_final)

    def is_final(self, state_id: StateId) -> bool:
        state = self.get(state_id)
        return state is not None and state.is_final

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def add_transition(self, source: StateId, symbol: Symbol, to: Any) -> Target:
        """Set the destination of ``(source, symbol)``, replacing any old one.

        Args:
            source: Id of an existing state.
            symbol: Input symbol; ``EMPTY_SYMBOL`` defines an epsilon move.
            to: A destination id or an ordered list of destination ids.

        Returns:
            The stored target.

        Raises:
            UnknownStateReference: If ``source`` does not exist, or a
                destination does not exist and ``strict_targets`` is set.
        """
        state = self.require(source, "transition source")
        target = Target.of(to)
        self._check_target(target)
        state.transitions[symbol] = target
        return target

    def delete_transition(self, source: StateId, symbol: Symbol) -> bool:
        state = self.get(source)
        if state is None:
            return False
        return state.transitions.pop(symbol, None) is not None

    def add_destination(self, source: StateId, symbol: Symbol, to: StateId) -> Target:
        """Add one more destination to ``(source, symbol)``.

        Creates the transition if it is missing; a destination already
        present is not repeated.
        """
        state = self.require(source, "transition source")
        current = state.target(symbol)
        if current is None:
            return self.add_transition(source, symbol, to)
        if to in current.ids:
            return current
        target = Many(current.ids + (to,))
        self._check_target(target)
        state.transitions[symbol] = target
        return target

    def remove_destination(self, source: StateId, symbol: Symbol, to: StateId) -> bool:
        """Remove one destination from ``(source, symbol)``.

        A group left with one destination becomes a single target; a
        transition left with none is deleted.

        Returns:
            True if the destination was present.
        """
        state = self.get(source)
        current = state.target(symbol) if state is not None else None
        if current is None or to not in current.ids:
            return False

        remaining = tuple(i for i in current.ids if i != to)
        if not remaining:
            del state.transitions[symbol]
        elif len(remaining) == 1:
            state.transitions[symbol] = Single(remaining[0])
        else:
            state.transitions[symbol] = Many(remaining)
        return True

    def resolve(self, state_id: StateId, symbol: Symbol) -> Optional[Target]:
        """Return the explicit target of ``(state_id, symbol)``, or None."""
        state = self.get(state_id)
        if state is None:
            return None
        return state.target(symbol)

    def has_transition(self, state_id: StateId, symbol: Symbol) -> bool:
        """Check whether a state reacts to ``symbol``.

        The empty symbol is always available on an existing state: without
        an explicit epsilon move the state simply stays where it is.
        """
        state = self.get(state_id)
        if state is None:
            return False
        return symbol == EMPTY_SYMBOL or symbol in state.transitions

    def has_transitions(self, state_id: StateId) -> bool:
        state = self.get(state_id)
        return state is not None and bool(state.transitions)

    def has_epsilon_moves(self, state_id: StateId) -> bool:
        state = self.get(state_id)
        return state is not None and state.has_epsilon_moves()

    def _check_target(self, target: Target, pending: StateId = NULL_STATE) -> None:
        if not self.config.strict_targets:
            return
        for state_id in target.ids:
            if state_id is NULL_STATE or state_id == pending:
                continue
            if state_id not in self._states:
                raise UnknownStateReference(state_id, "transition target")
