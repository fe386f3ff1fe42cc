"""Transition engine: computes active-state sets and fires step events.

A step feeds one symbol to every active state. Every state is taken off a
FIFO queue in the order it became active and moves to the explicit target of
the symbol. Without a target it stays put on the empty symbol and dies on any
other symbol. New states are collected in first-discovery order without
duplicates. The null state is never collected.

After a step, epsilon passes run until no active state has an explicit
epsilon move. Each pass depends only on the members of the set it starts
from, so when a pass yields a set whose members already came up during the
call, the passes are cycling. A final *collapse* step then starts again from
the earliest set with those members and keeps each state together with the
states it reaches through epsilon moves, limited to the states met since.
The result therefore does not depend on where in the cycle the passes
stopped. The collapse is skipped when it would change nothing. The number of
passes is bounded by the number of distinct sets met, which stays small for
real machines.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import (
    Deque,
    Dict,
    FrozenSet,
    Iterable,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
)

from epsnfa.automaton.events import EventDispatcher, MachineEvent, StateEvent
from epsnfa.automaton.state import EMPTY_SYMBOL, NULL_STATE, StateId, Symbol
from epsnfa.automaton.table import StateTable
from epsnfa.config import Config, DanglingPolicy
from epsnfa.exceptions import UnknownStateReference

logger = logging.getLogger(__name__)


@dataclass
class MachineRecord:
    """Mutable state of one machine, owned by the machine and written only by
    the engine.

    Attributes:
        table: The states and their transitions.
        events: The handler lists.
        config: Machine configuration.
        start_state: Id of the start state, or None before any state exists.
        active: Active state ids in insertion order, without duplicates.
    """

    table: StateTable
    events: EventDispatcher
    config: Config = field(default_factory=Config.default)
    start_state: Optional[StateId] = None
    active: List[StateId] = field(default_factory=list)


@dataclass
class StepResult:
    """Outcome of one public input/reset.

    Attributes:
        active: The resulting active states.
        steps: Internal steps run, including epsilon passes and the collapse.
        collapsed: Whether an epsilon cycle was collapsed.
    """

    active: Tuple[StateId, ...]
    steps: int = 0
    collapsed: bool = False


class TransitionEngine:
    """Runs steps against a :class:`MachineRecord`."""

    def __init__(self, record: MachineRecord) -> None:
        self.record = record

    @property
    def table(self) -> StateTable:
        return self.record.table

    @property
    def events(self) -> EventDispatcher:
        return self.record.events

    def run(
        self, symbol: Symbol, sources: Optional[Sequence[StateId]] = None
    ) -> StepResult:
        """Feed ``symbol`` to the active set and follow epsilon moves.

        Args:
            symbol: The input symbol, or ``EMPTY_SYMBOL`` for an epsilon step.
            sources: States to start from instead of the active set.

        Returns:
            The new active set and step statistics.
        """
        result = StepResult(active=())
        if sources is None:
            sources = self.record.active
        sources = list(sources)

        # Sets met during this call, in order. The next set depends only on
        # the members of the current one, so a repeated membership means the
        # passes have entered a cycle.
        history: List[List[StateId]] = []
        seen: Dict[FrozenSet[StateId], int] = {}
        if symbol == EMPTY_SYMBOL:
            seen[frozenset(sources)] = 0
            history.append(sources)

        current = self.step(sources, symbol)
        result.steps += 1

        while current and self._has_epsilon_moves(current):
            key = frozenset(current)
            if key in seen:
                first = seen[key]
                members: Set[StateId] = set()
                for passed in history[first:]:
                    members.update(passed)
                settled = self._settle(history[first], members)
                if settled != current:
                    current = self.collapse(history[first], members)
                    result.steps += 1
                    result.collapsed = True
                break

            seen[key] = len(history)
            history.append(current)
            current = self.step(current, EMPTY_SYMBOL)
            result.steps += 1

        result.active = tuple(current)
        logger.debug(
            "input %r: %r -> %r in %d step(s)%s",
            symbol,
            sources,
            list(result.active),
            result.steps,
            " (epsilon cycle collapsed)" if result.collapsed else "",
        )
        return result

    def step(self, sources: Sequence[StateId], symbol: Symbol) -> List[StateId]:
        """Run one internal step and commit its result to the record."""
        return self._advance(sources, lambda s: self._destinations(s, symbol))

    def collapse(
        self, sources: Sequence[StateId], members: Optional[Set[StateId]] = None
    ) -> List[StateId]:
        """Run a step in which every state keeps itself and its epsilon reach.

        Args:
            sources: The states to dequeue, in order.
            members: When given, destinations are limited to these states.
        """
        return self._advance(sources, lambda s: self._reach(s, members))

    def _settle(
        self, sources: Sequence[StateId], members: Set[StateId]
    ) -> List[StateId]:
        """Return the set :meth:`collapse` would produce, without events."""
        settled: List[StateId] = []
        for source in sources:
            for dest in self._reach(source, members):
                if dest not in settled:
                    settled.append(dest)
        return settled

    def _reach(
        self, state_id: StateId, members: Optional[Set[StateId]]
    ) -> List[StateId]:
        closure = self.epsilon_closure([state_id])
        if members is None:
            return closure
        return [s for s in closure if s in members]

    def epsilon_closure(self, states: Iterable[StateId]) -> List[StateId]:
        """Return ``states`` plus every state reachable through explicit
        epsilon moves, in breadth-first order.
        """
        closure: List[StateId] = []
        seen: Set[StateId] = set()
        queue: Deque[StateId] = deque()
        for state_id in states:
            if state_id not in seen:
                seen.add(state_id)
                closure.append(state_id)
                queue.append(state_id)

        while queue:
            state_id = queue.popleft()
            target = self.table.resolve(state_id, EMPTY_SYMBOL)
            if target is None:
                continue
            for dest in target.ids:
                if dest in seen or not self._is_live(dest):
                    continue
                seen.add(dest)
                closure.append(dest)
                queue.append(dest)
        return closure

    def discard(self, state_id: StateId) -> bool:
        """Drop a deleted state from the active set without firing events."""
        if state_id not in self.record.active:
            return False
        self.record.active = [s for s in self.record.active if s != state_id]
        return True

    def _advance(self, sources: Sequence[StateId], destinations) -> List[StateId]:
        events = self.events
        events.fire_machine(MachineEvent.CHANGING)

        queue: Deque[StateId] = deque(sources)
        new_states: List[StateId] = []
        discovered: Set[StateId] = set()

        while queue:
            source = queue.popleft()
            events.fire_state(source, StateEvent.LEAVING)

            for dest in destinations(source):
                if dest in discovered or not self._is_live(dest):
                    continue
                events.fire_state(source, StateEvent.LEAVE)
                events.fire_state(dest, StateEvent.ARRIVING)
                discovered.add(dest)
                new_states.append(dest)
                events.fire_state(dest, StateEvent.ARRIVE)

        self.record.active = new_states
        events.fire_machine(MachineEvent.CHANGE)
        return list(new_states)

    def _destinations(self, source: StateId, symbol: Symbol) -> Tuple[StateId, ...]:
        target = self.table.resolve(source, symbol)
        if target is not None:
            return target.ids
        if symbol == EMPTY_SYMBOL:
            return (source,)
        return (NULL_STATE,)

    def _has_epsilon_moves(self, states: Iterable[StateId]) -> bool:
        return any(self.table.has_epsilon_moves(s) for s in states)

    def _is_live(self, state_id: StateId) -> bool:
        """Check whether a destination names a real state.

        Unknown ids are handled by the dangling policy.
        """
        if state_id is NULL_STATE:
            return False
        if state_id in self.table:
            return True
        if self.record.config.dangling is DanglingPolicy.RAISE:
            raise UnknownStateReference(state_id, "dangling transition target")
        logger.warning("dangling reference to state %r treated as null", state_id)
        return False
